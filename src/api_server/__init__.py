"""HTTP adapter and SQL persistence for the Loan Application Service."""
