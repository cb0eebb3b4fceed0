"""Exception hierarchy for the loan service."""


class LoanServiceError(Exception):
    """Base exception for all loan service errors."""


class InvalidDomainData(LoanServiceError):
    """Raised when a value object is constructed from invalid input."""


class InvalidStateTransition(LoanServiceError):
    """Raised when a loan status change is not allowed."""


class ResourceNotFound(LoanServiceError):
    """Raised when a lookup, history or search yields nothing."""
