"""Pytest configuration and shared fixtures."""

import json
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from sqlalchemy.pool import StaticPool

from api_server import models
from loans.domain import ApplicantIdentity, LoanAmount, LoanApplication, LoanId, utcnow
from loans.ports import LoanRepositoryPort

VALID_IDENTITY = "12345678Z"
OTHER_IDENTITY = "87654321X"


class InMemoryCache:
    """Dict-backed stand-in for RedisClient; payloads go through JSON like the real one."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def ping(self) -> bool:
        return True

    def get_json(self, key):
        value = self.store.get(key)
        return json.loads(value) if value is not None else None

    def set_json(self, key, value, ttl=None):
        self.store[key] = json.dumps(value, default=str)
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


class InMemoryLoanRepository(LoanRepositoryPort):
    """Store double with the same created_at/modified_at and history rules as the SQL adapter."""

    def __init__(self):
        self.rows: Dict[str, LoanApplication] = {}
        self.revisions: Dict[str, List[Optional[LoanApplication]]] = {}

    def save(self, loan):
        key = str(loan.id)
        existing = self.rows.get(key)
        created_at = existing.created_at if existing else loan.created_at
        saved = replace(loan, created_at=created_at, modified_at=utcnow())
        self.rows[key] = saved
        self.revisions.setdefault(key, []).append(saved)
        return saved

    def find_by_id(self, loan_id):
        return self.rows.get(str(loan_id))

    def find_all(self):
        return list(self.rows.values())

    def find_history(self, loan_id):
        revisions = self.revisions.get(str(loan_id))
        if revisions is None:
            return None
        return [r for r in revisions if r is not None]

    def find_by_applicant_identity(self, identity):
        return [r for r in self.rows.values() if r.applicant_identity == identity]

    def find_by_criteria(self, identity=None, start=None, end=None):
        results = list(self.rows.values())
        if identity is not None:
            results = [r for r in results if r.applicant_identity.value == identity]
        if start is not None:
            lower = start.replace(microsecond=0)
            results = [r for r in results if r.created_at >= lower]
        if end is not None:
            upper = end.replace(microsecond=0) + timedelta(seconds=1)
            results = [r for r in results if r.created_at < upper]
        return results

    def delete_by_id(self, loan_id):
        key = str(loan_id)
        if self.rows.pop(key, None) is not None:
            self.revisions[key].append(None)


@pytest.fixture
def memory_cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def memory_repository() -> InMemoryLoanRepository:
    return InMemoryLoanRepository()


@pytest.fixture
def make_loan():
    """Factory for PENDING loans with sensible defaults."""
    def _make(identity: str = VALID_IDENTITY, amount: str = "25000.50", currency: str = "EUR",
              name: str = "Alvaro de la Flor Bonilla") -> LoanApplication:
        return LoanApplication.new(
            applicant_name=name,
            applicant_identity=ApplicantIdentity(identity),
            loan_amount=LoanAmount(Decimal(amount), currency),
        )
    return _make


@pytest.fixture
def loan(make_loan) -> LoanApplication:
    return make_loan()


@pytest.fixture
def unknown_loan_id() -> LoanId:
    return LoanId.generate()


@pytest.fixture
def sqlite_db():
    db = models.Database(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db.create_all()
    try:
        yield db
    finally:
        db.dispose()
