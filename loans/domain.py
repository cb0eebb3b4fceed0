"""Loan domain model: value objects and the status state machine."""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from enum import Enum
from typing import Any, Dict, Union

import pycountry

from loans.exceptions import InvalidDomainData, InvalidStateTransition

IDENTITY_PATTERN = re.compile(r"^[XYZ0-9][0-9]{7}[A-Z]$")
CONTROL_LETTERS = "TRWAGMYFPDXBNJZSQVHLCKE"
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
AMOUNT_SCALE = Decimal("0.01")
# DECIMAL(19, 2) column: 17 integer digits
MAX_AMOUNT = Decimal("1E17")


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LoanStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class LoanId:
    value: uuid.UUID

    def __post_init__(self):
        if self.value is None:
            raise InvalidDomainData("LoanId cannot be null")
        if not isinstance(self.value, uuid.UUID):
            try:
                object.__setattr__(self, "value", uuid.UUID(str(self.value)))
            except ValueError:
                raise InvalidDomainData(f"LoanId is not a valid UUID: {self.value}")

    @classmethod
    def generate(cls) -> "LoanId":
        return cls(uuid.uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ApplicantIdentity:
    """Spanish DNI/NIE, stored in its normalized (trimmed, uppercase) form."""

    value: str

    def __post_init__(self):
        if self.value is None or not str(self.value).strip():
            raise InvalidDomainData("Identification is mandatory.")
        normalized = str(self.value).upper().strip()
        if not self.is_valid(normalized):
            raise InvalidDomainData(f"DNI/NIE not valid: {self.value}")
        object.__setattr__(self, "value", normalized)

    @staticmethod
    def is_valid(candidate: str) -> bool:
        if not IDENTITY_PATTERN.match(candidate):
            return False
        numeric = candidate[:8].replace("X", "0").replace("Y", "1").replace("Z", "2")
        return CONTROL_LETTERS[int(numeric) % 23] == candidate[8]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class LoanAmount:
    amount: Decimal
    currency: str

    def __post_init__(self):
        if self.amount is None:
            raise InvalidDomainData("The amount must be positive")
        try:
            amount = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        except InvalidOperation:
            raise InvalidDomainData(f"The amount is not a number: {self.amount}")
        if not amount.is_finite() or amount <= 0:
            raise InvalidDomainData("The amount must be positive")
        if amount >= MAX_AMOUNT:
            raise InvalidDomainData(f"The amount exceeds the maximum allowed: {self.amount}")
        try:
            amount = amount.quantize(AMOUNT_SCALE, rounding=ROUND_HALF_EVEN)
        except InvalidOperation:
            raise InvalidDomainData(f"The amount cannot be represented: {self.amount}")
        if amount <= 0:
            raise InvalidDomainData("The amount must be positive")
        if self.currency is None or not str(self.currency).strip():
            raise InvalidDomainData("Currency is mandatory")
        currency = str(self.currency).strip().upper()
        if not CURRENCY_PATTERN.match(currency) or pycountry.currencies.get(alpha_3=currency) is None:
            raise InvalidDomainData(f"Currency is not a valid ISO code: {self.currency}")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "currency", currency)


# target status -> status it may be reached from
_ALLOWED_SOURCES = {
    LoanStatus.APPROVED: LoanStatus.PENDING,
    LoanStatus.REJECTED: LoanStatus.PENDING,
    LoanStatus.CANCELLED: LoanStatus.APPROVED,
}


@dataclass(frozen=True)
class LoanApplication:
    """Loan application aggregate.

    Instances are immutable: the status transitions return a new object and
    leave the receiver untouched.
    """

    id: LoanId
    applicant_name: str
    applicant_identity: ApplicantIdentity
    loan_amount: LoanAmount
    created_at: datetime
    modified_at: datetime
    status: LoanStatus = field(default=LoanStatus.PENDING)

    def __post_init__(self):
        for name in ("id", "applicant_name", "applicant_identity", "loan_amount",
                     "created_at", "modified_at", "status"):
            if getattr(self, name) is None:
                raise InvalidDomainData(f"{name} is mandatory")
        if not self.applicant_name.strip():
            raise InvalidDomainData("applicant_name is mandatory")
        object.__setattr__(self, "status", LoanStatus(self.status))
        object.__setattr__(self, "created_at", as_utc(self.created_at))
        object.__setattr__(self, "modified_at", as_utc(self.modified_at))

    @classmethod
    def new(cls, applicant_name: str, applicant_identity: ApplicantIdentity,
            loan_amount: LoanAmount) -> "LoanApplication":
        now = utcnow()
        return cls(
            id=LoanId.generate(),
            applicant_name=applicant_name,
            applicant_identity=applicant_identity,
            loan_amount=loan_amount,
            created_at=now,
            modified_at=now,
            status=LoanStatus.PENDING,
        )

    def approve(self) -> "LoanApplication":
        return transition(self, LoanStatus.APPROVED)

    def reject(self) -> "LoanApplication":
        return transition(self, LoanStatus.REJECTED)

    def cancel(self) -> "LoanApplication":
        return transition(self, LoanStatus.CANCELLED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id.value),
            "applicant_name": self.applicant_name,
            "applicant_identity": self.applicant_identity.value,
            "amount": str(self.loan_amount.amount),
            "currency": self.loan_amount.currency,
            "created_at": self.created_at.isoformat(),
            "modified_at": self.modified_at.isoformat(),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoanApplication":
        return cls(
            id=LoanId(data["id"]),
            applicant_name=data["applicant_name"],
            applicant_identity=ApplicantIdentity(data["applicant_identity"]),
            loan_amount=LoanAmount(Decimal(data["amount"]), data["currency"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            modified_at=datetime.fromisoformat(data["modified_at"]),
            status=LoanStatus(data["status"]),
        )


def transition(loan: LoanApplication, target: Union[LoanStatus, str]) -> LoanApplication:
    """Return a copy of ``loan`` moved to ``target``.

    Raises InvalidStateTransition when the current status does not allow it.
    PENDING is never a valid target.
    """
    target = LoanStatus(target)
    source = _ALLOWED_SOURCES.get(target)
    if source is None:
        raise InvalidStateTransition(f"Cannot transition to {target.value}")
    if loan.status != source:
        raise InvalidStateTransition(f"Only {source.value} -> {target.value}")
    return replace(loan, status=target)
