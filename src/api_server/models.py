from sqlalchemy import create_engine, Column, Integer, String, DateTime, Enum, Index
from sqlalchemy.types import DECIMAL, CHAR
from sqlalchemy.orm import sessionmaker, declarative_base
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from config import get_db_config

# Create declarative base
Base = declarative_base()

LOAN_STATUSES = ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')
REVISION_TYPES = ('ADD', 'MOD', 'DEL')


class Database:
    def __init__(self, url: Optional[str] = None, **engine_kwargs):
        self.url = url or get_db_config().url
        self.engine = create_engine(self.url, pool_pre_ping=True, **engine_kwargs)
        self.SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=self.engine)

    def get_session(self):
        """Open a new session; the caller closes it."""
        return self.SessionLocal()

    def create_all(self):
        Base.metadata.create_all(self.engine)

    def dispose(self):
        self.engine.dispose()


# Database Models
# Datetime columns hold naive UTC values.
class LoanApplicationRecord(Base):
    __tablename__ = "loan_application"

    id = Column(String(36), primary_key=True)
    applicant_name = Column(String(255), nullable=False)
    applicant_identity = Column(String(9), nullable=False, index=True)
    amount = Column(DECIMAL(19, 2), nullable=False)
    currency = Column(CHAR(3), nullable=False)
    status = Column(Enum(*LOAN_STATUSES, name='loan_status'), nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)
    modified_at = Column(DateTime, nullable=False)


class LoanApplicationRevision(Base):
    """Append-only revision log; a DEL row with no applicant name is a tombstone."""
    __tablename__ = "loan_application_revision"

    rev_id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(String(36), nullable=False)
    rev_type = Column(Enum(*REVISION_TYPES, name='revision_type'), nullable=False)
    revised_at = Column(DateTime, nullable=False)
    applicant_name = Column(String(255))
    applicant_identity = Column(String(9))
    amount = Column(DECIMAL(19, 2))
    currency = Column(CHAR(3))
    status = Column(Enum(*LOAN_STATUSES, name='loan_status'))
    created_at = Column(DateTime)
    modified_at = Column(DateTime)


Index("ix_loan_application_revision_loan", LoanApplicationRevision.loan_id, LoanApplicationRevision.rev_id)


# Request / Response Models
class CreateLoanRequest(BaseModel):
    applicant_name: str = Field(..., min_length=1, examples=["Alvaro de la Flor Bonilla"], description="Full name of the applicant")
    amount: Decimal = Field(..., gt=0, examples=["25000.50"], description="Total requested amount")
    currency: str = Field(..., min_length=3, max_length=3, examples=["EUR"], description="Three-letter ISO currency code")
    identity_document: str = Field(..., min_length=1, examples=["12345678Z"], description="Spanish National Identity Document (DNI or NIE)")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "applicant_name": "Alvaro de la Flor Bonilla",
            "amount": "25000.50",
            "currency": "EUR",
            "identity_document": "12345678Z"
        }
    })


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., min_length=1, examples=["APPROVED"], description="Target status: APPROVED, REJECTED or CANCELLED")


class LoanResponse(BaseModel):
    id: str = Field(..., examples=["c18b4e1b-6b10-4d6c-9476-5e4764facb30"], description="Unique identifier of the loan application")
    applicant_name: str = Field(..., description="Full name of the applicant")
    applicant_identity: str = Field(..., examples=["12345678Z"], description="Spanish National Identity Document (DNI or NIE)")
    loan_amount: Decimal = Field(..., examples=["25000.50"], description="Total requested amount")
    currency: str = Field(..., examples=["EUR"], description="Three-letter ISO currency code")
    created_at: datetime = Field(..., description="When the loan application was created")
    modified_at: datetime = Field(..., description="When the loan application was last modified")
    status: str = Field(..., examples=["PENDING"], description="Current status of the loan application")

    @classmethod
    def from_domain(cls, loan) -> "LoanResponse":
        return cls(
            id=str(loan.id.value),
            applicant_name=loan.applicant_name,
            applicant_identity=loan.applicant_identity.value,
            loan_amount=loan.loan_amount.amount,
            currency=loan.loan_amount.currency,
            created_at=loan.created_at,
            modified_at=loan.modified_at,
            status=loan.status.value,
        )


class ApiErrorResponse(BaseModel):
    title: str = Field(..., examples=["Business Rule Violation"], description="Short error title")
    status: int = Field(..., examples=[400], description="HTTP status code")
    detail: str = Field(..., examples=["The amount must be positive"], description="Detailed error message")
    timestamp: datetime = Field(..., description="When the error occurred")
    validation_errors: Optional[Dict[str, str]] = Field(None, description="Field-level validation errors")


class CacheTotals(BaseModel):
    hits: int
    misses: int
    errors: int
    invalidations: int
    requests: int
    hit_ratio: float


class CacheMetricsResponse(BaseModel):
    since: str
    totals: CacheTotals
    by_operation: Dict[str, Dict[str, int]]


class HealthResponse(BaseModel):
    status: str
    service: str
    cache: str
