"""Loan Application Domain Package."""

from .exceptions import (
    LoanServiceError,
    InvalidDomainData,
    InvalidStateTransition,
    ResourceNotFound,
)
from .domain import (
    ApplicantIdentity,
    LoanAmount,
    LoanApplication,
    LoanId,
    LoanStatus,
    transition,
)
from .ports import LoanRepositoryPort
from .service import CreateLoanCommand, LoanApplicationService

__all__ = [
    'LoanServiceError',
    'InvalidDomainData',
    'InvalidStateTransition',
    'ResourceNotFound',
    'ApplicantIdentity',
    'LoanAmount',
    'LoanApplication',
    'LoanId',
    'LoanStatus',
    'transition',
    'LoanRepositoryPort',
    'CreateLoanCommand',
    'LoanApplicationService',
]
