"""Loan use cases on top of the persistence port."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from loans.domain import (
    ApplicantIdentity,
    LoanAmount,
    LoanApplication,
    LoanId,
    LoanStatus,
    transition,
)
from loans.exceptions import InvalidDomainData, ResourceNotFound
from loans.ports import LoanRepositoryPort

logger = logging.getLogger(__name__)


@dataclass
class CreateLoanCommand:
    applicant_name: str
    amount: Decimal
    currency: str
    applicant_identity: str


class LoanApplicationService:
    def __init__(self, repository: LoanRepositoryPort):
        self._repository = repository

    def create_loan(self, command: CreateLoanCommand) -> LoanApplication:
        if command.applicant_name is None or not command.applicant_name.strip():
            raise InvalidDomainData("Applicant name is mandatory.")
        loan = LoanApplication.new(
            applicant_name=command.applicant_name.strip(),
            applicant_identity=ApplicantIdentity(command.applicant_identity),
            loan_amount=LoanAmount(command.amount, command.currency),
        )
        saved = self._repository.save(loan)
        logger.info(f"Created loan {saved.id} for applicant {saved.applicant_identity}")
        return saved

    def approve_loan(self, loan_id: Union[UUID, str]) -> LoanApplication:
        return self._change_status(loan_id, LoanStatus.APPROVED)

    def reject_loan(self, loan_id: Union[UUID, str]) -> LoanApplication:
        return self._change_status(loan_id, LoanStatus.REJECTED)

    def cancel_loan(self, loan_id: Union[UUID, str]) -> LoanApplication:
        return self._change_status(loan_id, LoanStatus.CANCELLED)

    def update_status(self, loan_id: Union[UUID, str], status: str) -> LoanApplication:
        """Dispatch a requested target status to the matching transition."""
        requested = (status or "").strip().upper()
        if requested == LoanStatus.PENDING.value:
            raise InvalidDomainData("Cannot transition back to PENDING status")
        if requested not in (LoanStatus.APPROVED.value, LoanStatus.REJECTED.value, LoanStatus.CANCELLED.value):
            raise InvalidDomainData(f"Unknown status action: {status}")
        return self._change_status(loan_id, LoanStatus(requested))

    def get_loan(self, loan_id: Union[UUID, str]) -> LoanApplication:
        return self._get_loan_or_raise(loan_id)

    def list_loans(self) -> List[LoanApplication]:
        return self._repository.find_all()

    def get_loan_history(self, loan_id: Union[UUID, str]) -> List[LoanApplication]:
        history = self._repository.find_history(LoanId(loan_id))
        if not history:
            raise ResourceNotFound(f"No history found for loan: {loan_id}")
        return history

    def get_loans_by_identity(self, identity: Union[ApplicantIdentity, str]) -> List[LoanApplication]:
        if not isinstance(identity, ApplicantIdentity):
            identity = ApplicantIdentity(identity)
        results = self._repository.find_by_applicant_identity(identity)
        # None and [] are both "nothing found" for callers of this use case
        if not results:
            raise ResourceNotFound(f"No loans found for applicant identity: {identity.value}")
        return results

    def search_loans(
        self,
        identity: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[LoanApplication]:
        if identity is not None:
            identity = identity.strip().upper() or None
        results = self._repository.find_by_criteria(identity, start, end)
        if not results:
            raise ResourceNotFound(
                f"No loans found matching criteria: identity={identity}, startDate={start}, endDate={end}"
            )
        return results

    def delete_loan(self, loan_id: Union[UUID, str]) -> None:
        loan = self._get_loan_or_raise(loan_id)
        self._repository.delete_by_id(loan.id)
        logger.info(f"Deleted loan {loan.id}")

    def _change_status(self, loan_id: Union[UUID, str], target: LoanStatus) -> LoanApplication:
        loan = self._get_loan_or_raise(loan_id)
        saved = self._repository.save(transition(loan, target))
        logger.info(f"Loan {saved.id} moved {loan.status.value} -> {saved.status.value}")
        return saved

    def _get_loan_or_raise(self, loan_id: Union[UUID, str]) -> LoanApplication:
        loan = self._repository.find_by_id(LoanId(loan_id))
        if loan is None:
            raise ResourceNotFound(f"Loan not found: {loan_id}")
        return loan
