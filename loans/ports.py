"""Persistence port shared by the store adapter and the caching decorator."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from loans.domain import ApplicantIdentity, LoanApplication, LoanId


class LoanRepositoryPort(ABC):
    """Storage contract for loan applications.

    Callers cannot tell whether a cache sits in front of the store: the
    SQL adapter and the caching decorator implement the same interface.
    """

    @abstractmethod
    def save(self, loan: LoanApplication) -> LoanApplication:
        """Upsert ``loan``. The store keeps ``created_at`` and refreshes ``modified_at``."""

    @abstractmethod
    def find_by_id(self, loan_id: LoanId) -> Optional[LoanApplication]:
        ...

    @abstractmethod
    def find_all(self) -> List[LoanApplication]:
        ...

    @abstractmethod
    def find_history(self, loan_id: LoanId) -> Optional[List[LoanApplication]]:
        """Revision snapshots, oldest first, without delete tombstones."""

    @abstractmethod
    def find_by_applicant_identity(self, identity: ApplicantIdentity) -> Optional[List[LoanApplication]]:
        ...

    @abstractmethod
    def find_by_criteria(
        self,
        identity: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[List[LoanApplication]]:
        """Filter by exact identity and/or creation time.

        Bounds are truncated to whole seconds; the end bound is advanced by one
        second and is exclusive, so anything created within the end second matches.
        """

    @abstractmethod
    def delete_by_id(self, loan_id: LoanId) -> None:
        ...
