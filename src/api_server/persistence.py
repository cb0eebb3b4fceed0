"""SQLAlchemy implementation of the loan persistence port.

Every write appends a row to ``loan_application_revision`` in the same
transaction, which is what ``find_history`` reads back.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select

from api_server import models
from loans.domain import (
    ApplicantIdentity,
    LoanAmount,
    LoanApplication,
    LoanId,
    LoanStatus,
    as_utc,
    utcnow,
)
from loans.ports import LoanRepositoryPort

logger = logging.getLogger(__name__)


def _to_db_time(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def _to_domain(row) -> LoanApplication:
    """Build a domain loan from a record or a (non-tombstone) revision row."""
    return LoanApplication(
        id=LoanId(row.id if isinstance(row, models.LoanApplicationRecord) else row.loan_id),
        applicant_name=row.applicant_name,
        applicant_identity=ApplicantIdentity(row.applicant_identity),
        loan_amount=LoanAmount(row.amount, row.currency),
        created_at=as_utc(row.created_at),
        modified_at=as_utc(row.modified_at),
        status=LoanStatus(row.status),
    )


def _revision(record: models.LoanApplicationRecord, rev_type: str, revised_at: datetime):
    return models.LoanApplicationRevision(
        loan_id=record.id,
        rev_type=rev_type,
        revised_at=revised_at,
        applicant_name=record.applicant_name,
        applicant_identity=record.applicant_identity,
        amount=record.amount,
        currency=record.currency,
        status=record.status,
        created_at=record.created_at,
        modified_at=record.modified_at,
    )


class SqlAlchemyLoanRepository(LoanRepositoryPort):
    def __init__(self, db: models.Database):
        self._db = db

    def save(self, loan: LoanApplication) -> LoanApplication:
        session = self._db.get_session()
        try:
            now = _to_db_time(utcnow())
            record = session.get(models.LoanApplicationRecord, str(loan.id.value))
            rev_type = 'MOD'
            if record is None:
                record = models.LoanApplicationRecord(
                    id=str(loan.id.value),
                    created_at=_to_db_time(loan.created_at),
                )
                session.add(record)
                rev_type = 'ADD'

            record.applicant_name = loan.applicant_name
            record.applicant_identity = loan.applicant_identity.value
            record.amount = loan.loan_amount.amount
            record.currency = loan.loan_amount.currency
            record.status = loan.status.value
            record.modified_at = now

            session.add(_revision(record, rev_type, now))
            session.commit()
            logger.debug(f"Stored loan {record.id} ({rev_type})")
            return _to_domain(record)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def find_by_id(self, loan_id: LoanId) -> Optional[LoanApplication]:
        session = self._db.get_session()
        try:
            record = session.get(models.LoanApplicationRecord, str(loan_id.value))
            return _to_domain(record) if record is not None else None
        finally:
            session.close()

    def find_all(self) -> List[LoanApplication]:
        session = self._db.get_session()
        try:
            records = session.execute(
                select(models.LoanApplicationRecord)
                .order_by(models.LoanApplicationRecord.created_at.asc(), models.LoanApplicationRecord.id.asc())
            ).scalars().all()
            return [_to_domain(r) for r in records]
        finally:
            session.close()

    def find_history(self, loan_id: LoanId) -> Optional[List[LoanApplication]]:
        session = self._db.get_session()
        try:
            revisions = session.execute(
                select(models.LoanApplicationRevision)
                .where(models.LoanApplicationRevision.loan_id == str(loan_id.value))
                .order_by(models.LoanApplicationRevision.rev_id.asc())
            ).scalars().all()
            if not revisions:
                return None
            return [_to_domain(r) for r in revisions if r.applicant_name is not None]
        finally:
            session.close()

    def find_by_applicant_identity(self, identity: ApplicantIdentity) -> Optional[List[LoanApplication]]:
        session = self._db.get_session()
        try:
            records = session.execute(
                select(models.LoanApplicationRecord)
                .where(models.LoanApplicationRecord.applicant_identity == identity.value)
                .order_by(models.LoanApplicationRecord.created_at.asc(), models.LoanApplicationRecord.id.asc())
            ).scalars().all()
            return [_to_domain(r) for r in records]
        finally:
            session.close()

    def find_by_criteria(
        self,
        identity: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[List[LoanApplication]]:
        query = select(models.LoanApplicationRecord)
        if identity is not None:
            query = query.where(models.LoanApplicationRecord.applicant_identity == identity)
        if start is not None:
            lower = _to_db_time(start).replace(microsecond=0)
            query = query.where(models.LoanApplicationRecord.created_at >= lower)
        if end is not None:
            upper = _to_db_time(end).replace(microsecond=0) + timedelta(seconds=1)
            query = query.where(models.LoanApplicationRecord.created_at < upper)
        query = query.order_by(models.LoanApplicationRecord.created_at.asc(), models.LoanApplicationRecord.id.asc())

        session = self._db.get_session()
        try:
            return [_to_domain(r) for r in session.execute(query).scalars().all()]
        finally:
            session.close()

    def delete_by_id(self, loan_id: LoanId) -> None:
        session = self._db.get_session()
        try:
            record = session.get(models.LoanApplicationRecord, str(loan_id.value))
            if record is None:
                return
            record_id = record.id
            session.delete(record)
            session.add(models.LoanApplicationRevision(
                loan_id=record_id,
                rev_type='DEL',
                revised_at=_to_db_time(utcnow()),
            ))
            session.commit()
            logger.debug(f"Deleted loan {record_id}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
