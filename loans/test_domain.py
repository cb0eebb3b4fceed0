import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from loans.domain import (
    ApplicantIdentity,
    LoanAmount,
    LoanApplication,
    LoanId,
    LoanStatus,
    transition,
)
from loans.exceptions import InvalidDomainData, InvalidStateTransition


class TestApplicantIdentity:
    """DNI/NIE format and control-letter checks"""

    @pytest.mark.parametrize("raw", ["12345678Z", "00000000T", "87654321X", "X0000000T", "Y0000000Z", "Z0000000M"])
    def test_accepts_valid_checksums(self, raw):
        assert ApplicantIdentity(raw).value == raw

    def test_normalizes_to_trimmed_uppercase(self):
        assert ApplicantIdentity("  12345678z ").value == "12345678Z"

    def test_equality_uses_normalized_value(self):
        assert ApplicantIdentity("x0000000t") == ApplicantIdentity("X0000000T")
        assert hash(ApplicantIdentity("x0000000t")) == hash(ApplicantIdentity("X0000000T"))

    @pytest.mark.parametrize("raw", ["12345678A", "1234567Z", "123456789Z", "A2345678Z", "X000000T", "12345678-", "ABCDEFGHZ"])
    def test_rejects_bad_format_or_checksum(self, raw):
        with pytest.raises(InvalidDomainData):
            ApplicantIdentity(raw)

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_identity_is_mandatory(self, raw):
        with pytest.raises(InvalidDomainData, match="mandatory"):
            ApplicantIdentity(raw)


class TestLoanAmount:
    """Positive amounts, scale 2 with half-even rounding"""

    @pytest.mark.parametrize("raw, expected", [
        ("1998.035", "1998.04"),
        ("1998.025", "1998.02"),
        ("1998.045", "1998.04"),
        ("1998.055", "1998.06"),
        ("25000.5", "25000.50"),
        ("100", "100.00"),
    ])
    def test_rounds_half_even_to_two_places(self, raw, expected):
        amount = LoanAmount(Decimal(raw), "EUR").amount
        assert amount == Decimal(expected)
        assert amount.as_tuple().exponent == -2

    def test_accepts_numeric_strings_and_floats(self):
        assert LoanAmount("10.1", "EUR").amount == Decimal("10.10")
        assert LoanAmount(1998.035, "EUR").amount == Decimal("1998.04")

    @pytest.mark.parametrize("raw", [Decimal("0"), Decimal("-0.01"), Decimal("-100"), None])
    def test_rejects_non_positive_amounts(self, raw):
        with pytest.raises(InvalidDomainData, match="positive"):
            LoanAmount(raw, "EUR")

    def test_rejects_non_numeric_amount(self):
        with pytest.raises(InvalidDomainData):
            LoanAmount("lots", "EUR")

    @pytest.mark.parametrize("currency", [None, "", "  "])
    def test_currency_is_mandatory(self, currency):
        with pytest.raises(InvalidDomainData, match="Currency is mandatory"):
            LoanAmount(Decimal("10"), currency)

    def test_currency_is_normalized_and_checked(self):
        assert LoanAmount(Decimal("10"), "eur").currency == "EUR"
        with pytest.raises(InvalidDomainData):
            LoanAmount(Decimal("10"), "EURO")

    @pytest.mark.parametrize("currency", ["XYZ", "ABC", "QQQ"])
    def test_unknown_currency_codes_are_rejected(self, currency):
        with pytest.raises(InvalidDomainData, match="not a valid ISO code"):
            LoanAmount(Decimal("10"), currency)

    @pytest.mark.parametrize("currency", ["USD", "GBP", "JPY", "chf"])
    def test_iso_currency_codes_are_accepted(self, currency):
        assert LoanAmount(Decimal("10"), currency).currency == currency.upper()

    @pytest.mark.parametrize("raw", ["1E+30", "100000000000000000", "1e17"])
    def test_amounts_beyond_column_size_are_rejected(self, raw):
        with pytest.raises(InvalidDomainData, match="exceeds the maximum"):
            LoanAmount(Decimal(raw), "EUR")

    def test_largest_storable_amount(self):
        amount = LoanAmount(Decimal("99999999999999999.99"), "EUR").amount
        assert amount == Decimal("99999999999999999.99")

    def test_amount_rounding_to_zero_is_rejected(self):
        with pytest.raises(InvalidDomainData, match="positive"):
            LoanAmount(Decimal("0.004"), "EUR")


class TestLoanId:
    def test_wraps_uuid(self):
        value = uuid.uuid4()
        assert LoanId(value).value == value

    def test_parses_uuid_strings(self):
        value = uuid.uuid4()
        assert LoanId(str(value)) == LoanId(value)

    def test_rejects_none_and_garbage(self):
        with pytest.raises(InvalidDomainData):
            LoanId(None)
        with pytest.raises(InvalidDomainData):
            LoanId("not-a-uuid")


class TestLoanApplication:
    def test_new_loan_is_pending(self, loan):
        assert loan.status == LoanStatus.PENDING
        assert loan.created_at == loan.modified_at
        assert loan.created_at.tzinfo is not None

    def test_rejects_blank_applicant_name(self, loan):
        with pytest.raises(InvalidDomainData):
            LoanApplication(
                id=loan.id,
                applicant_name="  ",
                applicant_identity=loan.applicant_identity,
                loan_amount=loan.loan_amount,
                created_at=loan.created_at,
                modified_at=loan.modified_at,
            )

    def test_naive_timestamps_are_read_as_utc(self, loan):
        naive = datetime(2026, 2, 7, 17, 51, 37)
        rebuilt = LoanApplication(
            id=loan.id,
            applicant_name=loan.applicant_name,
            applicant_identity=loan.applicant_identity,
            loan_amount=loan.loan_amount,
            created_at=naive,
            modified_at=naive,
        )
        assert rebuilt.created_at == naive.replace(tzinfo=timezone.utc)

    def test_dict_form_is_json_safe_and_restorable(self, loan):
        data = loan.to_dict()
        assert data["amount"] == "25000.50"
        assert data["status"] == "PENDING"
        assert LoanApplication.from_dict(data) == loan


class TestStateMachine:
    """PENDING -> APPROVED | REJECTED, APPROVED -> CANCELLED, nothing else"""

    def test_approve_from_pending(self, loan):
        approved = loan.approve()
        assert approved.status == LoanStatus.APPROVED
        assert approved.id == loan.id

    def test_reject_from_pending(self, loan):
        assert loan.reject().status == LoanStatus.REJECTED

    def test_cancel_from_approved(self, loan):
        assert loan.approve().cancel().status == LoanStatus.CANCELLED

    def test_transitions_leave_the_receiver_unchanged(self, loan):
        loan.approve()
        assert loan.status == LoanStatus.PENDING

    @pytest.mark.parametrize("path, action", [
        ([], "cancel"),
        (["approve"], "approve"),
        (["approve"], "reject"),
        (["reject"], "approve"),
        (["reject"], "reject"),
        (["reject"], "cancel"),
        (["approve", "cancel"], "approve"),
        (["approve", "cancel"], "reject"),
        (["approve", "cancel"], "cancel"),
    ])
    def test_illegal_transitions_fail_and_leave_status(self, loan, path, action):
        current = loan
        for step in path:
            current = getattr(current, step)()
        before = current.status
        with pytest.raises(InvalidStateTransition):
            getattr(current, action)()
        assert current.status == before

    def test_cancel_message_names_the_rule(self, loan):
        with pytest.raises(InvalidStateTransition, match="Only APPROVED -> CANCELLED"):
            loan.cancel()

    def test_transition_by_target_status(self, loan):
        assert transition(loan, "APPROVED").status == LoanStatus.APPROVED
        with pytest.raises(InvalidStateTransition):
            transition(loan, LoanStatus.PENDING)
