"""Tests for invoice status derivation and the ledger mutation point."""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from receivables.core.errors import InvoiceNotFoundError, OverAllocationError, ValidationError
from receivables.models.invoice import InvoiceStatus
from receivables.repositories.invoice_repository import InvoiceRepository
from receivables.schemas.invoice import InvoiceCreate
from receivables.services.invoice_ledger import InvoiceLedger, derive_status

TODAY = date(2026, 10, 19)
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)


class TestDeriveStatus:
    def test_unpaid_before_due_date(self):
        assert derive_status(Decimal("0"), Decimal("200"), TOMORROW, TODAY) == InvoiceStatus.UNPAID

    def test_unpaid_on_due_date(self):
        assert derive_status(Decimal("0"), Decimal("200"), TODAY, TODAY) == InvoiceStatus.UNPAID

    def test_overdue_after_due_date(self):
        assert derive_status(Decimal("0"), Decimal("200"), YESTERDAY, TODAY) == InvoiceStatus.OVERDUE

    def test_partial(self):
        assert (
            derive_status(Decimal("50"), Decimal("200"), TOMORROW, TODAY) == InvoiceStatus.PARTIAL
        )

    def test_partial_takes_precedence_over_overdue(self):
        """A part-paid invoice past its due date is still reported partial."""
        assert (
            derive_status(Decimal("50"), Decimal("200"), YESTERDAY, TODAY)
            == InvoiceStatus.PARTIAL
        )

    def test_paid(self):
        assert derive_status(Decimal("200"), Decimal("200"), YESTERDAY, TODAY) == InvoiceStatus.PAID

    def test_paid_within_epsilon(self):
        assert (
            derive_status(Decimal("199.995"), Decimal("200"), TOMORROW, TODAY)
            == InvoiceStatus.PAID
        )

    def test_no_due_date_is_never_overdue(self):
        assert derive_status(Decimal("0"), Decimal("200"), None, TODAY) == InvoiceStatus.UNPAID

    def test_accepts_datetime_now(self):
        now = datetime(2026, 10, 19, 23, 59, tzinfo=UTC)
        assert derive_status(Decimal("0"), Decimal("10"), YESTERDAY, now) == InvoiceStatus.OVERDUE

    def test_is_deterministic(self):
        args = (Decimal("75.25"), Decimal("100"), YESTERDAY, TODAY)
        assert {derive_status(*args) for _ in range(5)} == {InvoiceStatus.PARTIAL}


class TestApplyPayment:
    def test_partial_payment(self, db_session, make_invoice):
        invoice = make_invoice("200.00")
        ledger = InvoiceLedger(db_session)

        updated = ledger.apply_payment(invoice.id, Decimal("50.00"))

        assert updated.amount_paid == Decimal("50.00")
        assert updated.amount_due == Decimal("150.00")
        assert updated.status == InvoiceStatus.PARTIAL.value
        assert updated.paid_at is None

    def test_exact_payoff_marks_paid(self, db_session, make_invoice):
        invoice = make_invoice("500.00")
        ledger = InvoiceLedger(db_session)

        updated = ledger.apply_payment(invoice.id, Decimal("500.00"))

        assert updated.amount_due == Decimal("0.00")
        assert updated.status == InvoiceStatus.PAID.value
        assert updated.paid_at is not None

    def test_successive_payments_accumulate(self, db_session, make_invoice):
        invoice = make_invoice("100.30")
        ledger = InvoiceLedger(db_session)

        ledger.apply_payment(invoice.id, Decimal("100.10"))
        updated = ledger.apply_payment(invoice.id, Decimal("0.20"))

        assert updated.amount_paid == Decimal("100.30")
        assert updated.status == InvoiceStatus.PAID.value

    def test_amount_above_due_rejected(self, db_session, make_invoice):
        invoice = make_invoice("100.00")
        ledger = InvoiceLedger(db_session)

        with pytest.raises(OverAllocationError) as exc_info:
            ledger.apply_payment(invoice.id, Decimal("150.00"))

        assert exc_info.value.amount_due == Decimal("100.00")
        assert exc_info.value.stale_read is False
        db_session.rollback()
        assert InvoiceRepository(db_session).get_by_id(invoice.id).amount_paid == Decimal("0.00")

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_non_positive_amount_rejected(self, db_session, make_invoice, amount):
        invoice = make_invoice("100.00")
        with pytest.raises(ValidationError):
            InvoiceLedger(db_session).apply_payment(invoice.id, Decimal(amount))

    def test_unknown_invoice(self, db_session):
        with pytest.raises(InvoiceNotFoundError):
            InvoiceLedger(db_session).apply_payment(uuid4(), Decimal("1.00"))

    def test_changed_amount_paid_flags_stale_read(self, db_session, make_invoice):
        invoice = make_invoice("100.00")
        ledger = InvoiceLedger(db_session)
        ledger.apply_payment(invoice.id, Decimal("80.00"))

        # Caller planned against the snapshot where nothing was paid yet
        with pytest.raises(OverAllocationError) as exc_info:
            ledger.apply_payment(
                invoice.id, Decimal("50.00"), expected_amount_paid=Decimal("0.00")
            )

        assert exc_info.value.stale_read is True
        assert exc_info.value.amount_due == Decimal("20.00")

    def test_lost_conditional_update_flags_stale_read(self, db_session, make_invoice):
        invoice = make_invoice("100.00")
        ledger = InvoiceLedger(db_session)

        with patch.object(InvoiceRepository, "compare_and_set_amount_paid", return_value=False):
            with pytest.raises(OverAllocationError) as exc_info:
                ledger.apply_payment(invoice.id, Decimal("10.00"))

        assert exc_info.value.stale_read is True

    def test_conditional_update_requires_matching_snapshot(self, db_session, make_invoice):
        invoice = make_invoice("100.00")
        repo = InvoiceRepository(db_session)

        assert not repo.compare_and_set_amount_paid(
            invoice.id,
            expected_amount_paid=Decimal("5.00"),
            new_amount_paid=Decimal("15.00"),
            status=InvoiceStatus.PARTIAL,
        )
        assert repo.compare_and_set_amount_paid(
            invoice.id,
            expected_amount_paid=Decimal("0.00"),
            new_amount_paid=Decimal("15.00"),
            status=InvoiceStatus.PARTIAL,
        )


class TestRefreshStatus:
    def test_unpaid_invoice_becomes_overdue(self, db_session, make_invoice):
        invoice = make_invoice(
            "100.00", issue_date=TODAY - timedelta(days=40), due_date=TODAY - timedelta(days=10)
        )
        assert invoice.status == InvoiceStatus.UNPAID.value

        InvoiceLedger(db_session).refresh_status(invoice, now=TODAY)

        assert invoice.status == InvoiceStatus.OVERDUE.value

    def test_partial_invoice_stays_partial(self, db_session, make_invoice):
        invoice = make_invoice("200.00", due_date=TODAY + timedelta(days=3))
        ledger = InvoiceLedger(db_session)
        ledger.apply_payment(invoice.id, Decimal("50.00"))
        db_session.commit()

        ledger.refresh_status(invoice, now=TODAY + timedelta(days=30))

        assert invoice.status == InvoiceStatus.PARTIAL.value


class TestInvoiceCreate:
    def test_total_beyond_storage_rejected(self, customer):
        with pytest.raises(PydanticValidationError):
            InvoiceCreate(customer_id=customer.id, total=Decimal("10000000000.00"))
