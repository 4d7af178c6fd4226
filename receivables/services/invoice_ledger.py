"""Invoice ledger: status derivation and the single amount-paid mutation."""

import logging
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from receivables.core import money
from receivables.core.errors import InvoiceNotFoundError, OverAllocationError, ValidationError
from receivables.models.invoice import Invoice, InvoiceStatus
from receivables.models.shared import utc_now
from receivables.repositories.invoice_repository import InvoiceRepository

logger = logging.getLogger(__name__)


def _as_date(now: date | datetime) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


def derive_status(
    amount_paid: Decimal,
    total: Decimal,
    due_date: date | None,
    now: date | datetime,
) -> InvoiceStatus:
    """Derive an invoice status from its amounts and due date.

    A partially paid invoice stays ``partial`` after its due date; only an
    invoice with nothing paid becomes ``overdue``. An invoice without a due
    date is never overdue.
    """
    if amount_paid >= total or money.approx_equal(amount_paid, total):
        return InvoiceStatus.PAID
    if money.is_effectively_zero(amount_paid):
        if due_date is not None and _as_date(now) > due_date:
            return InvoiceStatus.OVERDUE
        return InvoiceStatus.UNPAID
    return InvoiceStatus.PARTIAL


class InvoiceLedger:
    """Owns invoice paid/due amounts.

    ``apply_payment`` is the only place ``amount_paid`` changes. It never
    commits: the settlement transaction around it decides.
    """

    def __init__(self, db: Session):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if not invoice:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def apply_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        *,
        expected_amount_paid: Decimal | None = None,
        now: datetime | None = None,
    ) -> Invoice:
        """Add ``amount`` to the invoice's amount paid.

        Args:
            invoice_id: Target invoice.
            amount: Strictly positive amount, at most the current amount due.
            expected_amount_paid: Amount paid as seen when the allocation was
                planned. If it moved and the amount no longer fits, the error
                is flagged as a stale read.
            now: Clock used for the status and ``paid_at``.

        Raises:
            ValidationError: amount is not positive.
            InvoiceNotFoundError: no such invoice.
            OverAllocationError: amount exceeds the amount due, or a concurrent
                writer changed the invoice first.
        """
        amount = money.to_money(amount)
        if amount <= 0:
            raise ValidationError.single("amount", "Allocation amount must be positive")

        now = now or utc_now()
        invoice = self.invoice_repo.get_for_update(invoice_id)
        if not invoice:
            raise InvoiceNotFoundError(invoice_id)

        total = money.from_storage(invoice.total)
        current_paid = money.from_storage(invoice.amount_paid)
        amount_due = money.subtract(total, current_paid)

        if amount > amount_due:
            stale = expected_amount_paid is not None and money.to_money(
                expected_amount_paid
            ) != current_paid
            raise OverAllocationError(
                invoice_id=invoice_id,
                requested=amount,
                amount_due=amount_due,
                stale_read=stale,
                invoice_number=str(invoice.invoice_number),
            )

        new_paid = money.add(current_paid, amount)
        status = derive_status(new_paid, total, invoice.due_date, now)
        paid_at = now if status == InvoiceStatus.PAID else None

        updated = self.invoice_repo.compare_and_set_amount_paid(
            invoice_id,
            expected_amount_paid=current_paid,
            new_amount_paid=new_paid,
            status=status,
            paid_at=paid_at,
        )
        if not updated:
            logger.warning("Invoice %s changed during allocation", invoice.invoice_number)
            self.db.refresh(invoice)
            raise OverAllocationError(
                invoice_id=invoice_id,
                requested=amount,
                amount_due=invoice.amount_due,
                stale_read=True,
                invoice_number=str(invoice.invoice_number),
            )

        self.db.refresh(invoice)
        logger.debug(
            "Applied %s to invoice %s (paid %s of %s, %s)",
            amount,
            invoice.invoice_number,
            new_paid,
            total,
            status.value,
        )
        return invoice

    def refresh_status(self, invoice: Invoice, now: date | datetime | None = None) -> Invoice:
        """Re-derive a stored status so ``overdue`` tracks the calendar."""
        status = derive_status(
            money.from_storage(invoice.amount_paid),
            money.from_storage(invoice.total),
            invoice.due_date,
            now or utc_now(),
        )
        if invoice.status != status.value:
            self.invoice_repo.set_status(invoice, status)
        return invoice
