from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from receivables.core import money
from receivables.core.config import settings
from receivables.models.invoice import Invoice, InvoiceStatus
from receivables.schemas.invoice import InvoiceCreate


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def _generate_invoice_number(self) -> str:
        """Generate a unique invoice number."""
        today = datetime.now().strftime("%Y%m%d")
        prefix = f"{settings.INVOICE_NUMBER_PREFIX}-{today}-"

        # Get the highest invoice number for today
        result = (
            self.db.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.like(f"{prefix}%"))
            .order_by(Invoice.invoice_number.desc())
            .first()
        )

        if result:
            # Extract number from INV-YYYYMMDD-XXXX format
            try:
                new_num = int(result[0].split("-")[-1]) + 1
            except (ValueError, IndexError):
                new_num = 1
        else:
            new_num = 1

        return f"{prefix}{new_num:04d}"

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_for_update(self, invoice_id: UUID) -> Invoice | None:
        """Read an invoice holding a row lock until the transaction ends."""
        return (
            self.db.query(Invoice)
            .filter(Invoice.id == invoice_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def get_many_for_update(self, invoice_ids: list[UUID]) -> dict[UUID, Invoice]:
        if not invoice_ids:
            return {}
        invoices = (
            self.db.query(Invoice)
            .filter(Invoice.id.in_(invoice_ids))
            .order_by(Invoice.id)
            .populate_existing()
            .with_for_update()
            .all()
        )
        return {invoice.id: invoice for invoice in invoices}

    def list_pending(
        self,
        customer_id: UUID | None = None,
        for_update: bool = False,
    ) -> list[Invoice]:
        """Invoices with an amount still due, most urgent due date first."""
        query = self.db.query(Invoice).filter(Invoice.amount_paid < Invoice.total)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if for_update:
            query = query.populate_existing().with_for_update()

        invoices = query.all()
        # NULL due dates sort last; ties broken by invoice number
        return sorted(
            invoices,
            key=lambda i: (i.due_date is None, i.due_date or date.max, i.invoice_number),
        )

    def create(self, data: InvoiceCreate) -> Invoice:
        issue_date = data.issue_date or date.today()
        invoice = Invoice(
            invoice_number=self._generate_invoice_number(),
            customer_id=data.customer_id,
            total=money.to_money(data.total),
            amount_paid=money.ZERO,
            currency=data.currency,
            issue_date=issue_date,
            due_date=data.due_date,
            status=InvoiceStatus.UNPAID.value,
        )
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def compare_and_set_amount_paid(
        self,
        invoice_id: UUID,
        expected_amount_paid: Decimal,
        new_amount_paid: Decimal,
        status: InvoiceStatus,
        paid_at: datetime | None = None,
    ) -> bool:
        """Conditionally write a new amount paid.

        The row is only touched if its amount paid still equals the value the
        caller read, so two writers cannot both consume the same amount due.
        Returns False when nothing matched. Does not commit.
        """
        result = self.db.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.amount_paid == expected_amount_paid)
            .values(amount_paid=new_amount_paid, status=status.value, paid_at=paid_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_status(self, invoice: Invoice, status: InvoiceStatus) -> Invoice:
        invoice.status = status.value  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice
