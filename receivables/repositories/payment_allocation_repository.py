"""Payment allocation repository for data access."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from receivables.core import money
from receivables.models.payment_allocation import PaymentAllocation


class PaymentAllocationRepository:
    """Repository for PaymentAllocation model."""

    def __init__(self, db: Session):
        self.db = db

    def add(
        self, payment_id: UUID, invoice_id: UUID, amount: Decimal, position: int = 0
    ) -> PaymentAllocation:
        """Stage an allocation inside the current transaction. Does not commit."""
        allocation = PaymentAllocation(
            payment_id=payment_id,
            invoice_id=invoice_id,
            amount=money.to_money(amount),
            position=position,
        )
        self.db.add(allocation)
        self.db.flush()
        return allocation

    def get_by_payment_id(self, payment_id: UUID) -> list[PaymentAllocation]:
        """Get all allocations of a payment, in the order they were made."""
        return (
            self.db.query(PaymentAllocation)
            .filter(PaymentAllocation.payment_id == payment_id)
            .order_by(PaymentAllocation.position.asc())
            .all()
        )

    def get_by_invoice_id(self, invoice_id: UUID) -> list[PaymentAllocation]:
        """Get all allocations targeting an invoice."""
        return (
            self.db.query(PaymentAllocation)
            .filter(PaymentAllocation.invoice_id == invoice_id)
            .order_by(PaymentAllocation.created_at.asc())
            .all()
        )

    def get_total_allocated(self, invoice_id: UUID) -> Decimal:
        """Get the total amount allocated to an invoice across all payments."""
        # Summed in Python so the result stays exact on backends without DECIMAL
        return money.add(
            *(money.from_storage(a.amount) for a in self.get_by_invoice_id(invoice_id))
        )

    def get_total_for_payment(self, payment_id: UUID) -> Decimal:
        return money.add(
            *(money.from_storage(a.amount) for a in self.get_by_payment_id(payment_id))
        )
