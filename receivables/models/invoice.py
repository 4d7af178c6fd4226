from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, func

from receivables.core import money
from receivables.core.database import Base
from receivables.models.shared import UUIDType, generate_uuid


class InvoiceStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("amount_paid >= 0", name="ck_invoices_amount_paid_non_negative"),
        CheckConstraint("amount_paid <= total", name="ck_invoices_amount_paid_within_total"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)
    customer_id = Column(
        UUIDType, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=InvoiceStatus.UNPAID.value)

    # Amounts (cents precision)
    total = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)

    currency = Column(String(3), nullable=False, default="USD")

    # Dates
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def amount_due(self) -> Decimal:
        """Total minus amount paid; derived, never stored."""
        return money.subtract(money.from_storage(self.total), money.from_storage(self.amount_paid))
