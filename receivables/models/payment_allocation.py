"""PaymentAllocation model - binds part of a payment to one invoice."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, func

from receivables.core.database import Base
from receivables.models.shared import UUIDType, generate_uuid


class PaymentAllocation(Base):
    """Portion of a payment applied to an invoice.

    Rows are written once by the settlement transaction and never updated.
    They go away only with their payment; an invoice cannot be deleted while
    allocations reference it.
    """

    __tablename__ = "payment_allocations"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payment_allocations_amount_positive"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    payment_id = Column(
        UUIDType, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount = Column(Numeric(12, 2), nullable=False)
    # Order of the allocation within its payment
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
