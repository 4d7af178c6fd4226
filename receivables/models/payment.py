"""Customer payment model."""

from enum import Enum
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    func,
)

from receivables.core.database import Base
from receivables.models.shared import UUIDType, generate_uuid


class PaymentStatus(str, Enum):
    """Payment status enum."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    """How the customer paid."""

    CASH = "cash"
    CHEQUE = "cheque"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: Any) -> "PaymentMethod | None":
        # Older clients send camelCase ("bankTransfer") or words ("Bank Transfer")
        if not isinstance(value, str):
            return None
        raw = value.strip()
        snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in raw).lstrip("_")
        for candidate in (raw.lower(), snake):
            candidate = candidate.replace(" ", "_").replace("-", "_")
            for member in cls:
                if member.value == candidate:
                    return member
        return None


class Payment(Base):
    """Payment received from a customer, owner of its allocations."""

    __tablename__ = "payments"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payments_amount_positive"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    payment_number = Column(String(50), unique=True, index=True, nullable=False)
    customer_id = Column(
        UUIDType, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    payment_date = Column(Date, nullable=False)
    payment_method = Column(String(20), nullable=False)
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    # Client-supplied key so a retried settlement is not applied twice
    idempotency_key = Column(String(255), unique=True, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
