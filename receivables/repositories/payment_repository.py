"""Payment repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from receivables.core.config import settings
from receivables.models.payment import Payment, PaymentStatus
from receivables.models.shared import utc_now


class PaymentRepository:
    """Repository for Payment model."""

    def __init__(self, db: Session):
        self.db = db

    def generate_payment_number(self) -> str:
        """Generate a unique payment number (PMT-YYYYMMDD-XXXX)."""
        today = datetime.now().strftime("%Y%m%d")
        prefix = f"{settings.PAYMENT_NUMBER_PREFIX}-{today}-"

        result = (
            self.db.query(Payment.payment_number)
            .filter(Payment.payment_number.like(f"{prefix}%"))
            .order_by(Payment.payment_number.desc())
            .first()
        )

        if result:
            try:
                new_num = int(result[0].split("-")[-1]) + 1
            except (ValueError, IndexError):
                new_num = 1
        else:
            new_num = 1

        return f"{prefix}{new_num:04d}"

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        customer_id: UUID | None = None,
        status: PaymentStatus | None = None,
    ) -> list[Payment]:
        """Get payments with optional filters, newest payment date first."""
        query = self.db.query(Payment)

        if customer_id:
            query = query.filter(Payment.customer_id == customer_id)
        if status:
            query = query.filter(Payment.status == status.value)

        return (
            query.order_by(Payment.payment_date.desc(), Payment.payment_number.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """Get a payment by ID."""
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def get_by_idempotency_key(self, idempotency_key: str) -> Payment | None:
        return (
            self.db.query(Payment).filter(Payment.idempotency_key == idempotency_key).first()
        )

    def add(self, payment: Payment) -> Payment:
        """Stage a payment inside the current transaction. Does not commit."""
        self.db.add(payment)
        self.db.flush()
        return payment

    def mark_completed(self, payment: Payment) -> Payment:
        """Mark a staged payment as completed. Does not commit."""
        payment.status = PaymentStatus.COMPLETED.value  # type: ignore[assignment]
        payment.completed_at = utc_now()  # type: ignore[assignment]
        self.db.flush()
        return payment
