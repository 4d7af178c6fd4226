"""Settlement service: records a payment and applies it to invoices atomically."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from receivables.core import money
from receivables.core.config import settings
from receivables.core.errors import (
    InvoiceNotFoundError,
    SettlementError,
    SettlementSystemError,
    ValidationError,
)
from receivables.models.invoice import Invoice
from receivables.models.payment import Payment, PaymentStatus
from receivables.models.payment_allocation import PaymentAllocation
from receivables.models.shared import generate_uuid, utc_now
from receivables.repositories.customer_repository import CustomerRepository
from receivables.repositories.invoice_repository import InvoiceRepository
from receivables.repositories.payment_allocation_repository import PaymentAllocationRepository
from receivables.repositories.payment_repository import PaymentRepository
from receivables.schemas.payment import PaymentCreate
from receivables.services.allocation_engine import (
    AllocationPlan,
    OutstandingInvoice,
    SettlementOutcome,
    auto_allocate,
    validate_manual_allocations,
)
from receivables.services.invoice_ledger import InvoiceLedger
from receivables.services.payment_record import PaymentRecord

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    """What a committed settlement did."""

    payment: Payment
    applied_allocations: list[PaymentAllocation]
    invoices: list[Invoice]
    unallocated_remainder: Decimal
    replayed: bool = False
    invoice_numbers: dict[UUID, str] = field(default_factory=dict)

    @property
    def outcome(self) -> SettlementOutcome:
        if money.is_effectively_zero(self.unallocated_remainder):
            return SettlementOutcome.FULLY_APPLIED
        return SettlementOutcome.APPLIED_WITH_REMAINDER

    @property
    def message(self) -> str:
        if self.outcome == SettlementOutcome.FULLY_APPLIED:
            return "Payment fully applied"
        return (
            f"Payment applied with remainder {money.format_money(self.unallocated_remainder)} "
            "unallocated"
        )


class SettlementService:
    """Service for recording customer payments against invoices.

    A settlement either commits completely (payment, allocations, invoice
    amounts, statuses) or leaves nothing behind.
    """

    def __init__(self, db: Session):
        self.db = db
        self.customer_repo = CustomerRepository(db)
        self.invoice_repo = InvoiceRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.allocation_repo = PaymentAllocationRepository(db)
        self.ledger = InvoiceLedger(db)

    def record_payment(
        self,
        data: PaymentCreate,
        idempotency_key: str | None = None,
        now: datetime | None = None,
    ) -> SettlementResult:
        """Validate, allocate and commit a payment.

        1. Validate the payment header (all field errors at once).
        2. Resolve allocations, manual or oldest-first automatic.
        3. Apply each allocation to its invoice, persist payment and
           allocations, mark the payment completed.
        4. Verify conservation on every touched invoice, then commit.

        Any failure rolls the whole transaction back.
        """
        now = now or utc_now()
        record = PaymentRecord.from_request(data)

        if idempotency_key:
            existing = self.payment_repo.get_by_idempotency_key(idempotency_key)
            if existing is not None:
                return self._replay(existing, record)

        try:
            result = self._settle(data, record, idempotency_key, now)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if idempotency_key:
                # Lost a race with a request carrying the same key
                existing = self.payment_repo.get_by_idempotency_key(idempotency_key)
                if existing is not None:
                    return self._replay(existing, record)
            logger.exception("Integrity failure while recording payment")
            raise SettlementSystemError("Payment could not be recorded; nothing was applied") from None
        except SettlementError as exc:
            self.db.rollback()
            logger.warning("Payment rejected (%s): %s", exc.kind, exc.message)
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database failure while recording payment")
            raise SettlementSystemError("Payment could not be recorded; nothing was applied") from None

        for invoice in result.invoices:
            self.db.refresh(invoice)
        self.db.refresh(result.payment)
        logger.info(
            "payment.recorded %s customer=%s amount=%s allocated=%s remainder=%s",
            result.payment.payment_number,
            result.payment.customer_id,
            money.format_money(record.amount),
            money.format_money(record.allocated_total),
            money.format_money(result.unallocated_remainder),
        )
        return result

    def preview_auto_allocation(self, customer_id: UUID, amount: Decimal) -> AllocationPlan:
        """Oldest-first allocation of ``amount`` over the customer's pending invoices.

        Nothing is written.
        """
        try:
            payment_amount = money.to_money(amount)
        except money.MoneyPrecisionError as exc:
            raise ValidationError.single("amount", str(exc)) from None
        if payment_amount <= 0:
            raise ValidationError.single("amount", "Amount must be a positive number")
        if not self.customer_repo.exists(customer_id):
            raise ValidationError.single("customer_id", "Customer not found")

        pending = self.invoice_repo.list_pending(customer_id=customer_id)
        return auto_allocate(payment_amount, [OutstandingInvoice.from_invoice(i) for i in pending])

    def _settle(
        self,
        data: PaymentCreate,
        record: PaymentRecord,
        idempotency_key: str | None,
        now: datetime,
    ) -> SettlementResult:
        if not self.customer_repo.exists(record.customer_id):
            raise ValidationError.single("customer_id", "Customer not found")

        plan = self._resolve_plan(data, record)
        for proposed in plan.allocations:
            record.add_allocation_candidate(proposed.invoice_id, proposed.amount)

        payment = self.payment_repo.add(
            Payment(
                id=generate_uuid(),
                payment_number=self.payment_repo.generate_payment_number(),
                customer_id=record.customer_id,
                amount=record.amount,
                currency=settings.DEFAULT_CURRENCY,
                payment_date=record.payment_date,
                payment_method=record.payment_method.value,
                reference=record.reference,
                notes=record.notes,
                status=PaymentStatus.PENDING.value,
                idempotency_key=idempotency_key,
            )
        )

        applied: list[PaymentAllocation] = []
        touched: dict[UUID, Invoice] = {}
        before: dict[UUID, Decimal] = {}
        for position, proposed in enumerate(plan.allocations):
            before.setdefault(proposed.invoice_id, proposed.amount_paid_snapshot)
            invoice = self.ledger.apply_payment(
                proposed.invoice_id,
                proposed.amount,
                expected_amount_paid=proposed.amount_paid_snapshot,
                now=now,
            )
            touched[proposed.invoice_id] = invoice
            applied.append(
                self.allocation_repo.add(
                    payment_id=payment.id,  # type: ignore[arg-type]
                    invoice_id=proposed.invoice_id,
                    amount=proposed.amount,
                    position=position,
                )
            )

        self.payment_repo.mark_completed(payment)
        self._verify(payment, record, applied, touched)

        return SettlementResult(
            payment=payment,
            applied_allocations=applied,
            invoices=list(touched.values()),
            unallocated_remainder=record.unallocated_remainder,
            invoice_numbers={a.invoice_id: a.invoice_number for a in plan.allocations},
        )

    def _resolve_plan(self, data: PaymentCreate, record: PaymentRecord) -> AllocationPlan:
        if data.auto_allocate and data.allocations:
            raise ValidationError.single(
                "allocations", "Provide allocations or auto_allocate, not both"
            )

        if data.auto_allocate:
            pending = self.invoice_repo.list_pending(customer_id=record.customer_id, for_update=True)
            return auto_allocate(record.amount, [OutstandingInvoice.from_invoice(i) for i in pending])

        invoice_ids = [entry.invoice_id for entry in data.allocations]
        invoices = self.invoice_repo.get_many_for_update(list(dict.fromkeys(invoice_ids)))
        errors: list[dict[str, str]] = []
        for index, entry in enumerate(data.allocations):
            invoice = invoices.get(entry.invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(entry.invoice_id)
            if invoice.customer_id != record.customer_id:
                errors.append(
                    {
                        "field": f"allocations[{index}].invoice_id",
                        "message": f"Invoice {invoice.invoice_number} belongs to another customer",
                    }
                )
        if errors:
            raise ValidationError(errors, message="Invalid allocations")

        return validate_manual_allocations(
            record.amount,
            data.allocations,
            {invoice_id: OutstandingInvoice.from_invoice(i) for invoice_id, i in invoices.items()},
        )

    def _verify(
        self,
        payment: Payment,
        record: PaymentRecord,
        applied: list[PaymentAllocation],
        touched: dict[UUID, Invoice],
    ) -> None:
        """Conservation check before commit."""
        self.db.flush()
        for invoice_id, invoice in touched.items():
            paid = money.from_storage(invoice.amount_paid)
            allocated = self.allocation_repo.get_total_allocated(invoice_id)
            if paid != allocated:
                raise SettlementSystemError(
                    "Invoice amount paid does not match its allocations",
                    retryable=False,
                    details={
                        "invoice_id": str(invoice_id),
                        "amount_paid": money.format_money(paid),
                        "allocated": money.format_money(allocated),
                    },
                )
            if paid > money.from_storage(invoice.total):
                raise SettlementSystemError(
                    "Invoice amount paid exceeds its total",
                    retryable=False,
                    details={"invoice_id": str(invoice_id)},
                )

        allocated_total = money.add(*(money.from_storage(a.amount) for a in applied))
        if allocated_total > record.amount:
            raise SettlementSystemError(
                "Payment allocations exceed the payment amount",
                retryable=False,
                details={"payment_id": str(payment.id)},
            )

    def _replay(self, payment: Payment, record: PaymentRecord) -> SettlementResult:
        """Return the settlement already committed under an idempotency key."""
        if payment.customer_id != record.customer_id or money.from_storage(
            payment.amount
        ) != record.amount:
            raise ValidationError.single(
                "idempotency_key",
                "Idempotency key was already used for a different payment",
            )

        allocations = self.allocation_repo.get_by_payment_id(payment.id)  # type: ignore[arg-type]
        invoices: list[Invoice] = []
        for invoice_id in dict.fromkeys(a.invoice_id for a in allocations):
            invoice = self.invoice_repo.get_by_id(invoice_id)
            if invoice is not None:
                invoices.append(invoice)
        allocated = money.add(*(money.from_storage(a.amount) for a in allocations))

        logger.info("Replayed payment %s for idempotency key", payment.payment_number)
        return SettlementResult(
            payment=payment,
            applied_allocations=allocations,
            invoices=invoices,
            unallocated_remainder=money.subtract(money.from_storage(payment.amount), allocated),
            replayed=True,
            invoice_numbers={i.id: str(i.invoice_number) for i in invoices},
        )
