"""Payment header validation and pre-commit allocation candidates."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from receivables.core import money
from receivables.core.errors import AllocationOverflowError, ValidationError
from receivables.models.payment import PaymentMethod
from receivables.schemas.payment import PaymentCreate


@dataclass(frozen=True)
class AllocationCandidate:
    """A proposed (invoice, amount) pair not yet applied to any invoice."""

    invoice_id: UUID
    amount: Decimal


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    raise ValueError(f"unsupported date value {value!r}")


class PaymentRecord:
    """A validated payment header plus the allocations proposed for it.

    Construction checks every header field and raises a single
    ``ValidationError`` naming all of the bad ones.
    """

    def __init__(
        self,
        customer_id: UUID | None,
        amount: Decimal | int | str | None,
        payment_date: date | str | None,
        payment_method: str | PaymentMethod | None,
        reference: str | None = None,
        notes: str | None = None,
    ):
        errors: list[dict[str, str]] = []

        if customer_id is None:
            errors.append({"field": "customer_id", "message": "Customer is required"})

        parsed_amount: Decimal | None = None
        if amount is None:
            errors.append({"field": "amount", "message": "Amount is required"})
        else:
            try:
                parsed_amount = money.to_money(amount)
            except money.MoneyPrecisionError as exc:
                errors.append({"field": "amount", "message": str(exc)})
            else:
                if parsed_amount <= 0:
                    errors.append({"field": "amount", "message": "Amount must be a positive number"})

        parsed_date: date | None = None
        if payment_date is None or payment_date == "":
            errors.append({"field": "payment_date", "message": "Payment date is required"})
        else:
            try:
                parsed_date = _parse_date(payment_date)
            except ValueError:
                errors.append(
                    {"field": "payment_date", "message": f"Invalid payment date {payment_date!r}"}
                )

        method: PaymentMethod | None = None
        if payment_method is None or payment_method == "":
            errors.append({"field": "payment_method", "message": "Payment method is required"})
        else:
            try:
                method = PaymentMethod(payment_method)
            except ValueError:
                allowed = ", ".join(m.value for m in PaymentMethod)
                errors.append(
                    {
                        "field": "payment_method",
                        "message": f"Payment method must be one of: {allowed}",
                    }
                )

        if errors:
            raise ValidationError(errors)

        self.customer_id: UUID = customer_id  # type: ignore[assignment]
        self.amount: Decimal = parsed_amount  # type: ignore[assignment]
        self.payment_date: date = parsed_date  # type: ignore[assignment]
        self.payment_method: PaymentMethod = method  # type: ignore[assignment]
        self.reference = reference or None
        self.notes = notes or None
        self._candidates: list[AllocationCandidate] = []

    @classmethod
    def from_request(cls, data: PaymentCreate) -> "PaymentRecord":
        return cls(
            customer_id=data.customer_id,
            amount=data.amount,
            payment_date=data.payment_date,
            payment_method=data.payment_method,
            reference=data.reference,
            notes=data.notes,
        )

    @property
    def candidates(self) -> list[AllocationCandidate]:
        return list(self._candidates)

    @property
    def allocated_total(self) -> Decimal:
        return money.add(*(c.amount for c in self._candidates))

    @property
    def unallocated_remainder(self) -> Decimal:
        return money.subtract(self.amount, self.allocated_total)

    def add_allocation_candidate(self, invoice_id: UUID, amount: Decimal) -> AllocationCandidate:
        """Propose part of this payment for an invoice.

        Only this payment's running total is checked here; the invoice's own
        amount due is checked when the allocation is applied.
        """
        try:
            value = money.to_money(amount)
        except money.MoneyPrecisionError as exc:
            raise ValidationError.single("allocations.amount", str(exc)) from None
        if value < 0:
            raise ValidationError.single(
                "allocations.amount", "Allocation amount must be a non-negative number"
            )

        cumulative = money.add(self.allocated_total, value)
        if cumulative > self.amount:
            raise AllocationOverflowError(payment_amount=self.amount, allocated_total=cumulative)

        candidate = AllocationCandidate(invoice_id=invoice_id, amount=value)
        self._candidates.append(candidate)
        return candidate

    def positive_candidates(self) -> list[AllocationCandidate]:
        """Candidates that will actually be committed."""
        return [c for c in self._candidates if c.amount > 0]
