"""Allocation of a payment amount across outstanding invoices.

Everything here is pure and in-memory: no session, no writes. Plans produced
here are applied by the settlement service.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from receivables.core import money
from receivables.core.errors import (
    AllocationExceedsPaymentError,
    InvoiceNotFoundError,
    OverAllocationError,
    ValidationError,
)
from receivables.models.invoice import Invoice


class SettlementOutcome(str, Enum):
    FULLY_APPLIED = "fully_applied"
    APPLIED_WITH_REMAINDER = "applied_with_remainder"


@dataclass(frozen=True)
class OutstandingInvoice:
    """Snapshot of an invoice that can still receive money."""

    invoice_id: UUID
    invoice_number: str
    amount_due: Decimal
    issue_date: date | None = None
    amount_paid: Decimal = money.ZERO

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "OutstandingInvoice":
        return cls(
            invoice_id=invoice.id,  # type: ignore[arg-type]
            invoice_number=str(invoice.invoice_number),
            amount_due=invoice.amount_due,
            issue_date=invoice.issue_date,  # type: ignore[arg-type]
            amount_paid=money.from_storage(invoice.amount_paid),
        )


@dataclass(frozen=True)
class ProposedAllocation:
    invoice_id: UUID
    invoice_number: str
    amount: Decimal
    amount_due: Decimal
    # Amount paid seen when planning, used to detect concurrent changes
    amount_paid_snapshot: Decimal = money.ZERO


@dataclass
class AllocationPlan:
    """Strictly positive allocations plus whatever was left over."""

    payment_amount: Decimal
    allocations: list[ProposedAllocation] = field(default_factory=list)

    @property
    def allocated_total(self) -> Decimal:
        return money.add(*(a.amount for a in self.allocations))

    @property
    def remainder(self) -> Decimal:
        return money.subtract(self.payment_amount, self.allocated_total)

    @property
    def is_fully_allocated(self) -> bool:
        return money.is_effectively_zero(self.remainder)

    @property
    def has_remainder(self) -> bool:
        """Advisory only: part of the payment stays unapplied."""
        return not self.is_fully_allocated

    @property
    def outcome(self) -> SettlementOutcome:
        if self.is_fully_allocated:
            return SettlementOutcome.FULLY_APPLIED
        return SettlementOutcome.APPLIED_WITH_REMAINDER


class AllocationEntry(Protocol):
    invoice_id: UUID
    amount: Decimal


def order_oldest_first(invoices: Iterable[OutstandingInvoice]) -> list[OutstandingInvoice]:
    """Longest-outstanding debt first: issue date, then invoice number, then id."""
    return sorted(
        invoices,
        key=lambda i: (
            i.issue_date is None,
            i.issue_date or date.min,
            i.invoice_number,
            str(i.invoice_id),
        ),
    )


def auto_allocate(payment_amount: Decimal, invoices: Iterable[OutstandingInvoice]) -> AllocationPlan:
    """Greedy oldest-first allocation.

    Each invoice takes ``min(remaining, amount_due)`` until the payment runs
    out. Invoices not reached get nothing and are left out of the plan. Money
    left after the last invoice is reported as the plan's remainder, never
    pushed onto an invoice.
    """
    payment_amount = money.to_money(payment_amount)
    plan = AllocationPlan(payment_amount=payment_amount)
    remaining = payment_amount

    for invoice in order_oldest_first(invoices):
        if money.is_effectively_zero(remaining) or remaining < 0:
            break
        if invoice.amount_due <= 0:
            continue
        amount = min(remaining, invoice.amount_due)
        plan.allocations.append(
            ProposedAllocation(
                invoice_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
                amount=amount,
                amount_due=invoice.amount_due,
                amount_paid_snapshot=invoice.amount_paid,
            )
        )
        remaining = money.subtract(remaining, amount)

    return plan


def validate_manual_allocations(
    payment_amount: Decimal,
    entries: Sequence[AllocationEntry],
    invoices: Mapping[UUID, OutstandingInvoice],
) -> AllocationPlan:
    """Check caller-chosen allocations before anything is written.

    Raises:
        ValidationError: negative, sub-cent or duplicate entries.
        InvoiceNotFoundError: an entry targets an invoice not in ``invoices``.
        AllocationExceedsPaymentError: entries add up to more than the payment.
        OverAllocationError: an entry exceeds its invoice's amount due.
    """
    payment_amount = money.to_money(payment_amount)

    errors: list[dict[str, str]] = []
    amounts: list[Decimal] = []
    seen: set[UUID] = set()
    for index, entry in enumerate(entries):
        try:
            amount = money.to_money(entry.amount)
        except money.MoneyPrecisionError as exc:
            errors.append({"field": f"allocations[{index}].amount", "message": str(exc)})
            amounts.append(money.ZERO)
            continue
        if amount < 0:
            errors.append(
                {
                    "field": f"allocations[{index}].amount",
                    "message": "Allocation amount must be a non-negative number",
                }
            )
        if entry.invoice_id in seen:
            errors.append(
                {
                    "field": f"allocations[{index}].invoice_id",
                    "message": f"Invoice {entry.invoice_id} is allocated more than once",
                }
            )
        seen.add(entry.invoice_id)
        amounts.append(amount)
    if errors:
        raise ValidationError(errors, message="Invalid allocations")

    for entry in entries:
        if entry.invoice_id not in invoices:
            raise InvoiceNotFoundError(entry.invoice_id)

    allocated_total = money.add(*amounts)
    if allocated_total > payment_amount:
        raise AllocationExceedsPaymentError(
            payment_amount=payment_amount, allocated_total=allocated_total
        )

    plan = AllocationPlan(payment_amount=payment_amount)
    for entry, amount in zip(entries, amounts, strict=True):
        invoice = invoices[entry.invoice_id]
        if amount > invoice.amount_due:
            raise OverAllocationError(
                invoice_id=invoice.invoice_id,
                requested=amount,
                amount_due=invoice.amount_due,
                invoice_number=invoice.invoice_number,
            )
        if amount == 0:
            continue
        plan.allocations.append(
            ProposedAllocation(
                invoice_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
                amount=amount,
                amount_due=invoice.amount_due,
                amount_paid_snapshot=invoice.amount_paid,
            )
        )

    return plan
