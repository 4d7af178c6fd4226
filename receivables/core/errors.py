"""Error taxonomy for payment settlement.

Every error carries a stable ``kind`` (what went wrong) and a ``category``
(validation, business_rule, not_found, system) so callers can tell a malformed
request from a rule violation from a transient fault.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID


class SettlementError(Exception):
    """Base exception for settlement errors."""

    kind = "SettlementError"
    category = "system"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "category": self.category,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SettlementError):
    """Malformed input. ``errors`` lists every violated field, not just the first."""

    kind = "ValidationError"
    category = "validation"
    status_code = 422

    def __init__(self, errors: list[dict[str, str]], message: str = "Invalid payment request"):
        self.errors = errors
        super().__init__(message, details={"errors": errors})

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}], message=message)

    @property
    def fields(self) -> list[str]:
        return [e["field"] for e in self.errors]


class BusinessRuleError(SettlementError):
    category = "business_rule"
    status_code = 409


class OverAllocationError(BusinessRuleError):
    """An allocation asks for more than the invoice still has due.

    ``stale_read`` is set when the due amount changed between the caller's read
    and the write, so refreshing and resubmitting may succeed.
    """

    kind = "OverAllocationError"

    def __init__(
        self,
        invoice_id: UUID,
        requested: Decimal,
        amount_due: Decimal,
        stale_read: bool = False,
        invoice_number: str | None = None,
    ):
        self.invoice_id = invoice_id
        self.requested = requested
        self.amount_due = amount_due
        self.stale_read = stale_read
        label = invoice_number or str(invoice_id)
        message = f"Allocation of {requested:.2f} exceeds amount due {amount_due:.2f} on invoice {label}"
        if stale_read:
            message += " (invoice changed since it was read; refresh and resubmit)"
        super().__init__(
            message,
            details={
                "invoice_id": str(invoice_id),
                "invoice_number": invoice_number,
                "requested": f"{requested:.2f}",
                "amount_due": f"{amount_due:.2f}",
                "stale_read": stale_read,
            },
        )


class AllocationExceedsPaymentError(BusinessRuleError):
    """Allocations add up to more money than the customer paid."""

    kind = "AllocationExceedsPaymentError"

    def __init__(self, payment_amount: Decimal, allocated_total: Decimal):
        self.payment_amount = payment_amount
        self.allocated_total = allocated_total
        super().__init__(
            f"Total allocations {allocated_total:.2f} exceed payment amount {payment_amount:.2f}",
            details={
                "payment_amount": f"{payment_amount:.2f}",
                "allocated_total": f"{allocated_total:.2f}",
                "excess": f"{allocated_total - payment_amount:.2f}",
            },
        )


class AllocationOverflowError(AllocationExceedsPaymentError):
    """Raised while building a payment when candidates outgrow its amount."""


class InvoiceNotFoundError(SettlementError):
    kind = "InvoiceNotFoundError"
    category = "not_found"
    status_code = 404

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(
            f"Invoice with id '{invoice_id}' not found",
            details={"invoice_id": str(invoice_id)},
        )


class SettlementSystemError(SettlementError):
    """Persistence or consistency failure. Nothing was committed."""

    kind = "SystemError"
    category = "system"
    status_code = 503

    def __init__(self, message: str, retryable: bool = True, details: dict[str, Any] | None = None):
        self.retryable = retryable
        super().__init__(message, details={**(details or {}), "retryable": retryable})


class PaymentNotFoundError(SettlementError):
    kind = "PaymentNotFoundError"
    category = "not_found"
    status_code = 404

    def __init__(self, payment_id: UUID):
        self.payment_id = payment_id
        super().__init__(
            f"Payment with id '{payment_id}' not found",
            details={"payment_id": str(payment_id)},
        )
