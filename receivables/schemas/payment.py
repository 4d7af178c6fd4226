"""Payment and settlement schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from receivables.schemas.invoice import InvoiceResponse


class AllocationInput(BaseModel):
    """One caller-chosen (invoice, amount) pair."""

    invoice_id: UUID
    amount: Decimal


class PaymentCreate(BaseModel):
    """Request to record a customer payment.

    Header fields are deliberately loose here; ``PaymentRecord`` validates
    them together so every problem is reported at once.
    """

    customer_id: UUID | None = None
    amount: Decimal | None = None
    payment_date: date | str | None = None
    payment_method: str | None = None
    reference: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    allocations: list[AllocationInput] = Field(default_factory=list)
    auto_allocate: bool = Field(
        default=False,
        description="Distribute the payment over pending invoices, oldest first",
    )


class PaymentAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_id: UUID
    invoice_id: UUID
    invoice_number: str | None = None
    amount: Decimal
    created_at: datetime | None = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_number: str
    customer_id: UUID
    amount: Decimal
    currency: str
    payment_date: date
    payment_method: str
    reference: str | None = None
    notes: str | None = None
    status: str
    created_at: datetime | None = None
    completed_at: datetime | None = None


class PaymentDetailResponse(PaymentResponse):
    allocations: list[PaymentAllocationResponse] = Field(default_factory=list)
    allocated_total: Decimal
    unallocated_remainder: Decimal


class SettlementResponse(BaseModel):
    """Outcome of recording a payment."""

    payment: PaymentResponse
    applied_allocations: list[PaymentAllocationResponse]
    invoices: list[InvoiceResponse]
    unallocated_remainder: Decimal
    outcome: str
    message: str
    replayed: bool = False


class AutoAllocateRequest(BaseModel):
    customer_id: UUID
    amount: Decimal = Field(..., gt=0)


class ProposedAllocationResponse(BaseModel):
    invoice_id: UUID
    invoice_number: str
    amount_due: Decimal
    amount: Decimal


class AutoAllocateResponse(BaseModel):
    payment_amount: Decimal
    proposed_allocations: list[ProposedAllocationResponse]
    allocated_total: Decimal
    remainder: Decimal
    is_fully_allocated: bool


class ErrorResponse(BaseModel):
    """Structured error body returned for every rejected request."""

    kind: str
    category: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
