from receivables.schemas.customer import CustomerCreate
from receivables.schemas.invoice import InvoiceCreate, InvoiceResponse
from receivables.schemas.payment import (
    AllocationInput,
    AutoAllocateRequest,
    AutoAllocateResponse,
    ErrorResponse,
    PaymentAllocationResponse,
    PaymentCreate,
    PaymentDetailResponse,
    PaymentResponse,
    ProposedAllocationResponse,
    SettlementResponse,
)

__all__ = [
    "AllocationInput",
    "AutoAllocateRequest",
    "AutoAllocateResponse",
    "CustomerCreate",
    "ErrorResponse",
    "InvoiceCreate",
    "InvoiceResponse",
    "PaymentAllocationResponse",
    "PaymentCreate",
    "PaymentDetailResponse",
    "PaymentResponse",
    "ProposedAllocationResponse",
    "SettlementResponse",
]
