"""Payment API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response
from sqlalchemy.orm import Session

from receivables.core import money
from receivables.core.database import get_db
from receivables.core.errors import PaymentNotFoundError
from receivables.models.payment import Payment, PaymentStatus
from receivables.repositories.invoice_repository import InvoiceRepository
from receivables.repositories.payment_allocation_repository import PaymentAllocationRepository
from receivables.repositories.payment_repository import PaymentRepository
from receivables.schemas.invoice import InvoiceResponse
from receivables.schemas.payment import (
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
from receivables.services.settlement_service import SettlementResult, SettlementService

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    404: {"model": ErrorResponse, "description": "Invoice not found"},
    409: {"model": ErrorResponse, "description": "Allocation rule violated"},
    422: {"model": ErrorResponse, "description": "Invalid payment request"},
    503: {"model": ErrorResponse, "description": "Payment could not be recorded"},
}


def _settlement_response(result: SettlementResult) -> SettlementResponse:
    return SettlementResponse(
        payment=PaymentResponse.model_validate(result.payment),
        applied_allocations=[
            PaymentAllocationResponse.model_validate(a).model_copy(
                update={"invoice_number": result.invoice_numbers.get(a.invoice_id)}
            )
            for a in result.applied_allocations
        ],
        invoices=[InvoiceResponse.model_validate(i) for i in result.invoices],
        unallocated_remainder=result.unallocated_remainder,
        outcome=result.outcome.value,
        message=result.message,
        replayed=result.replayed,
    )


@router.get("/", response_model=list[PaymentResponse])
async def list_payments(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    customer_id: UUID | None = None,
    status: PaymentStatus | None = None,
    db: Session = Depends(get_db),
) -> list[Payment]:
    """List payments, newest first, optionally for one customer."""
    repo = PaymentRepository(db)
    return repo.get_all(skip=skip, limit=limit, customer_id=customer_id, status=status)


@router.post(
    "/",
    response_model=SettlementResponse,
    status_code=201,
    responses=_ERROR_RESPONSES,
)
async def record_payment(
    data: PaymentCreate,
    response: Response,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
) -> SettlementResponse:
    """Record a customer payment and apply it to invoices.

    Allocations are either listed explicitly or, with ``auto_allocate``,
    spread over the customer's pending invoices oldest first. Any money not
    applied is reported as ``unallocated_remainder``.
    """
    service = SettlementService(db)
    result = service.record_payment(data, idempotency_key=idempotency_key)
    if result.replayed:
        response.status_code = 200
        response.headers["Idempotency-Replayed"] = "true"
    return _settlement_response(result)


@router.post(
    "/auto_allocate",
    response_model=AutoAllocateResponse,
    responses={422: {"model": ErrorResponse}},
)
async def preview_auto_allocation(
    data: AutoAllocateRequest,
    db: Session = Depends(get_db),
) -> AutoAllocateResponse:
    """Preview oldest-first allocation of an amount. Nothing is saved."""
    service = SettlementService(db)
    plan = service.preview_auto_allocation(data.customer_id, data.amount)
    return AutoAllocateResponse(
        payment_amount=plan.payment_amount,
        proposed_allocations=[
            ProposedAllocationResponse(
                invoice_id=a.invoice_id,
                invoice_number=a.invoice_number,
                amount_due=a.amount_due,
                amount=a.amount,
            )
            for a in plan.allocations
        ],
        allocated_total=plan.allocated_total,
        remainder=plan.remainder,
        is_fully_allocated=plan.is_fully_allocated,
    )


@router.get(
    "/{payment_id}",
    response_model=PaymentDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
) -> PaymentDetailResponse:
    """Get a payment with its allocations."""
    payment = PaymentRepository(db).get_by_id(payment_id)
    if not payment:
        raise PaymentNotFoundError(payment_id)

    allocation_repo = PaymentAllocationRepository(db)
    allocations = allocation_repo.get_by_payment_id(payment_id)
    invoice_repo = InvoiceRepository(db)
    numbers: dict[UUID, str] = {}
    for allocation in allocations:
        invoice = invoice_repo.get_by_id(allocation.invoice_id)  # type: ignore[arg-type]
        if invoice is not None:
            numbers[invoice.id] = str(invoice.invoice_number)  # type: ignore[index]

    allocated_total = allocation_repo.get_total_for_payment(payment_id)
    return PaymentDetailResponse(
        **PaymentResponse.model_validate(payment).model_dump(),
        allocations=[
            PaymentAllocationResponse.model_validate(a).model_copy(
                update={"invoice_number": numbers.get(a.invoice_id)}
            )
            for a in allocations
        ],
        allocated_total=allocated_total,
        unallocated_remainder=money.subtract(money.from_storage(payment.amount), allocated_total),
    )
