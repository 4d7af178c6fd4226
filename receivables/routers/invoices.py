"""Invoice API endpoints used by payment entry."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from receivables.core.database import get_db
from receivables.core.errors import InvoiceNotFoundError
from receivables.models.invoice import Invoice
from receivables.repositories.invoice_repository import InvoiceRepository
from receivables.repositories.payment_allocation_repository import PaymentAllocationRepository
from receivables.schemas.invoice import InvoiceResponse
from receivables.schemas.payment import ErrorResponse, PaymentAllocationResponse
from receivables.services.invoice_ledger import InvoiceLedger

router = APIRouter()


@router.get("/pending", response_model=list[InvoiceResponse], summary="List pending invoices")
async def list_pending_invoices(
    customer_id: UUID | None = None,
    db: Session = Depends(get_db),
) -> list[Invoice]:
    """Invoices with an amount still due, most urgent due date first."""
    repo = InvoiceRepository(db)
    ledger = InvoiceLedger(db)
    return [ledger.refresh_status(invoice) for invoice in repo.list_pending(customer_id=customer_id)]


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> Invoice:
    """Get an invoice by ID."""
    ledger = InvoiceLedger(db)
    return ledger.refresh_status(ledger.get_invoice(invoice_id))


@router.get(
    "/{invoice_id}/allocations",
    response_model=list[PaymentAllocationResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_invoice_allocations(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> list[PaymentAllocationResponse]:
    """Every payment allocation applied to an invoice."""
    invoice = InvoiceRepository(db).get_by_id(invoice_id)
    if not invoice:
        raise InvoiceNotFoundError(invoice_id)
    allocations = PaymentAllocationRepository(db).get_by_invoice_id(invoice_id)
    return [
        PaymentAllocationResponse.model_validate(a).model_copy(
            update={"invoice_number": invoice.invoice_number}
        )
        for a in allocations
    ]
