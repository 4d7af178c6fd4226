from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from receivables.core.money import MAX_AMOUNT


class InvoiceCreate(BaseModel):
    customer_id: UUID
    total: Decimal = Field(..., gt=0, le=MAX_AMOUNT, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    issue_date: date | None = None
    due_date: date | None = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    customer_id: UUID
    status: str
    total: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    currency: str
    issue_date: date
    due_date: date | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = None
