from receivables.models.customer import Customer
from receivables.models.invoice import Invoice, InvoiceStatus
from receivables.models.payment import Payment, PaymentMethod, PaymentStatus
from receivables.models.payment_allocation import PaymentAllocation

__all__ = [
    "Customer",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentAllocation",
    "PaymentMethod",
    "PaymentStatus",
]
