from receivables.repositories.customer_repository import CustomerRepository
from receivables.repositories.invoice_repository import InvoiceRepository
from receivables.repositories.payment_allocation_repository import PaymentAllocationRepository
from receivables.repositories.payment_repository import PaymentRepository

__all__ = [
    "CustomerRepository",
    "InvoiceRepository",
    "PaymentAllocationRepository",
    "PaymentRepository",
]
