"""Tests for database bootstrap helpers and referential integrity."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from receivables.core import database as db_module
from receivables.models.invoice import Invoice
from receivables.models.payment import Payment
from receivables.models.payment_allocation import PaymentAllocation
from receivables.schemas.payment import AllocationInput, PaymentCreate
from receivables.services.settlement_service import SettlementService


class TestInitDb:
    def test_creates_all_tables(self):
        db_module.Base.metadata.drop_all(bind=db_module.engine)

        db_module.init_db()

        tables = set(inspect(db_module.engine).get_table_names())
        assert {"customers", "invoices", "payments", "payment_allocations"} <= tables

    def test_get_db_closes_session(self):
        gen = db_module.get_db()
        session = next(gen)
        assert session.is_active
        gen.close()


class TestReferentialIntegrity:
    """Allocations belong to their payment and pin the invoices they pay."""

    @pytest.fixture
    def settled(self, db_session, customer, make_invoice):
        invoice = make_invoice("100.00")
        result = SettlementService(db_session).record_payment(
            PaymentCreate(
                customer_id=customer.id,
                amount=Decimal("60.00"),
                payment_date=date.today(),
                payment_method="cash",
                allocations=[AllocationInput(invoice_id=invoice.id, amount=Decimal("60.00"))],
            )
        )
        return invoice.id, result.payment.id

    def test_allocated_invoice_cannot_be_deleted(self, db_session, settled):
        invoice_id, _ = settled
        invoice = db_session.get(Invoice, invoice_id)

        db_session.delete(invoice)
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

        assert db_session.get(Invoice, invoice_id) is not None
        assert db_session.query(PaymentAllocation).count() == 1

    def test_deleting_payment_removes_its_allocations(self, db_session, settled):
        invoice_id, payment_id = settled

        db_session.delete(db_session.get(Payment, payment_id))
        db_session.commit()

        assert db_session.query(PaymentAllocation).count() == 0
        assert db_session.get(Invoice, invoice_id) is not None
