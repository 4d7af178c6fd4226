"""Tests for invoice API endpoints."""

from datetime import date, timedelta
from uuid import uuid4

TODAY = date.today()


class TestPendingInvoices:
    def test_sorted_by_due_date(self, client, customer, make_invoice):
        later = make_invoice("100.00", due_date=TODAY + timedelta(days=30))
        sooner = make_invoice("100.00", due_date=TODAY + timedelta(days=5))

        response = client.get("/v1/invoices/pending", params={"customer_id": str(customer.id)})

        assert response.status_code == 200
        assert [i["id"] for i in response.json()] == [str(sooner.id), str(later.id)]

    def test_paid_invoices_excluded(self, client, customer, make_invoice):
        paid = make_invoice("50.00")
        open_invoice = make_invoice("80.00")
        client.post(
            "/v1/payments/",
            json={
                "customer_id": str(customer.id),
                "amount": "50.00",
                "payment_date": TODAY.isoformat(),
                "payment_method": "cash",
                "allocations": [{"invoice_id": str(paid.id), "amount": "50.00"}],
            },
        )

        response = client.get("/v1/invoices/pending")

        assert [i["id"] for i in response.json()] == [str(open_invoice.id)]

    def test_overdue_status_refreshed(self, client, customer, make_invoice):
        invoice = make_invoice(
            "100.00",
            issue_date=TODAY - timedelta(days=60),
            due_date=TODAY - timedelta(days=30),
        )

        response = client.get("/v1/invoices/pending")

        data = response.json()
        assert data[0]["id"] == str(invoice.id)
        assert data[0]["status"] == "overdue"
        assert data[0]["amount_due"] == "100.00"


class TestGetInvoice:
    def test_get_invoice(self, client, make_invoice):
        invoice = make_invoice("250.00")

        response = client.get(f"/v1/invoices/{invoice.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["invoice_number"] == invoice.invoice_number
        assert data["total"] == "250.00"
        assert data["status"] == "unpaid"

    def test_not_found(self, client):
        response = client.get(f"/v1/invoices/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["kind"] == "InvoiceNotFoundError"
        assert response.json()["category"] == "not_found"

    def test_allocations(self, client, customer, make_invoice):
        invoice = make_invoice("100.00")
        for amount in ("30.00", "20.00"):
            client.post(
                "/v1/payments/",
                json={
                    "customer_id": str(customer.id),
                    "amount": amount,
                    "payment_date": TODAY.isoformat(),
                    "payment_method": "cheque",
                    "allocations": [{"invoice_id": str(invoice.id), "amount": amount}],
                },
            )

        response = client.get(f"/v1/invoices/{invoice.id}/allocations")

        assert response.status_code == 200
        assert sorted(a["amount"] for a in response.json()) == ["20.00", "30.00"]
        assert {a["invoice_number"] for a in response.json()} == {invoice.invoice_number}

    def test_allocations_unknown_invoice(self, client):
        response = client.get(f"/v1/invoices/{uuid4()}/allocations")
        assert response.status_code == 404
