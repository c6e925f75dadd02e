"""
Invoice API Tests
"""
import re
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import InvalidState, NotFound, ValidationError
from app.models.invoice import Invoice
from app.models.quotation import Quotation
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from app.schemas.quotation import QuotationSubmit
from tests.conftest import TODAY


@pytest.fixture
def created_invoice(test_client, auth_headers, invoice_payload):
    response = test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers)
    assert response.status_code == 201
    return response.json()


class TestCreateInvoice:
    """Invoice creation"""

    def test_create_success(self, test_client, auth_headers, admin_user, invoice_payload):
        """
        Test: Draft invoice for 500.00 at 16%
        Expected: 201, tax 80.00, total 580.00, whole total still owed
        """
        response = test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert re.fullmatch(r"INV-2025\d{9}", data["invoice_number"])
        assert data["status"] == "draft"
        assert data["calculated_status"] == "draft"
        assert data["payment_status"] == "unpaid"
        assert data["subtotal"] == 500.0
        assert data["tax_amount"] == 80.0
        assert data["total"] == 580.0
        assert data["amount_paid"] == 0.0
        assert data["balance_due"] == 580.0
        assert data["issue_date"] == TODAY.isoformat()
        assert data["due_date"] == (TODAY + timedelta(days=30)).isoformat()
        assert data["days_until_due"] == 30
        assert data["totals_overridden"] is False
        assert len(data["items"]) == 1
        assert data["items"][0]["tax_amount"] == 80.0
        assert data["items"][0]["total"] == 580.0

    def test_create_missing_customer(self, test_client, auth_headers, invoice_payload):
        """
        Test: No customer email
        Expected: 400 VALIDATION_ERROR
        """
        del invoice_payload["customer_email"]
        response = test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_due_before_issue(self, test_client, auth_headers, invoice_payload):
        invoice_payload["issue_date"] = TODAY.isoformat()
        invoice_payload["due_date"] = (TODAY - timedelta(days=1)).isoformat()
        response = test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers)
        assert response.status_code == 422

    def test_create_requires_authentication(self, test_client, invoice_payload):
        response = test_client.post("/api/invoices", json=invoice_payload)
        assert response.status_code in (401, 403)

    def test_default_tax_rate(self, invoice_service, invoice_payload):
        """
        Test: No tax rate given
        Expected: Configured default of 16%
        """
        del invoice_payload["tax_rate"]
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        assert invoice.tax_rate == Decimal("16.00")
        assert invoice.total == Decimal("580.00")

    def test_subtotal_derived_from_items(self, invoice_service, invoice_payload):
        del invoice_payload["subtotal"]
        invoice_payload["items"].append({"item_name": "Travel", "quantity": 1, "unit_price": 40})
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        assert invoice.subtotal == Decimal("540.00")

    def test_discount_and_shipping(self, invoice_service, invoice_payload):
        """
        Test: 10% discount and 20.00 shipping on 500.00 at 16%
        Expected: taxable 470.00, tax 75.20, total 545.20
        """
        invoice_payload.update({"discount_type": "percentage", "discount_value": 10, "shipping_amount": 20})
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        assert invoice.discount_amount == Decimal("50.00")
        assert invoice.tax_amount == Decimal("75.20")
        assert invoice.total == Decimal("545.20")

    def test_caller_total_is_kept_and_flagged(self, invoice_service, invoice_payload):
        invoice_payload["total"] = 600
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        assert invoice.total == Decimal("600.00")
        assert invoice.balance_due == Decimal("600.00")
        assert invoice.totals_overridden is True

    def test_invalid_item_quantity(self, invoice_service, invoice_payload):
        invoice_payload["items"][0]["quantity"] = 0
        with pytest.raises(ValidationError):
            invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

    def test_create_from_quotation(self, db_session, invoice_service, quotation_service, quotation_payload, invoice_payload):
        """
        Test: Invoice created with a quotation link
        Expected: Quotation converted in the same operation
        """
        quotation = quotation_service.submit(QuotationSubmit.model_validate(quotation_payload))
        invoice_payload["quotation_id"] = str(quotation.id)

        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        db_session.refresh(quotation)
        assert invoice.quotation_reference == quotation.quotation_id
        assert quotation.status == "converted"
        assert quotation.converted_to_invoice_id == invoice.id

    def test_create_from_unknown_quotation(self, invoice_service, invoice_payload):
        invoice_payload["quotation_id"] = str(uuid.uuid4())
        with pytest.raises(NotFound):
            invoice_service.create(InvoiceCreate.model_validate(invoice_payload))


class TestReadInvoices:
    """Lookups and listing"""

    def test_get_stamps_viewed(self, test_client, auth_headers, created_invoice):
        response = test_client.get(f"/api/invoices/{created_invoice['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["viewed_at"] is not None

    def test_get_unknown(self, test_client, auth_headers):
        response = test_client.get(f"/api/invoices/{uuid.uuid4()}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_get_by_number(self, test_client, auth_headers, created_invoice):
        response = test_client.get(
            f"/api/invoices/number/{created_invoice['invoice_number']}",
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["id"] == created_invoice["id"]

    def test_list_filters(self, test_client, auth_headers, invoice_payload):
        test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers)
        invoice_payload.update({"customer_name": "Globex", "customer_email": "ap@globex.example"})
        test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers)

        everything = test_client.get("/api/invoices", headers=auth_headers).json()
        searched = test_client.get("/api/invoices?search=globex", headers=auth_headers).json()
        by_customer = test_client.get(
            "/api/invoices?customer=billing@acme.example", headers=auth_headers
        ).json()
        paid = test_client.get("/api/invoices?status=paid", headers=auth_headers).json()

        assert len(everything) == 2
        assert [i["customer_name"] for i in searched] == ["Globex"]
        assert [i["customer_name"] for i in by_customer] == ["Acme Ltd"]
        assert paid == []

    def test_list_invalid_status(self, test_client, auth_headers):
        response = test_client.get("/api/invoices?status=bogus", headers=auth_headers)
        assert response.status_code == 400

    def test_overdue_is_derived(self, test_client, auth_headers, db_session, invoice_payload):
        """
        Test: Unpaid invoice whose due date has passed
        Expected: Stored status unchanged, calculated status and filter say overdue
        """
        invoice_payload["issue_date"] = (TODAY - timedelta(days=40)).isoformat()
        created = test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers).json()

        assert created["status"] == "draft"
        assert created["calculated_status"] == "overdue"
        assert created["days_until_due"] == -10

        overdue = test_client.get("/api/invoices?status=overdue", headers=auth_headers).json()
        assert [i["id"] for i in overdue] == [created["id"]]

        stored = db_session.query(Invoice).filter(Invoice.invoice_number == created["invoice_number"]).one()
        assert stored.status == "draft"


class TestUpdateInvoice:
    """Partial updates"""

    def test_update_snapshot_fields(self, test_client, auth_headers, created_invoice):
        response = test_client.put(
            f"/api/invoices/{created_invoice['id']}",
            json={"customer_name": "Acme Holdings", "admin_notes": "VIP"},
            headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["customer_name"] == "Acme Holdings"
        assert data["admin_notes"] == "VIP"
        assert data["total"] == 580.0

    def test_tax_rate_change_reprices(self, test_client, auth_headers, created_invoice):
        """
        Test: Tax rate lowered from 16% to 10%
        Expected: tax 50.00, total and balance 550.00
        """
        response = test_client.put(
            f"/api/invoices/{created_invoice['id']}",
            json={"tax_rate": 10},
            headers=auth_headers
        )

        data = response.json()
        assert data["tax_amount"] == 50.0
        assert data["total"] == 550.0
        assert data["balance_due"] == 550.0

    def test_replace_items(self, invoice_service, invoice_payload):
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        updated = invoice_service.update(invoice.id, InvoiceUpdate.model_validate({
            "items": [{"item_name": "Workshop", "quantity": 2, "unit_price": 300}]
        }))

        assert [i.item_name for i in updated.items] == ["Workshop"]
        assert updated.subtotal == Decimal("600.00")
        assert updated.tax_amount == Decimal("96.00")
        assert updated.total == Decimal("696.00")

    def test_unknown_field_rejected(self, test_client, auth_headers, created_invoice):
        """
        Test: Update naming a field that is not mutable
        Expected: 422
        """
        response = test_client.put(
            f"/api/invoices/{created_invoice['id']}",
            json={"invoice_number": "INV-HACKED"},
            headers=auth_headers
        )
        assert response.status_code == 422

    def test_derived_status_cannot_be_set(self, test_client, auth_headers, created_invoice):
        response = test_client.put(
            f"/api/invoices/{created_invoice['id']}",
            json={"status": "overdue"},
            headers=auth_headers
        )
        assert response.status_code == 400

    def test_amount_paid_cannot_decrease(self, invoice_service, invoice_payload):
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        invoice_service.update(invoice.id, InvoiceUpdate(amount_paid=Decimal("100")))

        with pytest.raises(ValidationError):
            invoice_service.update(invoice.id, InvoiceUpdate(amount_paid=Decimal("50")))

    def test_status_paid_settles_balance(self, invoice_service, invoice_payload):
        """
        Test: Update setting status to paid
        Expected: Full payment recorded, balance zero
        """
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        updated = invoice_service.update(invoice.id, InvoiceUpdate(status="paid"))

        assert updated.status == "paid"
        assert updated.payment_status == "paid"
        assert updated.amount_paid == Decimal("580.00")
        assert updated.balance_due == Decimal("0.00")
        assert len(updated.payments) == 1

    def test_paid_invoice_is_frozen(self, test_client, auth_headers, created_invoice):
        test_client.post(f"/api/invoices/{created_invoice['id']}/mark-paid", headers=auth_headers)

        response = test_client.put(
            f"/api/invoices/{created_invoice['id']}",
            json={"notes": "late edit"},
            headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATE"

    def test_amount_paid_above_total_rejected(self, db_session, invoice_service, invoice_payload):
        """
        Test: amount_paid of 1000.00 on a 580.00 invoice
        Expected: ValidationError, balance and status unchanged
        """
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        with pytest.raises(ValidationError):
            invoice_service.update(invoice.id, InvoiceUpdate(amount_paid=Decimal("1000")))

        db_session.expire_all()
        stored = db_session.query(Invoice).filter(Invoice.id == invoice.id).one()
        assert stored.amount_paid == Decimal("0.00")
        assert stored.balance_due == Decimal("580.00")
        assert stored.status == "draft"

    def test_total_below_amount_paid_rejected(self, invoice_service, invoice_payload):
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        invoice_service.update(invoice.id, InvoiceUpdate(amount_paid=Decimal("300")))

        with pytest.raises(ValidationError):
            invoice_service.update(invoice.id, InvoiceUpdate(total=Decimal("200")))
        with pytest.raises(ValidationError):
            invoice_service.update(invoice.id, InvoiceUpdate(subtotal=Decimal("100")))

        assert invoice_service.get(invoice.id).balance_due == Decimal("280.00")

    def test_amount_paid_equal_to_total_settles(self, invoice_service, invoice_payload):
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        updated = invoice_service.update(invoice.id, InvoiceUpdate(amount_paid=Decimal("580")))

        assert updated.status == "paid"
        assert updated.balance_due == Decimal("0.00")

    @pytest.mark.parametrize("status", ["draft", "pending", "paid"])
    def test_cancelled_invoice_cannot_be_reopened(self, invoice_service, invoice_payload, status):
        """
        Test: Moving a cancelled invoice to another status
        Expected: InvalidState, still cancelled
        """
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        invoice_service.update(invoice.id, InvoiceUpdate(status="cancelled"))

        with pytest.raises(InvalidState):
            invoice_service.update(invoice.id, InvoiceUpdate(status=status))

        assert invoice_service.get(invoice.id).status == "cancelled"

    def test_cancelled_invoice_amount_paid_rejected(self, invoice_service, invoice_payload):
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        invoice_service.update(invoice.id, InvoiceUpdate(status="cancelled"))

        with pytest.raises(InvalidState):
            invoice_service.update(invoice.id, InvoiceUpdate(amount_paid=Decimal("580")))

        stored = invoice_service.get(invoice.id)
        assert stored.status == "cancelled"
        assert stored.amount_paid == Decimal("0.00")

    def test_cancelled_invoice_keeps_notes_editable(self, invoice_service, invoice_payload):
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        invoice_service.update(invoice.id, InvoiceUpdate(status="cancelled"))

        updated = invoice_service.update(
            invoice.id, InvoiceUpdate(status="cancelled", admin_notes="Customer withdrew")
        )

        assert updated.status == "cancelled"
        assert updated.admin_notes == "Customer withdrew"

    @pytest.mark.parametrize("field", ["issue_date", "due_date", "customer_name", "customer_email"])
    def test_required_field_cannot_be_cleared(self, test_client, auth_headers, created_invoice, field):
        """
        Test: Explicit null for a required column
        Expected: 400 VALIDATION_ERROR, value kept
        """
        response = test_client.put(
            f"/api/invoices/{created_invoice['id']}",
            json={field: None},
            headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        detail = test_client.get(f"/api/invoices/{created_invoice['id']}", headers=auth_headers).json()
        assert detail[field] == created_invoice[field]

    @pytest.mark.parametrize("change", [
        {"subtotal": -1},
        {"shipping_amount": -10},
        {"discount_value": -5, "discount_type": "fixed"},
    ])
    def test_negative_amounts_rejected(self, test_client, auth_headers, created_invoice, change):
        response = test_client.put(
            f"/api/invoices/{created_invoice['id']}",
            json=change,
            headers=auth_headers
        )

        assert response.status_code == 400
        detail = test_client.get(f"/api/invoices/{created_invoice['id']}", headers=auth_headers).json()
        assert detail["subtotal"] == 500.0
        assert detail["shipping_amount"] == 0.0
        assert detail["total"] == 580.0


class TestInvoiceLifecycle:
    """Send, delete and duplicate"""

    def test_send(self, test_client, auth_headers, created_invoice):
        response = test_client.post(f"/api/invoices/{created_invoice['id']}/send", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["sent_at"] is not None

        again = test_client.post(f"/api/invoices/{created_invoice['id']}/send", headers=auth_headers)
        assert again.status_code == 409

    def test_delete_draft(self, test_client, auth_headers, db_session, created_invoice):
        """
        Test: Delete a draft invoice
        Expected: Invoice and its items removed
        """
        response = test_client.delete(f"/api/invoices/{created_invoice['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert db_session.query(Invoice).count() == 0

    def test_delete_sent_invoice(self, test_client, auth_headers, created_invoice):
        """
        Test: Delete after sending
        Expected: 409 INVALID_STATE, invoice kept
        """
        test_client.post(f"/api/invoices/{created_invoice['id']}/send", headers=auth_headers)

        response = test_client.delete(f"/api/invoices/{created_invoice['id']}", headers=auth_headers)

        assert response.status_code == 409
        assert test_client.get(
            f"/api/invoices/{created_invoice['id']}", headers=auth_headers
        ).status_code == 200

    def test_delete_converted_invoice_clears_quotation_link(self, db_session, invoice_service, quotation_service,
                                                            quotation_payload):
        """
        Test: Delete the draft invoice a quotation was converted into
        Expected: Quotation stays converted without a link to the deleted invoice
        """
        quotation = quotation_service.submit(QuotationSubmit.model_validate(quotation_payload))
        quotation_id = quotation.id
        _, invoice = quotation_service.convert_to_invoice(quotation_id)

        invoice_service.delete(invoice.id)

        db_session.expire_all()
        stored = db_session.query(Quotation).filter(Quotation.id == quotation_id).one()
        assert stored.status == "converted"
        assert stored.converted_to_invoice_id is None
        assert db_session.query(Invoice).count() == 0

    def test_duplicate(self, test_client, auth_headers, created_invoice):
        test_client.post(
            f"/api/invoices/{created_invoice['id']}/payments",
            json={"amount": 100},
            headers=auth_headers
        )

        response = test_client.post(
            f"/api/invoices/{created_invoice['id']}/duplicate", headers=auth_headers
        )

        assert response.status_code == 201
        copy = response.json()
        assert copy["id"] != created_invoice["id"]
        assert copy["invoice_number"] != created_invoice["invoice_number"]
        assert copy["status"] == "draft"
        assert copy["amount_paid"] == 0.0
        assert copy["balance_due"] == 580.0
        assert copy["payments"] == []
        assert len(copy["items"]) == 1
        assert copy["notes"].startswith(f"Duplicated from {created_invoice['invoice_number']}")


class TestInvoiceStats:
    """Statistics"""

    def test_stats(self, test_client, auth_headers, invoice_payload):
        """
        Test: One draft, one partly paid, one paid invoice of 580.00 each
        Expected: Counts per status and amount totals
        """
        ids = [
            test_client.post("/api/invoices", json=invoice_payload, headers=auth_headers).json()["id"]
            for _ in range(3)
        ]
        test_client.post(f"/api/invoices/{ids[1]}/send", headers=auth_headers)
        test_client.post(f"/api/invoices/{ids[1]}/payments", json={"amount": 300}, headers=auth_headers)
        test_client.post(f"/api/invoices/{ids[2]}/mark-paid", headers=auth_headers)

        response = test_client.get("/api/invoices/stats", headers=auth_headers)

        assert response.status_code == 200
        stats = response.json()
        assert stats["total"] == 3
        assert stats["draft"] == 1
        assert stats["pending"] == 1
        assert stats["paid"] == 1
        assert stats["overdue"] == 0
        assert stats["total_amount"] == 1740.0
        assert stats["paid_amount"] == 580.0
        assert stats["outstanding_amount"] == 1160.0
        assert stats["total_balance_due"] == 860.0
        assert stats["average_invoice_value"] == 580.0
        assert stats["monthly"] == [{"month": "2025-03", "count": 3, "total": 1740.0}]
        assert stats["top_customers"][0]["customer_email"] == "billing@acme.example"
        assert stats["top_customers"][0]["total_spent"] == 580.0

    def test_stats_empty(self, invoice_service):
        stats = invoice_service.stats()
        assert stats["total"] == 0
        assert stats["total_amount"] == 0.0
        assert stats["monthly"] == []
        assert stats["top_customers"] == []


class TestServiceErrors:
    """Direct service failures"""

    def test_update_unknown(self, invoice_service):
        with pytest.raises(NotFound):
            invoice_service.update(uuid.uuid4(), InvoiceUpdate(notes="x"))

    def test_send_twice(self, invoice_service, invoice_payload):
        invoice = invoice_service.create(InvoiceCreate.model_validate(invoice_payload))
        invoice_service.mark_as_sent(invoice.id)
        with pytest.raises(InvalidState):
            invoice_service.mark_as_sent(invoice.id)

    def test_quotation_still_pending_when_invoice_invalid(self, db_session, invoice_service, quotation_service,
                                                          quotation_payload, invoice_payload):
        quotation = quotation_service.submit(QuotationSubmit.model_validate(quotation_payload))
        invoice_payload.update({"quotation_id": str(quotation.id), "customer_name": ""})

        with pytest.raises(ValidationError):
            invoice_service.create(InvoiceCreate.model_validate(invoice_payload))

        assert db_session.query(Quotation).filter(Quotation.id == quotation.id).one().status == "pending"
