import pytest
import stripe

from commerce.billing import gateway
from commerce.errors import GatewayUnavailable, NotFoundError, PaymentRejected


def test_create_billing_account_sends_contact_and_metadata(monkeypatch):
    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return {"id": "cus_123"}

    monkeypatch.setattr(stripe.Customer, "create", fake_create)
    account_id = gateway.create_billing_account(email="a@b.c", name="Alice", phone="+1 555", address="1 Main St")

    assert account_id == "cus_123"
    assert captured == {
        "email": "a@b.c",
        "name": "Alice",
        "phone": "+1 555",
        "address": {"line1": "1 Main St"},
        "metadata": {"source": "web_app"},
    }

def test_update_billing_account_sends_only_given_fields(monkeypatch):
    calls = []
    monkeypatch.setattr(stripe.Customer, "modify", lambda account_id, **kw: calls.append((account_id, kw)))

    gateway.update_billing_account("cus_1", phone="+33 1 23")
    gateway.update_billing_account("cus_1")

    assert calls == [("cus_1", {"phone": "+33 1 23"})]

def test_update_billing_account_maps_address_to_line1(monkeypatch):
    calls = []
    monkeypatch.setattr(stripe.Customer, "modify", lambda account_id, **kw: calls.append(kw))
    gateway.update_billing_account("cus_1", name="Bob", address="2 Side St")
    assert calls == [{"name": "Bob", "address": {"line1": "2 Side St"}}]

def test_delete_billing_account_never_raises(monkeypatch):
    def boom(account_id):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.Customer, "delete", boom)
    assert gateway.delete_billing_account("cus_1") is False

    monkeypatch.setattr(stripe.Customer, "delete", lambda account_id: {"id": account_id, "deleted": True})
    assert gateway.delete_billing_account("cus_1") is True

def test_card_error_becomes_payment_rejected(monkeypatch):
    def declined(invoice_id, **kw):
        raise stripe.CardError("Your card was declined.", None, "card_declined")

    monkeypatch.setattr(stripe.Invoice, "pay", declined)
    with pytest.raises(PaymentRejected) as exc:
        gateway.pay_invoice("in_1", "pm_1")
    assert "declined" in exc.value.message
    assert exc.value.status_code == 400

def test_missing_resource_becomes_not_found(monkeypatch):
    def missing(invoice_id):
        raise stripe.InvalidRequestError("No such invoice: 'in_x'", "id", code="resource_missing")

    monkeypatch.setattr(stripe.Invoice, "retrieve", missing)
    with pytest.raises(NotFoundError) as exc:
        gateway.retrieve_invoice("in_x")
    assert exc.value.message == "Invoice not found"

def test_other_stripe_errors_hide_processor_detail(monkeypatch):
    def broken(**kw):
        raise stripe.APIConnectionError("secret upstream detail")

    monkeypatch.setattr(stripe.Invoice, "create", broken)
    with pytest.raises(GatewayUnavailable) as exc:
        gateway.create_invoice("cus_1")
    assert exc.value.message == "Payment processing failed"
    assert "secret" not in exc.value.message

def test_invalid_request_on_create_is_gateway_failure(monkeypatch):
    def invalid(**kw):
        raise stripe.InvalidRequestError("No such customer", "customer", code="resource_missing")

    monkeypatch.setattr(stripe.InvoiceItem, "create", invalid)
    with pytest.raises(GatewayUnavailable):
        gateway.create_line_item("cus_1", amount=100, currency="usd", description="x")

def test_create_line_item_uses_unit_amount_and_quantity(monkeypatch):
    captured = {}
    monkeypatch.setattr(stripe.InvoiceItem, "create", lambda **kw: captured.update(kw) or {"id": "ii_1"})
    gateway.create_line_item("cus_1", amount=500, currency="usd", description="A", quantity=2)
    assert captured == {
        "customer": "cus_1",
        "currency": "usd",
        "description": "A",
        "unit_amount_decimal": "500",
        "quantity": 2,
    }

def test_create_invoice_requests_automatic_collection_and_3ds(monkeypatch):
    captured = {}
    monkeypatch.setattr(stripe.Invoice, "create", lambda **kw: captured.update(kw) or {"id": "in_1", "status": "draft"})
    invoice = gateway.create_invoice("cus_1")
    assert invoice["status"] == "draft"
    assert captured["auto_advance"] is True
    assert captured["collection_method"] == "charge_automatically"
    assert captured["pending_invoice_items_behavior"] == "include"
    assert captured["payment_settings"]["payment_method_options"]["card"]["request_three_d_secure"] == "any"

def test_list_invoices_forwards_cursor_and_summarizes(monkeypatch):
    captured = {}

    def fake_list(**kw):
        captured.update(kw)
        return {"data": [{"id": "in_2", "status": "paid", "total": 100, "customer": "cus_1"}], "has_more": True}

    monkeypatch.setattr(stripe.Invoice, "list", fake_list)
    invoices, has_more = gateway.list_invoices("cus_1", limit=1, starting_after="in_3")
    assert captured == {"customer": "cus_1", "limit": 1, "starting_after": "in_3"}
    assert has_more is True
    assert invoices[0]["id"] == "in_2"
    assert "customer" not in invoices[0]

def test_list_payment_methods_returns_card_summaries(monkeypatch):
    pm = {"id": "pm_1", "customer": "cus_1", "card": {"brand": "visa", "last4": "4242", "exp_month": 1, "exp_year": 2031}}
    monkeypatch.setattr(stripe.PaymentMethod, "list", lambda **kw: {"data": [pm]})
    assert gateway.list_payment_methods("cus_1") == [
        {"id": "pm_1", "brand": "visa", "last4": "4242", "exp_month": 1, "exp_year": 2031}
    ]

def test_owner_of_accepts_expanded_customer():
    assert gateway.owner_of({"customer": "cus_1"}) == "cus_1"
    assert gateway.owner_of({"customer": {"id": "cus_2"}}) == "cus_2"
    assert gateway.owner_of({"customer": None}) is None
