import os

# Variables lues à l'import de commerce.config: à définir avant tout import applicatif
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdef0123456789")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STORAGE_BUCKET", "test-bucket")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"

import uuid
import threading
import pytest
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient

from commerce.app import app as fastapi_app
from commerce.auth.service import create_access_token
from commerce.billing import gateway
from commerce.customers import repository
from commerce.customers.repository import DuplicateCustomerError
from commerce.errors import NotFoundError

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)


class FakeCustomerStore:
    """Table customers en mémoire, avec l'unicité email / billing_account_id de la base."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.insert_error: Optional[Exception] = None

    def get_customer_by_email(self, email):
        email = (email or "").strip().lower()
        return next((dict(r) for r in self.rows.values() if r["email"] == email), None)

    def get_customer_by_id(self, customer_id):
        row = self.rows.get(customer_id)
        return dict(row) if row else None

    def insert_customer(self, *, name, email, address, phone, password_hash, billing_account_id):
        if self.insert_error is not None:
            raise self.insert_error
        email = email.strip().lower()
        if any(r["email"] == email for r in self.rows.values()):
            raise DuplicateCustomerError()
        row = {
            "id": str(uuid.uuid4()),
            "name": name,
            "email": email,
            "address": address,
            "phone": phone,
            "password_hash": password_hash,
            "billing_account_id": billing_account_id,
            "avatar_path": None,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        }
        self.rows[row["id"]] = row
        return dict(row)

    def update_customer(self, customer_id, updates):
        self.rows[customer_id].update(updates)
        return dict(self.rows[customer_id])

    def delete_customer(self, customer_id):
        self.rows.pop(customer_id, None)

    def install(self, monkeypatch):
        for name in ("get_customer_by_email", "get_customer_by_id", "insert_customer", "update_customer", "delete_customer"):
            monkeypatch.setattr(repository, name, getattr(self, name))


class FakeGateway:
    """
    Double de commerce.billing.gateway: mêmes signatures, état Stripe en mémoire.
    - calls: journal des opérations appelées (nom uniquement)
    - failures: {nom d'opération: exception à lever}
    """

    OPERATIONS = (
        "create_billing_account", "update_billing_account", "delete_billing_account",
        "attach_payment_method", "set_default_payment_method", "list_payment_methods",
        "retrieve_payment_method", "detach_payment_method", "create_line_item", "create_invoice",
        "finalize_invoice", "pay_invoice", "retrieve_payment_intent", "list_invoices",
        "retrieve_invoice", "send_invoice",
    )

    def __init__(self):
        self._lock = threading.Lock()
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.account_updates: List[Dict[str, Any]] = []
        self.pending: Dict[str, List[Dict[str, Any]]] = {}
        self.invoices: Dict[str, Dict[str, Any]] = {}
        self.payment_methods: Dict[str, Dict[str, Any]] = {}
        self.finalize_status = "open"
        self._seq = 0

    def _next(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def _record(self, name: str) -> None:
        with self._lock:
            self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def add_payment_method(self, pm_id: str, account_id: Optional[str] = None) -> None:
        self.payment_methods[pm_id] = {
            "id": pm_id,
            "customer": account_id,
            "card": {"brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2030},
        }

    # --- opérations ---

    def create_billing_account(self, *, email, name, phone=None, address=None):
        self._record("create_billing_account")
        account_id = self._next("cus")
        self.accounts[account_id] = {"email": email, "name": name, "phone": phone, "address": address}
        return account_id

    def update_billing_account(self, account_id, **fields):
        self._record("update_billing_account")
        self.account_updates.append(dict(fields))
        self.accounts.setdefault(account_id, {}).update(fields)

    def delete_billing_account(self, account_id):
        self._record("delete_billing_account")
        return self.accounts.pop(account_id, None) is not None

    def attach_payment_method(self, payment_method_id, account_id):
        self._record("attach_payment_method")
        self.payment_methods.setdefault(payment_method_id, {"id": payment_method_id, "card": {}})
        self.payment_methods[payment_method_id]["customer"] = account_id

    def set_default_payment_method(self, account_id, payment_method_id):
        self._record("set_default_payment_method")
        self.accounts.setdefault(account_id, {})["default_payment_method"] = payment_method_id

    def list_payment_methods(self, account_id):
        self._record("list_payment_methods")
        return [gateway.payment_method_summary(pm) for pm in self.payment_methods.values() if pm.get("customer") == account_id]

    def retrieve_payment_method(self, payment_method_id):
        self._record("retrieve_payment_method")
        if payment_method_id not in self.payment_methods:
            raise NotFoundError("Payment method not found")
        return dict(self.payment_methods[payment_method_id])

    def detach_payment_method(self, payment_method_id):
        self._record("detach_payment_method")
        self.payment_methods[payment_method_id]["customer"] = None

    def create_line_item(self, account_id, *, amount, currency, description, quantity=1):
        self._record("create_line_item")
        item = {"amount": amount, "currency": currency, "description": description, "quantity": quantity}
        with self._lock:
            self.pending.setdefault(account_id, []).append(item)
        return item

    def create_invoice(self, account_id):
        self._record("create_invoice")
        lines = self.pending.pop(account_id, [])
        total = sum(line["amount"] * line["quantity"] for line in lines)
        invoice_id = self._next("in")
        invoice = {
            "id": invoice_id,
            "number": None,
            "customer": account_id,
            "status": "draft",
            "currency": lines[0]["currency"] if lines else "usd",
            "lines": lines,
            "total": total,
            "amount_due": total,
            "amount_paid": 0,
            "created": 1700000000 + self._seq,
            "hosted_invoice_url": None,
            "invoice_pdf": None,
            "payment_intent": None,
        }
        self.invoices[invoice_id] = invoice
        return dict(invoice)

    def finalize_invoice(self, invoice_id):
        self._record("finalize_invoice")
        invoice = self.invoices[invoice_id]
        invoice.update({
            "status": self.finalize_status,
            "number": f"INV-{invoice_id}",
            "hosted_invoice_url": f"https://invoice.test/{invoice_id}",
            "invoice_pdf": f"https://invoice.test/{invoice_id}.pdf",
            "payment_intent": f"pi_{invoice_id}",
        })
        return dict(invoice)

    def pay_invoice(self, invoice_id, payment_method_id):
        self._record("pay_invoice")
        invoice = self.invoices[invoice_id]
        invoice.update({"status": "paid", "amount_paid": invoice["total"], "paid_with": payment_method_id})
        return dict(invoice)

    def retrieve_payment_intent(self, payment_intent_id):
        self._record("retrieve_payment_intent")
        invoice_id = payment_intent_id[len("pi_"):]
        invoice = self.invoices.get(invoice_id, {})
        return {
            "id": payment_intent_id,
            "status": "succeeded",
            "amount": invoice.get("total"),
            "currency": invoice.get("currency"),
            "client_secret": f"{payment_intent_id}_secret",
            "next_action": None,
        }

    def list_invoices(self, account_id, *, limit=10, starting_after=None):
        self._record("list_invoices")
        owned = sorted(
            (inv for inv in self.invoices.values() if inv["customer"] == account_id),
            key=lambda inv: inv["created"],
            reverse=True,
        )
        if starting_after:
            ids = [inv["id"] for inv in owned]
            owned = owned[ids.index(starting_after) + 1:] if starting_after in ids else []
        page = owned[:limit]
        return [gateway.invoice_summary(inv) for inv in page], len(owned) > limit

    def retrieve_invoice(self, invoice_id):
        self._record("retrieve_invoice")
        if invoice_id not in self.invoices:
            raise NotFoundError("Invoice not found")
        return dict(self.invoices[invoice_id])

    def send_invoice(self, invoice_id):
        self._record("send_invoice")

    def install(self, monkeypatch):
        for name in self.OPERATIONS:
            monkeypatch.setattr(gateway, name, getattr(self, name))


@pytest.fixture()
def store(monkeypatch) -> FakeCustomerStore:
    s = FakeCustomerStore()
    s.install(monkeypatch)
    return s

@pytest.fixture()
def fake_gateway(monkeypatch) -> FakeGateway:
    g = FakeGateway()
    g.install(monkeypatch)
    return g

@pytest.fixture()
def make_customer(store, fake_gateway):
    """Crée un client local relié à un compte de facturation fictif."""
    def _make(email: str = "alice@example.com", name: str = "Alice", with_billing: bool = True) -> Dict[str, Any]:
        account_id = fake_gateway.create_billing_account(email=email, name=name) if with_billing else None
        fake_gateway.calls.clear()
        return store.insert_customer(
            name=name,
            email=email,
            address="1 Main St",
            phone="+1 555 0100",
            password_hash="x",
            billing_account_id=account_id,
        )
    return _make

@pytest.fixture()
def auth_headers():
    def _headers(customer: Dict[str, Any]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(customer)}"}
    return _headers

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
