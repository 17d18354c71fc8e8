import pytest

from commerce.auth import registration
from commerce.auth.registration import SagaStep, run_saga
from commerce.auth.service import decode_access_token, verify_password
from commerce.customers.repository import DuplicateCustomerError
from commerce.errors import GatewayUnavailable, InternalError, ValidationError


def _register(email="alice@example.com", **overrides):
    data = dict(name="Alice", email=email, address="1 Main St", phone="+1 555 0100", password="secret1")
    data.update(overrides)
    return registration.register(**data)


def test_register_creates_billing_account_then_customer(store, fake_gateway):
    token, customer = _register(email="  Alice@Example.com ")

    assert fake_gateway.calls == ["create_billing_account"]
    assert customer["email"] == "alice@example.com"
    assert customer["billingAccountId"] in fake_gateway.accounts
    assert set(customer) == {"id", "name", "email", "billingAccountId"}

    row = store.get_customer_by_id(customer["id"])
    assert row["billing_account_id"] == customer["billingAccountId"]
    assert verify_password("secret1", row["password_hash"])
    assert row["password_hash"] != "secret1"

    claims = decode_access_token(token)
    assert claims["id"] == customer["id"]
    assert claims["email"] == "alice@example.com"

def test_billing_account_receives_contact_details(store, fake_gateway):
    _, customer = _register()
    account = fake_gateway.accounts[customer["billingAccountId"]]
    assert account == {"email": "alice@example.com", "name": "Alice", "phone": "+1 555 0100", "address": "1 Main St"}

def test_existing_email_rejected_before_any_gateway_call(store, fake_gateway):
    _register()
    fake_gateway.calls.clear()

    with pytest.raises(ValidationError) as exc:
        _register(email="ALICE@example.com")
    assert exc.value.message == "Email already registered"
    assert fake_gateway.calls == []
    assert len(fake_gateway.accounts) == 1

def test_insert_failure_deletes_billing_account_and_propagates(store, fake_gateway):
    store.insert_error = InternalError("Database error")

    with pytest.raises(InternalError):
        _register()
    assert fake_gateway.calls == ["create_billing_account", "delete_billing_account"]
    assert fake_gateway.accounts == {}
    assert store.rows == {}

def test_concurrent_duplicate_surfaces_as_validation_error(store, fake_gateway):
    # l'index unique de la base tranche quand le pré-contrôle n'a rien vu
    store.insert_error = DuplicateCustomerError()

    with pytest.raises(ValidationError) as exc:
        _register()
    assert exc.value.message == "Email already registered"
    assert fake_gateway.accounts == {}

def test_failed_compensation_keeps_original_error(store, fake_gateway, monkeypatch, caplog):
    store.insert_error = InternalError("Database error")
    monkeypatch.setattr(fake_gateway, "delete_billing_account", lambda account_id: False)
    fake_gateway.install(monkeypatch)

    with pytest.raises(InternalError):
        _register()
    assert "Orphan billing account" in caplog.text

def test_billing_failure_skips_local_insert(store, fake_gateway):
    fake_gateway.failures["create_billing_account"] = GatewayUnavailable("Failed to create billing account")

    with pytest.raises(GatewayUnavailable):
        _register()
    assert store.rows == {}
    assert "delete_billing_account" not in fake_gateway.calls


def test_run_saga_compensates_completed_steps_in_reverse_order():
    trail = []

    def fail(ctx):
        raise RuntimeError("boom")

    steps = [
        SagaStep("a", lambda ctx: trail.append("a"), lambda ctx: trail.append("undo a")),
        SagaStep("b", lambda ctx: trail.append("b"), lambda ctx: trail.append("undo b")),
        SagaStep("c", fail, lambda ctx: trail.append("undo c")),
    ]
    with pytest.raises(RuntimeError, match="boom"):
        run_saga(steps, {})
    assert trail == ["a", "b", "undo b", "undo a"]

def test_run_saga_swallows_compensation_errors():
    def broken_undo(ctx):
        raise RuntimeError("undo failed")

    def fail(ctx):
        raise ValueError("original")

    steps = [SagaStep("a", lambda ctx: None, broken_undo), SagaStep("b", fail)]
    with pytest.raises(ValueError, match="original"):
        run_saga(steps, {})
