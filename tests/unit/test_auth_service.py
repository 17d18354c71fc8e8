from datetime import datetime, timedelta, timezone

import jwt
import pytest

from commerce import config
from commerce.auth import service as svc
from commerce.errors import AuthenticationError


def test_hash_and_verify_password():
    hashed = svc.hash_password("secret1")
    assert hashed.startswith("$2")
    assert svc.verify_password("secret1", hashed) is True
    assert svc.verify_password("wrong", hashed) is False
    assert svc.verify_password("secret1", "") is False
    assert svc.verify_password("secret1", "not-a-bcrypt-hash") is False

def test_token_round_trip_carries_id_and_email():
    token = svc.create_access_token({"id": "c1", "email": "a@b.c"})
    claims = svc.decode_access_token(token)
    assert claims["id"] == "c1"
    assert claims["email"] == "a@b.c"
    assert claims["exp"] > datetime.now(timezone.utc).timestamp() + 6 * 24 * 3600

def test_expired_token_is_reported_as_expired():
    token = jwt.encode(
        {"id": "c1", "email": "a@b.c", "exp": datetime.now(timezone.utc) - timedelta(seconds=5)},
        config.JWT_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError, match="Token expired"):
        svc.decode_access_token(token)

@pytest.mark.parametrize("token", ["garbage", jwt.encode({"id": "c1"}, "another-secret-another-secret-0123456", algorithm="HS256")])
def test_bad_tokens_are_invalid(token):
    with pytest.raises(AuthenticationError) as exc:
        svc.decode_access_token(token)
    assert exc.value.message == "Invalid token"

def test_login_checks_password(store):
    store.insert_customer(
        name="Alice", email="alice@example.com", address="x", phone="1",
        password_hash=svc.hash_password("secret1"), billing_account_id="cus_1",
    )
    token, customer = svc.login("ALICE@example.com", "secret1")
    assert customer["billingAccountId"] == "cus_1"
    assert svc.decode_access_token(token)["email"] == "alice@example.com"

    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        svc.login("alice@example.com", "wrong")
    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        svc.login("nobody@example.com", "secret1")
