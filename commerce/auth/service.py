from typing import Any, Dict, Tuple
from datetime import datetime, timezone
import logging

import bcrypt
import jwt

from commerce import config
from commerce.errors import AuthenticationError
from commerce.customers import repository

logger = logging.getLogger(__name__)

# bcrypt ne considère que les 72 premiers octets
_BCRYPT_MAX_BYTES = 72

def _pw_bytes(password: str) -> bytes:
    return (password or "").encode("utf-8")[:_BCRYPT_MAX_BYTES]

def hash_password(password: str) -> str:
    return bcrypt.hashpw(_pw_bytes(password), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_pw_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # hash stocké mal formé
        logger.warning("password hash could not be parsed")
        return False

# --- Jetons d'accès (JWT HS256) ---

def create_access_token(customer: Dict[str, Any]) -> str:
    """Jeton signé portant id, email et exp (durée JWT_EXPIRY)."""
    expires = datetime.now(timezone.utc) + config.parse_duration(config.JWT_EXPIRY)
    payload = {
        "id": customer.get("id"),
        "email": customer.get("email"),
        "exp": expires,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Vérifie signature et expiration.
    - Lève AuthenticationError("Token expired") si exp est dépassé
    - Lève AuthenticationError("Invalid token") pour toute autre erreur de jeton
    """
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e

# --- Cas d’usage Auth exposés ---

def login(email: str, password: str) -> Tuple[str, Dict[str, Any]]:
    """Connexion:
    - Recherche le client par email (normalisé)
    - Compare le mot de passe au hash bcrypt
    - Même message d'erreur pour email inconnu et mot de passe faux
    Retour: (token, résumé client)
    """
    customer = repository.get_customer_by_email(email)
    if not customer or not verify_password(password, customer.get("password_hash")):
        logger.info("login refused for %s", (email or "").strip().lower())
        raise AuthenticationError("Invalid email or password")
    logger.info("Customer logged in: %s", customer.get("email"))
    return create_access_token(customer), repository.to_summary(customer)
