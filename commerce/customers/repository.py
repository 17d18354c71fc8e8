"""Couche d’accès aux données (Supabase) pour le domaine Clients.
Contient les fonctions de lecture/écriture sur la table customers.
Les index uniques (email, billing_account_id) sont portés par la base: c'est elle qui tranche
en cas d'inscriptions concurrentes, les violations remontent en DuplicateCustomerError.
"""
from typing import Any, Dict, List, Optional
import logging
from datetime import datetime, timezone
from postgrest.exceptions import APIError

import commerce.infra.supabase_client as supabase_client
from commerce.config import CUSTOMERS_TABLE
from commerce.errors import InternalError, ValidationError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class DuplicateCustomerError(ValidationError):
    default_message = "Email already registered"


def _table():
    return supabase_client.get_service_supabase().table(CUSTOMERS_TABLE)

def _first(res) -> Optional[Dict[str, Any]]:
    rows = res.data or []
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _raise_db_error(action: str, e: APIError):
    logger.error("customers.repository.%s failed code=%s message=%s", action, getattr(e, "code", None), getattr(e, "message", e))
    if getattr(e, "code", None) == UNIQUE_VIOLATION:
        detail = f"{getattr(e, 'message', '')} {getattr(e, 'details', '')}".lower()
        if "billing_account" in detail:
            raise DuplicateCustomerError("Billing account already linked to another customer") from e
        raise DuplicateCustomerError() from e
    raise InternalError("Database error") from e

def get_customer_by_email(email: str) -> Optional[Dict[str, Any]]:
    """Récupère un client par email (normalisé en minuscules).
    - Retour: dict client ou None si introuvable
    """
    email = (email or "").strip().lower()
    if not email:
        return None
    try:
        return _first(_table().select("*").eq("email", email).limit(1).execute())
    except APIError as e:
        _raise_db_error("get_customer_by_email", e)

def get_customer_by_id(customer_id: str) -> Optional[Dict[str, Any]]:
    """Récupère un client par id.
    - Retour: dict client ou None si introuvable
    """
    if not customer_id:
        return None
    try:
        return _first(_table().select("*").eq("id", customer_id).limit(1).execute())
    except APIError as e:
        _raise_db_error("get_customer_by_id", e)

def insert_customer(
    *,
    name: str,
    email: str,
    address: str,
    phone: str,
    password_hash: str,
    billing_account_id: Optional[str],
) -> Dict[str, Any]:
    """Insère un client et retourne la ligne créée.
    - Lève DuplicateCustomerError sur violation d'unicité (email ou billing_account_id)
    """
    now = _now_iso()
    payload: Dict[str, Any] = {
        "name": name,
        "email": (email or "").strip().lower(),
        "address": address,
        "phone": phone,
        "password_hash": password_hash,
        "billing_account_id": billing_account_id,
        "created_at": now,
        "updated_at": now,
    }
    try:
        row = _first(_table().insert(payload).execute())
    except APIError as e:
        _raise_db_error("insert_customer", e)
    if not row:
        raise InternalError("Database error")
    return row

def update_customer(customer_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """Met à jour les champs fournis et retourne la ligne à jour."""
    payload = dict(updates)
    payload["updated_at"] = _now_iso()
    try:
        row = _first(_table().update(payload).eq("id", customer_id).execute())
    except APIError as e:
        _raise_db_error("update_customer", e)
    if not row:
        raise InternalError("Database error")
    return row

def delete_customer(customer_id: str) -> None:
    try:
        _table().delete().eq("id", customer_id).execute()
    except APIError as e:
        _raise_db_error("delete_customer", e)

def fetch_table_rows(table: str) -> List[Dict[str, Any]]:
    """Lecture complète d'une table (utilisée par l'export de sauvegarde)."""
    res = supabase_client.get_service_supabase().table(table).select("*").execute()
    return res.data or []

def to_public(customer: Dict[str, Any]) -> Dict[str, Any]:
    """Représentation client exposée par l'API (jamais de hash de mot de passe)."""
    return {
        "id": customer.get("id"),
        "name": customer.get("name"),
        "email": customer.get("email"),
        "address": customer.get("address"),
        "phone": customer.get("phone"),
        "billingAccountId": customer.get("billing_account_id"),
        "profilePicture": customer.get("avatar_path"),
        "createdAt": customer.get("created_at"),
        "updatedAt": customer.get("updated_at"),
    }

def to_summary(customer: Dict[str, Any]) -> Dict[str, Any]:
    """Forme courte renvoyée par register/login."""
    return {
        "id": customer.get("id"),
        "name": customer.get("name"),
        "email": customer.get("email"),
        "billingAccountId": customer.get("billing_account_id"),
    }
