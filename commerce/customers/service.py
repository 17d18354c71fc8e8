"""Couche service du domaine Clients.
Garde la ligne locale et le compte de facturation Stripe cohérents:
- la base locale est écrite en premier, Stripe reçoit ensuite uniquement les champs modifiés
- les nettoyages distants (Stripe, stockage) sont best-effort et journalisés
"""
from typing import Any, Dict, Optional
import logging

from fastapi.concurrency import run_in_threadpool

from commerce import config
from commerce.billing import gateway
from commerce.errors import GatewayUnavailable, NotFoundError, ValidationError
from commerce.storage import service as storage
from . import repository

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "address", "phone")
AVATAR_FOLDER = "profile-pictures"

def get_profile(customer: Dict[str, Any]) -> Dict[str, Any]:
    return repository.to_public(customer)

async def update_profile(customer: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Mise à jour du profil.
    - Seuls name, address et phone sont pris en compte (les autres champs sont ignorés)
    - Écriture locale d'abord, puis miroir Stripe des seuls champs modifiés
    - Un échec du miroir est journalisé sans annuler l'écriture locale
    """
    allowed = {k: v for k, v in (updates or {}).items() if k in PROFILE_FIELDS and v is not None}
    if not allowed:
        return repository.to_public(customer)

    changed = {k: v for k, v in allowed.items() if customer.get(k) != v}
    updated = await run_in_threadpool(repository.update_customer, customer["id"], allowed)

    account_id = customer.get("billing_account_id")
    if account_id and changed:
        try:
            await run_in_threadpool(gateway.update_billing_account, account_id, **changed)
        except GatewayUnavailable:
            logger.warning("Billing account %s not synced for customer %s", account_id, customer.get("id"))

    logger.info("Profile updated for customer: %s", customer.get("email"))
    return repository.to_public(updated)

def _check_image(data: bytes, content_type: Optional[str]) -> None:
    if not data:
        raise ValidationError("No file uploaded")
    if not (content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise ValidationError("File too large. Maximum size is 5MB")

async def upload_profile_picture(
    customer: Dict[str, Any],
    data: bytes,
    *,
    filename: Optional[str],
    content_type: Optional[str],
) -> str:
    """Enregistre la nouvelle photo, supprime l'ancienne (best-effort) et renvoie une URL signée."""
    _check_image(data, content_type)
    folder = f"{AVATAR_FOLDER}/{customer['id']}"
    path = await run_in_threadpool(
        storage.upload_file, data, folder=folder, filename=filename, content_type=content_type
    )
    previous = customer.get("avatar_path")
    await run_in_threadpool(repository.update_customer, customer["id"], {"avatar_path": path})
    if previous and previous != path:
        if not await run_in_threadpool(storage.delete_file, previous):
            logger.warning("Previous profile picture not deleted: %s", previous)
    logger.info("Profile picture uploaded for customer: %s", customer.get("email"))
    return await run_in_threadpool(storage.get_signed_url, path)

async def get_profile_picture_url(customer: Dict[str, Any]) -> str:
    path = customer.get("avatar_path")
    if not path:
        raise NotFoundError("No profile picture found")
    # objet supprimé côté stockage: pas d'URL signée vers un fichier absent
    if not await run_in_threadpool(storage.file_exists, path):
        raise NotFoundError("No profile picture found")
    return await run_in_threadpool(storage.get_signed_url, path)

async def delete_account(customer: Dict[str, Any]) -> None:
    """Suppression de compte.
    - Compte de facturation puis photo de profil: best-effort, statut journalisé
    - Ligne locale supprimée dans tous les cas
    """
    account_id = customer.get("billing_account_id")
    if account_id:
        deleted = await run_in_threadpool(gateway.delete_billing_account, account_id)
        if not deleted:
            logger.error("Billing account %s not deleted for customer %s", account_id, customer.get("id"))

    avatar = customer.get("avatar_path")
    if avatar:
        removed = await run_in_threadpool(storage.delete_file, avatar)
        if not removed:
            logger.warning("Profile picture %s not deleted for customer %s", avatar, customer.get("id"))

    await run_in_threadpool(repository.delete_customer, customer["id"])
    logger.info("Customer account deleted: %s", customer.get("email"))
