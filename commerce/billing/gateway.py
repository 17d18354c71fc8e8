"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.

Toutes les fonctions renvoient des dict (objets SDK normalisés) et traduisent les erreurs:
- stripe.CardError -> PaymentRejected (message du processeur exposé au client)
- ressource introuvable sur retrieve -> NotFoundError
- toute autre stripe.StripeError -> GatewayUnavailable (détail uniquement dans les logs)
"""
import functools
import logging
from typing import Any, Dict, List, Optional, Tuple

import stripe

from commerce.errors import GatewayUnavailable, NotFoundError, PaymentRejected

logger = logging.getLogger(__name__)

# module commerce.billing.gateway
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY et fige la version d'API.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    from commerce.config import STRIPE_SECRET_KEY, STRIPE_API_VERSION
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    if STRIPE_API_VERSION:
        stripe.api_version = STRIPE_API_VERSION
    return stripe

def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)

def _translate_errors(action: str, message: str, not_found: Optional[str] = None):
    """
    Décorateur de traduction d'erreurs Stripe.
    - action: libellé pour les logs
    - message: message générique renvoyé au client en cas de panne
    - not_found: si fourni, une ressource absente devient NotFoundError(not_found)
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            require_stripe()
            try:
                return func(*args, **kwargs)
            except stripe.CardError as e:
                logger.warning("stripe.%s card declined code=%s", action, getattr(e, "code", None))
                raise PaymentRejected(getattr(e, "user_message", None) or str(e) or None) from e
            except stripe.InvalidRequestError as e:
                if not_found and getattr(e, "code", None) == "resource_missing":
                    logger.info("stripe.%s resource missing", action)
                    raise NotFoundError(not_found) from e
                logger.exception("Erreur stripe.%s", action)
                raise GatewayUnavailable(message) from e
            except stripe.StripeError as e:
                logger.exception("Erreur stripe.%s", action)
                raise GatewayUnavailable(message) from e
        return wrapper
    return decorator

def resource_id(value: Any) -> Optional[str]:
    # customer peut être un id ou un objet développé (expand)
    if isinstance(value, dict):
        return value.get("id")
    return getattr(value, "id", value)

def invoice_summary(invoice: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": invoice.get("id"),
        "number": invoice.get("number"),
        "status": invoice.get("status"),
        "amount_due": invoice.get("amount_due"),
        "amount_paid": invoice.get("amount_paid"),
        "total": invoice.get("total"),
        "currency": invoice.get("currency"),
        "created": invoice.get("created"),
        "hosted_invoice_url": invoice.get("hosted_invoice_url"),
        "invoice_pdf": invoice.get("invoice_pdf"),
    }

def payment_intent_summary(intent: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": intent.get("id"),
        "status": intent.get("status"),
        "amount": intent.get("amount"),
        "currency": intent.get("currency"),
        "client_secret": intent.get("client_secret"),
        "next_action": intent.get("next_action"),
    }

def payment_method_summary(pm: Dict[str, Any]) -> Dict[str, Any]:
    card = pm.get("card") or {}
    return {
        "id": pm.get("id"),
        "brand": card.get("brand"),
        "last4": card.get("last4"),
        "exp_month": card.get("exp_month"),
        "exp_year": card.get("exp_year"),
    }

def owner_of(resource: Dict[str, Any]) -> Optional[str]:
    """Identifiant du compte de facturation propriétaire d'une facture ou d'un moyen de paiement."""
    return resource_id(resource.get("customer"))

# --- Comptes de facturation (Stripe Customer) ---

@_translate_errors("create_customer", "Failed to create billing account")
def create_billing_account(*, email: str, name: str, phone: Optional[str] = None, address: Optional[str] = None) -> str:
    """
    Crée le client Stripe miroir d'un compte local.
    Retour: identifiant du compte de facturation (cus_...).
    """
    params: Dict[str, Any] = {
        "email": email,
        "name": name,
        "metadata": {"source": "web_app"},
    }
    if phone:
        params["phone"] = phone
    if address:
        params["address"] = {"line1": address}
    customer = _as_dict(stripe.Customer.create(**params))
    return customer["id"]

@_translate_errors("update_customer", "Failed to update billing account")
def update_billing_account(account_id: str, **fields: Any) -> None:
    """
    Met à jour uniquement les champs fournis (name, phone, address).
    Aucun appel si aucun champ n'est transmis.
    """
    params: Dict[str, Any] = {}
    for key in ("name", "phone"):
        if key in fields:
            params[key] = fields[key]
    if "address" in fields:
        params["address"] = {"line1": fields["address"]} if fields["address"] else ""
    if not params:
        return
    stripe.Customer.modify(account_id, **params)

def delete_billing_account(account_id: str) -> bool:
    """
    Suppression best-effort: ne lève jamais.
    Retour: True si supprimé, False sinon (erreur journalisée).
    """
    require_stripe()
    try:
        stripe.Customer.delete(account_id)
        return True
    except Exception:
        logger.exception("Erreur stripe.delete_customer account_id=%s", account_id)
        return False

# --- Moyens de paiement ---

@_translate_errors("attach_payment_method", "Payment processing failed")
def attach_payment_method(payment_method_id: str, account_id: str) -> None:
    stripe.PaymentMethod.attach(payment_method_id, customer=account_id)

@_translate_errors("set_default_payment_method", "Payment processing failed")
def set_default_payment_method(account_id: str, payment_method_id: str) -> None:
    stripe.Customer.modify(account_id, invoice_settings={"default_payment_method": payment_method_id})

@_translate_errors("list_payment_methods", "Failed to fetch payment methods")
def list_payment_methods(account_id: str) -> List[Dict[str, Any]]:
    res = _as_dict(stripe.PaymentMethod.list(customer=account_id, type="card"))
    return [payment_method_summary(_as_dict(pm)) for pm in res.get("data") or []]

@_translate_errors("retrieve_payment_method", "Failed to fetch payment method", not_found="Payment method not found")
def retrieve_payment_method(payment_method_id: str) -> Dict[str, Any]:
    return _as_dict(stripe.PaymentMethod.retrieve(payment_method_id))

@_translate_errors("detach_payment_method", "Failed to delete payment method")
def detach_payment_method(payment_method_id: str) -> None:
    stripe.PaymentMethod.detach(payment_method_id)

# --- Factures ---

@_translate_errors("create_invoice_item", "Payment processing failed")
def create_line_item(account_id: str, *, amount: int, currency: str, description: str, quantity: int = 1) -> Dict[str, Any]:
    """
    Ajoute une ligne en attente sur le compte (rattachée à la prochaine facture créée).
    amount est un prix unitaire en unités mineures; le total de la ligne vaut amount * quantity.
    """
    item = stripe.InvoiceItem.create(
        customer=account_id,
        currency=currency,
        description=description,
        unit_amount_decimal=str(amount),
        quantity=quantity,
    )
    return _as_dict(item)

@_translate_errors("create_invoice", "Payment processing failed")
def create_invoice(account_id: str) -> Dict[str, Any]:
    """Crée une facture brouillon qui reprend les lignes en attente du compte."""
    invoice = stripe.Invoice.create(
        customer=account_id,
        auto_advance=True,
        collection_method="charge_automatically",
        pending_invoice_items_behavior="include",
        payment_settings={
            "payment_method_options": {"card": {"request_three_d_secure": "any"}},
            "payment_method_types": ["card"],
        },
    )
    return _as_dict(invoice)

@_translate_errors("finalize_invoice", "Payment processing failed")
def finalize_invoice(invoice_id: str) -> Dict[str, Any]:
    return _as_dict(stripe.Invoice.finalize_invoice(invoice_id))

@_translate_errors("pay_invoice", "Payment processing failed")
def pay_invoice(invoice_id: str, payment_method_id: str) -> Dict[str, Any]:
    return _as_dict(stripe.Invoice.pay(invoice_id, payment_method=payment_method_id))

@_translate_errors("retrieve_payment_intent", "Payment processing failed")
def retrieve_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    return _as_dict(stripe.PaymentIntent.retrieve(payment_intent_id))

@_translate_errors("list_invoices", "Failed to fetch invoices")
def list_invoices(account_id: str, *, limit: int = 10, starting_after: Optional[str] = None) -> Tuple[List[Dict[str, Any]], bool]:
    """
    Page de factures du compte.
    Retour: (résumés de factures, has_more)
    """
    params: Dict[str, Any] = {"customer": account_id, "limit": limit}
    if starting_after:
        params["starting_after"] = starting_after
    res = _as_dict(stripe.Invoice.list(**params))
    invoices = [invoice_summary(_as_dict(inv)) for inv in res.get("data") or []]
    return invoices, bool(res.get("has_more"))

@_translate_errors("retrieve_invoice", "Failed to fetch invoice", not_found="Invoice not found")
def retrieve_invoice(invoice_id: str) -> Dict[str, Any]:
    return _as_dict(stripe.Invoice.retrieve(invoice_id))

@_translate_errors("send_invoice", "Failed to send invoice")
def send_invoice(invoice_id: str) -> None:
    stripe.Invoice.send_invoice(invoice_id)
