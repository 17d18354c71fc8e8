"""
Cas d'usage 'billing': paiements, factures et moyens de paiement d'un client authentifié.

Les ressources Stripe ne sont jamais mises en cache localement: chaque lecture vérifie que la
ressource appartient au compte de facturation du client avant de l'exposer ou de la modifier.
Une ressource d'un autre compte est signalée comme introuvable (404), jamais comme interdite.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from commerce.errors import NotFoundError
from . import checkout
from . import gateway

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

def require_billing_account(customer: Dict[str, Any]) -> str:
    account_id = (customer or {}).get("billing_account_id")
    if not account_id:
        raise NotFoundError("Customer not found or no billing account")
    return account_id

async def create_payment(
    customer: Dict[str, Any],
    *,
    payment_method_id: str,
    amount: int,
    currency: str,
    description: Optional[str],
    save_payment_method: bool,
) -> Dict[str, Any]:
    account_id = require_billing_account(customer)
    result = await checkout.pay_amount(
        account_id=account_id,
        payment_method_id=payment_method_id,
        amount=amount,
        currency=currency,
        description=description,
        save_payment_method=save_payment_method,
    )
    logger.info("Payment created for customer: %s, amount: %s %s", customer.get("email"), amount, currency)
    return result

async def create_payment_with_items(
    customer: Dict[str, Any],
    *,
    payment_method_id: str,
    items: List[Dict[str, Any]],
    currency: str,
    save_payment_method: bool,
) -> Dict[str, Any]:
    account_id = require_billing_account(customer)
    result = await checkout.pay_items(
        account_id=account_id,
        payment_method_id=payment_method_id,
        items=items,
        currency=currency,
        save_payment_method=save_payment_method,
    )
    logger.info("Payment with items created for customer: %s, items: %s", customer.get("email"), len(items or []))
    return result

async def list_invoices(customer: Dict[str, Any], *, limit: int = 10, starting_after: Optional[str] = None) -> Dict[str, Any]:
    account_id = require_billing_account(customer)
    limit = max(1, min(int(limit or 10), MAX_PAGE_SIZE))
    invoices, has_more = await run_in_threadpool(
        gateway.list_invoices, account_id, limit=limit, starting_after=starting_after
    )
    return {"invoices": invoices, "has_more": has_more}

async def get_owned_invoice(customer: Dict[str, Any], invoice_id: str) -> Dict[str, Any]:
    """
    Récupère une facture et vérifie qu'elle appartient au client.
    Lève NotFoundError si elle n'existe pas ou appartient à un autre compte.
    """
    account_id = (customer or {}).get("billing_account_id")
    if not account_id:
        raise NotFoundError("Invoice not found")
    invoice = await run_in_threadpool(gateway.retrieve_invoice, invoice_id)
    if gateway.owner_of(invoice) != account_id:
        logger.warning("invoice ownership mismatch customer=%s invoice=%s", customer.get("id"), invoice_id)
        raise NotFoundError("Invoice not found")
    return invoice

async def get_invoice(customer: Dict[str, Any], invoice_id: str) -> Dict[str, Any]:
    invoice = await get_owned_invoice(customer, invoice_id)
    return gateway.invoice_summary(invoice)

async def send_invoice(customer: Dict[str, Any], invoice_id: str) -> None:
    await get_owned_invoice(customer, invoice_id)
    await run_in_threadpool(gateway.send_invoice, invoice_id)
    logger.info("Invoice sent to customer: %s, invoice: %s", customer.get("email"), invoice_id)

async def list_payment_methods(customer: Dict[str, Any]) -> List[Dict[str, Any]]:
    account_id = require_billing_account(customer)
    return await run_in_threadpool(gateway.list_payment_methods, account_id)

async def delete_payment_method(customer: Dict[str, Any], payment_method_id: str) -> None:
    """Détache un moyen de paiement après contrôle de propriété (404 sinon, rien n'est détaché)."""
    account_id = (customer or {}).get("billing_account_id")
    if not account_id:
        raise NotFoundError("Payment method not found")
    payment_method = await run_in_threadpool(gateway.retrieve_payment_method, payment_method_id)
    if gateway.owner_of(payment_method) != account_id:
        logger.warning("payment method ownership mismatch customer=%s pm=%s", customer.get("id"), payment_method_id)
        raise NotFoundError("Payment method not found")
    await run_in_threadpool(gateway.detach_payment_method, payment_method_id)
    logger.info("Payment method deleted for customer: %s", customer.get("email"))
