"""
Module 'billing' (feature-first): point d'entrée public.
Réunit le client Stripe, la machine à états de paiement et les cas d'usage factures/moyens de paiement.
"""

from .checkout import CheckoutOrchestrator, CheckoutState, LineItem, CheckoutRequest, pay_amount, pay_items
from .service import (
    create_payment,
    create_payment_with_items,
    list_invoices,
    get_invoice,
    send_invoice,
    list_payment_methods,
    delete_payment_method,
)

__all__ = [
    # checkout
    "CheckoutOrchestrator",
    "CheckoutState",
    "LineItem",
    "CheckoutRequest",
    "pay_amount",
    "pay_items",
    # services
    "create_payment",
    "create_payment_with_items",
    "list_invoices",
    "get_invoice",
    "send_invoice",
    "list_payment_methods",
    "delete_payment_method",
]
