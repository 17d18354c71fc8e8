from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from commerce.utils.security import require_customer
from commerce.utils.rate_limit import optional_rate_limit, general_rate_limit
from . import service as billing_service
from .models import PaymentRequest, PaymentWithItemsRequest

router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"], dependencies=[Depends(general_rate_limit)])

# module commerce.billing.views
@router.post("/create-payment", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
async def create_payment(req: PaymentRequest, customer: Dict[str, Any] = Depends(require_customer)):
    """
    Paiement d'un montant unique par facture Stripe.
    - Entrée JSON: { paymentMethodId, amount, currency?, description?, savePaymentMethod? }
    - savePaymentMethod == "true": rattache le moyen de paiement au compte et le définit par défaut
    - Réponse: { success, invoice, paymentIntent, invoiceUrl, invoicePdf }
    - Erreurs: 400 (validation, carte refusée), 404 (pas de compte de facturation), 500 (processeur)
    """
    result = await billing_service.create_payment(
        customer,
        payment_method_id=req.paymentMethodId,
        amount=req.amount,
        currency=req.currency,
        description=req.description,
        save_payment_method=req.save_payment_method,
    )
    return {"success": True, **result}

@router.post("/create-payment-with-items", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
async def create_payment_with_items(req: PaymentWithItemsRequest, customer: Dict[str, Any] = Depends(require_customer)):
    """
    Paiement d'un panier: une ligne de facture par article (quantity par défaut 1).
    - Entrée JSON: { paymentMethodId, items: [{amount, description, quantity?}], currency?, savePaymentMethod? }
    """
    result = await billing_service.create_payment_with_items(
        customer,
        payment_method_id=req.paymentMethodId,
        items=[item.model_dump() for item in req.items],
        currency=req.currency,
        save_payment_method=req.save_payment_method,
    )
    return {"success": True, **result}

@router.get("/invoices")
async def list_invoices(
    limit: int = Query(10, ge=1, le=100),
    starting_after: Optional[str] = Query(None, alias="startingAfter"),
    customer: Dict[str, Any] = Depends(require_customer),
):
    """Factures du client, paginées par curseur (startingAfter = id de la dernière facture reçue)."""
    page = await billing_service.list_invoices(customer, limit=limit, starting_after=starting_after)
    return {"success": True, **page}

@router.get("/invoice/{invoice_id}")
async def get_invoice(invoice_id: str, customer: Dict[str, Any] = Depends(require_customer)):
    invoice = await billing_service.get_invoice(customer, invoice_id)
    return {"success": True, "invoice": invoice}

@router.post("/invoice/{invoice_id}/send")
async def send_invoice(invoice_id: str, customer: Dict[str, Any] = Depends(require_customer)):
    await billing_service.send_invoice(customer, invoice_id)
    return {"success": True, "message": "Invoice sent successfully"}

@router.get("/payment-methods")
async def list_payment_methods(customer: Dict[str, Any] = Depends(require_customer)):
    payment_methods = await billing_service.list_payment_methods(customer)
    return {"success": True, "paymentMethods": payment_methods}

@router.delete("/payment-method/{payment_method_id}")
async def delete_payment_method(payment_method_id: str, customer: Dict[str, Any] = Depends(require_customer)):
    """Détache un moyen de paiement du client (404 s'il appartient à un autre compte)."""
    await billing_service.delete_payment_method(customer, payment_method_id)
    return {"success": True, "message": "Payment method deleted successfully"}
