"""
Orchestration d'un paiement par facture (une tentative = une exécution de la machine à états).

Enchaînement strict, sans retry ni rollback:
    START -> [METHOD_ATTACHED] -> LINE_ITEMS_CREATED -> INVOICE_CREATED
          -> INVOICE_FINALIZED -> INVOICE_PAID -> INTENT_RETRIEVED -> DONE
(INTENT_SKIPPED remplace INTENT_RETRIEVED si la facture payée ne référence aucun PaymentIntent.)
Toute erreur fait passer la tentative en FAILED (étape fautive mémorisée) et interrompt la suite;
la facture éventuellement créée reste en brouillon/ouverte côté Stripe et est abandonnée.

Deux points d'entrée partagent la machine: pay_amount (montant unique) et pay_items (panier).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from commerce.billing import gateway as default_gateway
from commerce.errors import GatewayUnavailable, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "One-time payment"


class CheckoutState(str, Enum):
    START = "start"
    METHOD_ATTACHED = "method_attached"
    LINE_ITEMS_CREATED = "line_items_created"
    INVOICE_CREATED = "invoice_created"
    INVOICE_FINALIZED = "invoice_finalized"
    INVOICE_PAID = "invoice_paid"
    INTENT_RETRIEVED = "intent_retrieved"
    INTENT_SKIPPED = "intent_skipped"
    DONE = "done"
    FAILED = "failed"


@dataclass
class LineItem:
    amount: int
    description: str
    quantity: int = 1

    @property
    def total(self) -> int:
        return self.amount * self.quantity


@dataclass
class CheckoutRequest:
    account_id: str
    payment_method_id: str
    currency: str
    items: List[LineItem]
    save_payment_method: bool = False

    @property
    def total(self) -> int:
        return sum(item.total for item in self.items)


@dataclass
class CheckoutAttempt:
    request: CheckoutRequest
    state: CheckoutState = CheckoutState.START
    history: List[CheckoutState] = field(default_factory=lambda: [CheckoutState.START])
    invoice: Optional[Dict[str, Any]] = None
    payment_intent: Optional[Dict[str, Any]] = None
    failed_step: Optional[CheckoutState] = None
    error: Optional[BaseException] = None

    def advance(self, state: CheckoutState) -> None:
        self.state = state
        self.history.append(state)

    def result(self) -> Dict[str, Any]:
        """Résultat normalisé; paymentIntent vaut None si l'étape a été INTENT_SKIPPED."""
        invoice = self.invoice or {}
        return {
            "invoice": default_gateway.invoice_summary(invoice),
            "paymentIntent": default_gateway.payment_intent_summary(self.payment_intent) if self.payment_intent else None,
            "invoiceUrl": invoice.get("hosted_invoice_url"),
            "invoicePdf": invoice.get("invoice_pdf"),
        }


def _normalize_currency(currency: Any) -> Any:
    if currency is None:
        return "usd"
    return currency.strip().lower() if isinstance(currency, str) else currency

def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1

def validate_request(request: CheckoutRequest) -> None:
    """
    Contrôles exécutés avant tout appel externe, y compris quand la couche HTTP a déjà validé.
    Lève ValidationError avec les messages joints.
    """
    errors: List[str] = []
    if not request.account_id:
        errors.append("billing account is required")
    if not (request.payment_method_id or "").strip():
        errors.append("paymentMethodId is required")
    if not isinstance(request.currency, str) or len(request.currency) != 3:
        errors.append("currency must be exactly 3 characters")
    if not request.items:
        errors.append("Items array is required and must not be empty")
    for idx, item in enumerate(request.items or []):
        if not _is_positive_int(item.amount):
            errors.append(f"items[{idx}].amount must be a positive integer")
        if not _is_positive_int(item.quantity):
            errors.append(f"items[{idx}].quantity must be a positive integer")
    if errors:
        raise ValidationError(", ".join(errors))


class CheckoutOrchestrator:
    """
    Machine à états d'une tentative de paiement.
    - gateway: module (ou objet) exposant les opérations de commerce.billing.gateway
    - last_attempt: dernière tentative exécutée (état final, étape fautive)
    Les appels SDK sont bloquants: chaque étape les exécute dans le threadpool.
    """

    def __init__(self, gateway: Any = default_gateway):
        self.gateway = gateway
        self.last_attempt: Optional[CheckoutAttempt] = None

    def _steps(self, attempt: CheckoutAttempt) -> Sequence[tuple]:
        steps: List[tuple] = []
        if attempt.request.save_payment_method:
            steps.append((CheckoutState.METHOD_ATTACHED, self._attach_method))
        steps.extend([
            (CheckoutState.LINE_ITEMS_CREATED, self._create_line_items),
            (CheckoutState.INVOICE_CREATED, self._create_invoice),
            (CheckoutState.INVOICE_FINALIZED, self._finalize_invoice),
            (CheckoutState.INVOICE_PAID, self._pay_invoice),
            (CheckoutState.INTENT_RETRIEVED, self._retrieve_intent),
        ])
        return steps

    async def run(self, request: CheckoutRequest) -> CheckoutAttempt:
        validate_request(request)
        attempt = CheckoutAttempt(request=request)
        self.last_attempt = attempt
        for target, step in self._steps(attempt):
            try:
                reached = await step(attempt)
            except Exception as e:
                attempt.failed_step = target
                attempt.error = e
                attempt.advance(CheckoutState.FAILED)
                logger.warning(
                    "checkout failed account=%s step=%s invoice=%s error=%s",
                    request.account_id, target.value, (attempt.invoice or {}).get("id"), type(e).__name__,
                )
                raise
            attempt.advance(reached or target)
        attempt.advance(CheckoutState.DONE)
        logger.info(
            "checkout done account=%s invoice=%s total=%s %s",
            request.account_id, (attempt.invoice or {}).get("id"), request.total, request.currency,
        )
        return attempt

    # --- étapes ---

    async def _attach_method(self, attempt: CheckoutAttempt) -> None:
        req = attempt.request
        await run_in_threadpool(self.gateway.attach_payment_method, req.payment_method_id, req.account_id)
        await run_in_threadpool(self.gateway.set_default_payment_method, req.account_id, req.payment_method_id)

    async def _create_line_items(self, attempt: CheckoutAttempt) -> None:
        # Lignes indépendantes entre elles: créées en parallèle, toutes avant la facture
        req = attempt.request
        await asyncio.gather(*[
            run_in_threadpool(
                self.gateway.create_line_item,
                req.account_id,
                amount=item.amount,
                currency=req.currency,
                description=item.description,
                quantity=item.quantity,
            )
            for item in req.items
        ])

    async def _create_invoice(self, attempt: CheckoutAttempt) -> None:
        attempt.invoice = await run_in_threadpool(self.gateway.create_invoice, attempt.request.account_id)

    async def _finalize_invoice(self, attempt: CheckoutAttempt) -> None:
        finalized = await run_in_threadpool(self.gateway.finalize_invoice, attempt.invoice["id"])
        status = (finalized or {}).get("status")
        if status != "open":
            logger.error("checkout invoice=%s not open after finalize status=%s", attempt.invoice["id"], status)
            raise GatewayUnavailable("Invoice could not be finalized")
        attempt.invoice = finalized

    async def _pay_invoice(self, attempt: CheckoutAttempt) -> None:
        # Moyen de paiement toujours explicite: la tentative ne dépend pas du défaut du compte
        attempt.invoice = await run_in_threadpool(
            self.gateway.pay_invoice, attempt.invoice["id"], attempt.request.payment_method_id
        )

    async def _retrieve_intent(self, attempt: CheckoutAttempt) -> Optional[CheckoutState]:
        # facture payée sans PaymentIntent (ex: montant nul): étape marquée INTENT_SKIPPED, paymentIntent vaut None
        intent_id = default_gateway.resource_id(attempt.invoice.get("payment_intent"))
        if not intent_id:
            logger.warning("checkout invoice=%s has no payment_intent", attempt.invoice.get("id"))
            return CheckoutState.INTENT_SKIPPED
        attempt.payment_intent = await run_in_threadpool(self.gateway.retrieve_payment_intent, intent_id)
        return None


async def pay_amount(
    *,
    account_id: str,
    payment_method_id: str,
    amount: int,
    currency: str = "usd",
    description: Optional[str] = None,
    save_payment_method: bool = False,
    orchestrator: Optional[CheckoutOrchestrator] = None,
) -> Dict[str, Any]:
    """Paiement d'un montant unique (une seule ligne, quantité implicite 1)."""
    request = CheckoutRequest(
        account_id=account_id,
        payment_method_id=payment_method_id,
        currency=_normalize_currency(currency),
        items=[LineItem(amount=amount, description=description or DEFAULT_DESCRIPTION)],
        save_payment_method=save_payment_method,
    )
    attempt = await (orchestrator or CheckoutOrchestrator()).run(request)
    return attempt.result()


async def pay_items(
    *,
    account_id: str,
    payment_method_id: str,
    items: List[Dict[str, Any]],
    currency: str = "usd",
    save_payment_method: bool = False,
    orchestrator: Optional[CheckoutOrchestrator] = None,
) -> Dict[str, Any]:
    """Paiement d'un panier: une ligne par article, quantité par défaut 1."""
    line_items = [
        LineItem(
            amount=it.get("amount"),
            description=it.get("description") or DEFAULT_DESCRIPTION,
            quantity=1 if it.get("quantity") is None else it.get("quantity"),
        )
        for it in (items or [])
    ]
    request = CheckoutRequest(
        account_id=account_id,
        payment_method_id=payment_method_id,
        currency=_normalize_currency(currency),
        items=line_items,
        save_payment_method=save_payment_method,
    )
    attempt = await (orchestrator or CheckoutOrchestrator()).run(request)
    return attempt.result()
