"""
Inscription d'un client: compte local + compte de facturation Stripe.

Le compte de facturation est créé en premier (son id est stocké sur la ligne locale),
puis la ligne locale est insérée. Si l'insertion échoue, l'unique compensation supprime
le compte de facturation (best-effort) et l'erreur d'origine est propagée.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from commerce.billing import gateway
from commerce.customers import repository
from commerce.errors import ValidationError
from .service import hash_password, create_access_token

logger = logging.getLogger(__name__)

Context = Dict[str, Any]


@dataclass
class SagaStep:
    name: str
    action: Callable[[Context], None]
    compensation: Optional[Callable[[Context], None]] = None


def run_saga(steps: List[SagaStep], context: Context) -> Context:
    """
    Exécute les étapes dans l'ordre.
    En cas d'échec, compense les étapes déjà terminées (ordre inverse) puis relève l'erreur d'origine.
    Une compensation qui échoue est journalisée, jamais propagée.
    """
    done: List[SagaStep] = []
    for step in steps:
        try:
            step.action(context)
        except Exception:
            logger.warning("registration step '%s' failed, compensating %d step(s)", step.name, len(done))
            for finished in reversed(done):
                if finished.compensation is None:
                    continue
                try:
                    finished.compensation(context)
                except Exception:
                    logger.exception("compensation of '%s' failed", finished.name)
            raise
        done.append(step)
    return context


def _create_billing_account(ctx: Context) -> None:
    ctx["billing_account_id"] = gateway.create_billing_account(
        email=ctx["email"],
        name=ctx["name"],
        phone=ctx["phone"],
        address=ctx["address"],
    )

def _delete_billing_account(ctx: Context) -> None:
    account_id = ctx.get("billing_account_id")
    if not account_id:
        return
    deleted = gateway.delete_billing_account(account_id)
    if deleted:
        logger.info("Billing account %s removed after failed registration", account_id)
    else:
        logger.error("Orphan billing account %s left after failed registration", account_id)

def _insert_customer(ctx: Context) -> None:
    ctx["customer"] = repository.insert_customer(
        name=ctx["name"],
        email=ctx["email"],
        address=ctx["address"],
        phone=ctx["phone"],
        password_hash=ctx["password_hash"],
        billing_account_id=ctx["billing_account_id"],
    )

REGISTRATION_STEPS = [
    SagaStep("create_billing_account", _create_billing_account, _delete_billing_account),
    SagaStep("insert_customer", _insert_customer),
]


def register(*, name: str, email: str, address: str, phone: str, password: str) -> Tuple[str, Dict[str, Any]]:
    """
    Inscription complète.
    - Refuse un email déjà utilisé avant tout appel Stripe
    - Retour: (token, résumé client)
    """
    email = (email or "").strip().lower()
    if repository.get_customer_by_email(email):
        raise ValidationError("Email already registered")

    ctx: Context = {
        "name": name,
        "email": email,
        "address": address,
        "phone": phone,
        "password_hash": hash_password(password),
    }
    run_saga(REGISTRATION_STEPS, ctx)

    customer = ctx["customer"]
    logger.info("New customer registered: %s", customer.get("email"))
    return create_access_token(customer), repository.to_summary(customer)
