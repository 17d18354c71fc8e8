"""
Schémas d'entrée des endpoints de paiement.
Les noms de champs suivent le contrat JSON public (camelCase).
"""
from typing import Any, List, Optional
from pydantic import BaseModel, Field, StrictInt, field_validator


def _check_currency(v: str) -> str:
    v = (v or "").strip()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("currency must be a 3-letter code")
    return v.lower()


class PaymentRequest(BaseModel):
    paymentMethodId: str = Field(min_length=1)
    amount: StrictInt = Field(ge=1)
    currency: str = "usd"
    description: Optional[str] = Field(default=None, max_length=500)
    # seule la chaîne "true" active l'enregistrement, toute autre valeur JSON vaut non
    savePaymentMethod: Optional[Any] = None

    @field_validator("currency")
    def currency_code(cls, v: str) -> str:
        return _check_currency(v)

    @property
    def save_payment_method(self) -> bool:
        return self.savePaymentMethod == "true"


class PaymentItem(BaseModel):
    amount: StrictInt = Field(ge=1)
    description: str = Field(min_length=1, max_length=500)
    quantity: Optional[StrictInt] = Field(default=None, ge=1)


class PaymentWithItemsRequest(BaseModel):
    paymentMethodId: str = Field(min_length=1)
    items: List[PaymentItem] = Field(min_length=1)
    currency: str = "usd"
    # seule la chaîne "true" active l'enregistrement, toute autre valeur JSON vaut non
    savePaymentMethod: Optional[Any] = None

    @field_validator("currency")
    def currency_code(cls, v: str) -> str:
        return _check_currency(v)

    @property
    def save_payment_method(self) -> bool:
        return self.savePaymentMethod == "true"
