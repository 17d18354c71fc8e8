"""
Taxonomie des erreurs applicatives.

Chaque erreur porte son code HTTP et un message destiné au client.
Les détails techniques (exceptions SDK, stack traces) restent dans les logs serveur;
seul PaymentRejected laisse passer le message du processeur de paiement.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication failed"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class PaymentRejected(AppError):
    """Refus de carte: corrigeable par l'utilisateur, message du processeur renvoyé tel quel."""
    status_code = 400
    default_message = "Your card was declined"


class GatewayUnavailable(AppError):
    status_code = 500
    default_message = "Payment processing failed"


class InternalError(AppError):
    status_code = 500
    default_message = "Internal server error"
