from fastapi import Request, Depends
from typing import Optional, Dict, Any

from commerce.errors import AuthenticationError

def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None

def get_current_customer(request: Request) -> Dict[str, Any]:
    """
    Résout le client authentifié à partir du jeton Bearer.
    - 401 "Access token required" si l'en-tête est absent
    - 401 "Invalid token" / "Token expired" selon l'échec de décodage
    - 401 "Invalid token - user not found" si le client a été supprimé
    """
    token = bearer_token(request)
    if not token:
        raise AuthenticationError("Access token required")

    # Délégué au service Auth
    from commerce.auth.service import decode_access_token
    from commerce.customers import repository
    claims = decode_access_token(token)
    customer = repository.get_customer_by_id(claims.get("id"))
    if not customer:
        raise AuthenticationError("Invalid token - user not found")
    return customer

def require_customer(customer: Dict[str, Any] = Depends(get_current_customer)) -> Dict[str, Any]:
    return customer
