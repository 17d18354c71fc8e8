from fastapi import APIRouter, Depends

from commerce.utils.rate_limit import optional_rate_limit, general_rate_limit
from .models import RegisterRequest, LoginRequest
from .registration import register as svc_register
from .service import login as svc_login

# --- API Router (/api/v1/auth) ---

api_router = APIRouter(prefix="/api/v1/auth", tags=["Auth API"], dependencies=[Depends(general_rate_limit)])

@api_router.post("/register", status_code=201, dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_register(req: RegisterRequest):
    """Inscription (API JSON).
    - Rate limit: 10 requêtes par minute.
    - Crée le compte de facturation puis le compte local (compensation si l'insertion échoue).
    - Réponse 201: { success, token, customer: {id, name, email, billingAccountId} }
    """
    token, customer = svc_register(
        name=req.name,
        email=str(req.email),
        address=req.address,
        phone=req.phone,
        password=req.password,
    )
    return {"success": True, "token": token, "customer": customer}

@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_login(req: LoginRequest):
    """Connexion (API JSON). 401 "Invalid email or password" sans distinguer email inconnu et mauvais mot de passe."""
    token, customer = svc_login(str(req.email), req.password)
    return {"success": True, "token": token, "customer": customer}
