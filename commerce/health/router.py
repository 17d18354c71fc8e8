from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from commerce.health.service import health_status, health_supabase_info
from commerce.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request):
    return health_status(getattr(request.app.state, "started_at", None))

@router.get("/supabase")
def health_supabase():
    return JSONResponse(health_supabase_info())

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
