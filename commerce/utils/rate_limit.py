from typing import Dict, Any, Optional
from fastapi import Request, Response, HTTPException
import os
import time
import hashlib
import logging

from commerce.utils.security import bearer_token

logger = logging.getLogger(__name__)

def _client_key(req: Request, scope: Optional[str] = None) -> str:
    # Priorité: jeton Bearer (hashé) puis IP; compteur par chemin sauf si un scope commun est donné
    token = bearer_token(req)
    path = scope or req.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"customer:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"

def optional_rate_limit(times: int, seconds: int, scope: Optional[str] = None):
    """
    Dépendance de limitation de débit.
    - fastapi-limiter (Redis) si initialisé par le lifespan
    - LOCAL_RATE_LIMIT_FALLBACK=1: compteur mémoire par clé (dev/tests)
    - rate limiting désactivé: aucune limite
    - scope: budget partagé par toutes les routes qui utilisent le même scope
    """
    async def _dep(request: Request, response: Response):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request, scope)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too many requests, please try again later")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        # Respecter le flag global
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req, scope)

        try:
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception as e:
            # Redis indisponible en cours de route: pas de 429, on journalise
            logger.warning("rate limiter unavailable: %s", e)
            return
    return _dep

# Budget général des routes /api/ (100 requêtes par 15 minutes et par client)
general_rate_limit = optional_rate_limit(times=100, seconds=15 * 60, scope="api")

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)

    from fastapi_limiter import FastAPILimiter
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    backend = "redis" if limiter_ready else None
    if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
        backend = "memory"

    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": backend,
    }

    if backend == "redis":
        from urllib.parse import urlparse
        from commerce.config import RATE_LIMIT_REDIS_URL
        if RATE_LIMIT_REDIS_URL:
            p = urlparse(RATE_LIMIT_REDIS_URL)
            info["redis"] = {
                "scheme": p.scheme,
                "host": p.hostname,
                "port": p.port,
            }

    return info
