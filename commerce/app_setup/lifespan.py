"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Vérifie les variables obligatoires (JWT_SECRET, STRIPE_SECRET_KEY): refus de démarrer en production.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Démarre la sauvegarde planifiée et l'annule à l'arrêt.
- Variables d’environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l’init échoue
"""
import os
import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter
from redis import asyncio as aioredis

from commerce import config
from commerce.storage.backup import start_backup_task

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except ImportError:
    FakeRedis = None

logger = logging.getLogger("uvicorn.error")

def check_required_settings() -> None:
    missing = config.missing_required_settings()
    if not missing:
        return
    if config.is_production():
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    logger.warning("Missing environment variables: %s", ", ".join(missing))

async def init_rate_limiter(app: FastAPI) -> None:
    """
    Configure le rate limiting et gère les fallbacks.
    - En cas d’échec de Redis et sans fallback, le rate limiting est désactivé proprement.
    - Les logs indiquent l’état effectif (enabled/disabled) pour observabilité.
    """
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        use_fake = os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1"
        if use_fake:
            if not FakeRedis:
                raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
            r = FakeRedis(decode_responses=True)
        else:
            r = aioredis.from_url(config.RATE_LIMIT_REDIS_URL, encoding="utf-8", decode_responses=True)

        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning(f"Rate limiting falling back to local in-memory due to init error: {e}")
        else:
            app.state.rate_limit_enabled = False
            logger.warning(f"Rate limiting disabled due to init error: {e}")

@asynccontextmanager
async def lifespan(app: FastAPI):
    check_required_settings()
    app.state.started_at = time.monotonic()
    await init_rate_limiter(app)

    backup_task = start_backup_task()
    if backup_task:
        logger.info("Scheduled backups enabled")
    app.state.backup_task = backup_task

    logger.info("Server starting (environment=%s)", config.ENVIRONMENT)
    yield

    # Phase shutdown
    logger.info("Shutting down gracefully")
    if backup_task:
        backup_task.cancel()
        with suppress(asyncio.CancelledError):
            await backup_task
    if getattr(app.state, "rate_limit_enabled", False) and getattr(FastAPILimiter, "redis", None) is not None:
        await FastAPILimiter.close()
