"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `commerce.asgi:app`.
- Toute la configuration FastAPI est centralisée dans commerce.app_setup.factory.
"""

from commerce.app import app

__all__ = ["app"]
