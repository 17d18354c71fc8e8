"""
Factory d’application recommandée pour les entrypoints (ex: commerce.asgi).
Ordonne les étapes d’initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_middleware, register_request_logging_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l’app FastAPI avec le lifespan et enregistre:
      - middlewares de base, en-têtes de sécurité, journal des requêtes
      - gestionnaires d’exceptions
      - tous les routers (API v1, health)
    """
    app = FastAPI(title="Commerce API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_request_logging_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
