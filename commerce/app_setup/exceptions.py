"""
Gestionnaires d’exceptions de l’API.
Toutes les erreurs sortent au format { "success": false, "detail": <message> }.
- AppError: code et message portés par l'erreur (commerce.errors)
- HTTPException: code et détail d'origine (404 de routage, 429 du rate limiter...)
- RequestValidationError: 400, messages de champs joints par ", "
- Exception: 500 opaque, stack trace dans les logs
"""
import logging
from typing import Any, Dict
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from commerce.errors import AppError

logger = logging.getLogger(__name__)

def _error(status_code: int, detail: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "detail": detail})

def format_validation_error(err: Dict[str, Any]) -> str:
    msg = str(err.get("msg", "Invalid value"))
    if msg.startswith("Value error, "):
        return msg[len("Value error, "):]
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
    return f"{'.'.join(loc)}: {msg}" if loc else msg

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(400, ", ".join(format_validation_error(e) for e in exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")
