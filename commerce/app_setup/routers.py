"""
Registre central des routers.
- API v1: auth, customers, payments
- Health: health_router
"""
from fastapi import FastAPI
from commerce.auth.views import api_router as auth_api_router
from commerce.customers.views import api_router as customers_api_router
from commerce.billing import views as payments_views
from commerce.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(auth_api_router)
    app.include_router(customers_api_router)
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
