"""
Registre central des routers.
- Paiement: /initiate-payment, /pay/webhook/url, /check-payment-status
- Inscription: /signup
- Health: /health, /health/signup
"""
from fastapi import FastAPI

from paygate.health.router import router as health_router
from paygate.payments import views as payments_views
from paygate.signup import views as signup_views


def register_routers(app: FastAPI) -> None:
    app.include_router(payments_views.router)
    app.include_router(signup_views.router)
    # Health & monitoring
    app.include_router(health_router)
