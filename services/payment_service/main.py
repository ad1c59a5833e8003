from fastapi import FastAPI

from shared.errors import register_exception_handlers

from .models import Payment  # noqa: F401 (registers model with SQLAlchemy Base)
from .router import router, public_router

payment_app = FastAPI(title="Payment Service", version="2.0.0")

register_exception_handlers(payment_app)

payment_app.include_router(public_router)
payment_app.include_router(router)
