from fastapi import FastAPI

from shared.errors import register_exception_handlers

from .models import DeliveryFeeTier  # noqa: F401 (registers model with SQLAlchemy Base)
from .router import router, admin_router, legacy_router, public_router

fee_app = FastAPI(title="Delivery Fee Service", version="1.0.0")

register_exception_handlers(fee_app)

fee_app.include_router(public_router)
fee_app.include_router(router)
fee_app.include_router(admin_router)
fee_app.include_router(legacy_router)
