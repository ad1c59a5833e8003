from fastapi import FastAPI

from shared.errors import register_exception_handlers

from .models import Delivery, DeliveryRequest, RiderProfile  # noqa: F401 (registers models with Base)
from .router import router, rider_router, public_router

delivery_app = FastAPI(title="Delivery Service", version="1.0.0")

register_exception_handlers(delivery_app)

delivery_app.include_router(public_router)
delivery_app.include_router(rider_router)
delivery_app.include_router(router)
