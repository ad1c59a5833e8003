from fastapi import FastAPI

from shared.errors import register_exception_handlers

from .models import User, Address  # noqa: F401 (registers models with SQLAlchemy Base)
from .router import router, public_router

auth_app = FastAPI(
    title="Auth Service",
    version="1.0.0",
    description="JWT authentication and customer address book.",
)

register_exception_handlers(auth_app)

auth_app.include_router(router)
auth_app.include_router(public_router)
