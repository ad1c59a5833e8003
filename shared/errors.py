"""
Application error hierarchy and the FastAPI handlers that render it.

Services raise these instead of HTTPException so the same rules apply whether an
operation is called from a router, a webhook or a test.
"""
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from shared.config import settings

logger = structlog.get_logger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    message = "Bad request"


class InvalidSignatureError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_SIGNATURE"
    message = "Invalid signature"


class UnauthorizedError(AppError):
    # Authorization failures stay explicit; they are never reported as not-found.
    status_code = status.HTTP_403_FORBIDDEN
    code = "UNAUTHORIZED"
    message = "You are not allowed to perform this action"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Resource state changed, please retry"


class PaymentGatewayError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "PAYMENT_GATEWAY_ERROR"
    message = "Payment gateway request failed"


def _error_body(code: str, message: str, details: Any = None) -> dict:
    body = {"status": "error", "code": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
        method=request.method,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.details),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        method=request.method,
        path=request.url.path,
    )
    message = str(exc) if settings.SHOW_ERROR_DETAILS else "Internal server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("INTERNAL_ERROR", message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Mounted sub-apps handle their own exceptions, so each one calls this."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
