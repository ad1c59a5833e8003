import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import Actor, get_current_actor

from .paymongo import PaymongoClient, get_gateway
from .schemas import ChargeCreate, ChargeResponse, PaymentStatusResponse, SourceCreate, SourceResponse
from .service import PaymentService

router = APIRouter(tags=["Payments"])
# The gateway calls the webhook without a bearer token.
public_router = APIRouter()

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


@public_router.post("/webhook")
async def paymongo_webhook(
    request: Request,
    paymongo_signature: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
    gateway: PaymongoClient = Depends(get_gateway),
):
    raw_body = await request.body()
    signature = paymongo_signature or request.headers.get("x-paymongo-signature")
    return await PaymentService.handle_webhook(db, gateway, raw_body, signature)


@router.post("/create-source", response_model=SourceResponse)
async def create_source(
    payload: SourceCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymongoClient = Depends(get_gateway),
):
    return await PaymentService.create_source(
        db, gateway, actor, payload.order_id, payload.amount, payload.redirect_success, payload.redirect_failed
    )


@router.post("/create-payment", response_model=ChargeResponse)
async def create_payment(
    payload: ChargeCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymongoClient = Depends(get_gateway),
):
    return await PaymentService.create_payment_from_source(db, gateway, actor, payload.source_id, payload.order_id)


@router.get("/status/{order_id}", response_model=PaymentStatusResponse)
async def get_payment_status(
    order_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await PaymentService.get_status(db, actor, order_id)
