import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.config.database import get_db
from shared.security import Actor, get_current_actor, limiter

from .schemas import (
    OrderCreate,
    OrderCreatedResponse,
    OrderDetailResponse,
    OrderPage,
    OrderStatusEventResponse,
    OrderStatusResponse,
    OrderStatusUpdate,
)
from .service import OrderService

router = APIRouter(tags=["Orders"])
public_router = APIRouter()

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@router.post("/", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ORDER_RATE_LIMIT)
async def create_order(
    request: Request,
    payload: OrderCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    order, delivery = await OrderService.create_order(db, actor, payload)
    return OrderCreatedResponse(
        order_id=order.id,
        status=order.status,
        subtotal=order.subtotal,
        delivery_fee=order.delivery_fee,
        tip_amount=order.tip_amount,
        total_amount=order.total_amount,
        estimated_delivery_time=order.estimated_delivery_time,
        delivery_id=delivery.id if delivery else None,
    )


@router.get("/mine", response_model=OrderPage)
async def list_my_orders(
    status: str = Query(default="all"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.list_for_customer(db, actor, status, page, page_size)


@router.get("/restaurants/{restaurant_id}", response_model=OrderPage)
async def list_restaurant_orders(
    restaurant_id: uuid.UUID,
    status: str = Query(default="all"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.list_for_restaurant(db, actor, restaurant_id, status, page, page_size)


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.get_order(db, actor, order_id)


@router.patch("/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.update_status(db, actor, order_id, payload.status, payload.note)


@router.get("/{order_id}/history", response_model=list[OrderStatusEventResponse])
async def get_order_history(
    order_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.status_history(db, actor, order_id)
