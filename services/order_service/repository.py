from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from services.catalog_service.models import Restaurant
from services.delivery_service.models import Delivery
from shared.config.database import utcnow

from .models import Order, OrderItem, OrderStatusEvent


class OrderRepository:
    """
    Statement-level helpers. Methods that write only flush; the service that
    owns the transaction decides when to commit or roll back.
    """

    @staticmethod
    async def add_order(db: AsyncSession, order: Order, items: list[OrderItem], delivery: Optional[Delivery]):
        db.add(order)
        await db.flush()  # get order.id
        for item in items:
            item.order_id = order.id
        db.add_all(items)
        if delivery is not None:
            delivery.order_id = order.id
            db.add(delivery)
        await db.flush()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id) -> Optional[Order]:
        result = await db.execute(select(Order).where(Order.id == order_id).execution_options(populate_existing=True))
        return result.scalars().first()

    @staticmethod
    async def get_order_access(db: AsyncSession, order_id):
        """The order with the two other parties allowed to touch it: restaurant owner and rider."""
        result = await db.execute(
            select(Order, Restaurant.owner_id, Delivery.rider_id)
            .outerjoin(Restaurant, Restaurant.id == Order.restaurant_id)
            .outerjoin(Delivery, Delivery.order_id == Order.id)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.first()

    @staticmethod
    async def get_items(db: AsyncSession, order_id) -> list[OrderItem]:
        result = await db.execute(select(OrderItem).where(OrderItem.order_id == order_id))
        return list(result.scalars().all())

    @staticmethod
    async def get_delivery(db: AsyncSession, order_id) -> Optional[Delivery]:
        result = await db.execute(
            select(Delivery).where(Delivery.order_id == order_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def set_status(db: AsyncSession, order_id, status: str, **extra) -> Optional[Order]:
        await db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(status=status, updated_at=utcnow(), **extra)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def confirm_if_pending(db: AsyncSession, order_id) -> bool:
        """pending -> confirmed, only if nobody moved the order first."""
        result = await db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == "pending")
            .values(status="confirmed", updated_at=utcnow())
            .returning(Order.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def append_event(db: AsyncSession, order_id, status: str, note: Optional[str], created_by) -> OrderStatusEvent:
        event = OrderStatusEvent(order_id=order_id, status=status, note=note, created_by=created_by)
        db.add(event)
        await db.flush()
        return event

    @staticmethod
    async def list_events(db: AsyncSession, order_id) -> list[OrderStatusEvent]:
        result = await db.execute(
            select(OrderStatusEvent)
            .where(OrderStatusEvent.order_id == order_id)
            .order_by(OrderStatusEvent.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_orders(db: AsyncSession, *criteria, limit: int, offset: int) -> tuple[list[Order], int]:
        count_result = await db.execute(select(func.count()).select_from(Order).where(*criteria))
        total = count_result.scalar_one()
        result = await db.execute(
            select(Order)
            .where(*criteria)
            .order_by(Order.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total
