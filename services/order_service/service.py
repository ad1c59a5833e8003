import math
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth_service.repository import AddressRepository
from services.catalog_service.repository import CatalogRepository
from services.catalog_service.service import CatalogGuard
from services.delivery_service.models import Delivery
from services.delivery_service.repository import DeliveryRepository
from services.fee_service.service import FeeService
from shared.errors import BadRequestError, NotFoundError, UnauthorizedError
from shared.observability import (
    foodhub_order_creation_duration_seconds,
    foodhub_order_status_transitions_total,
    foodhub_orders_created_total,
)
from shared.security import Actor

from .models import ORDER_STATUSES, Order, OrderItem
from .repository import OrderRepository
from .schemas import OrderCreate

logger = structlog.get_logger(__name__)

# Order statuses that are copied onto the delivery row, and what they become there.
# Cancelling puts the delivery back to 'assigned' rather than a cancelled state.
DELIVERY_STATUS_MIRROR = {
    "picked_up": "picked_up",
    "delivered": "delivered",
    "cancelled": "assigned",
}


class InvalidStatus(BadRequestError):
    code = "INVALID_STATUS"
    message = "Invalid order status"


class BelowMinimum(BadRequestError):
    code = "BELOW_MINIMUM"
    message = "Subtotal is below the restaurant minimum order amount"


class AddressRequired(BadRequestError):
    code = "ADDRESS_REQUIRED"
    message = "A delivery address is required for delivery orders"


class AddressNotFound(BadRequestError):
    code = "ADDRESS_NOT_FOUND"
    message = "Delivery address not found"


def can_mutate(actor: Actor, order: Order, restaurant_owner_id, rider_id) -> bool:
    """Admin, the ordering customer, the restaurant owner, or the assigned rider."""
    if actor.is_admin:
        return True
    if actor.role == "customer" and actor.is_user(order.customer_id):
        return True
    if actor.role == "restaurant" and actor.is_user(restaurant_owner_id):
        return True
    if actor.role == "rider" and actor.is_user(rider_id):
        return True
    return False


class OrderService:

    @staticmethod
    async def create_order(db: AsyncSession, actor: Actor, data: OrderCreate):
        if not actor.is_admin and not actor.is_user(data.customer_id):
            raise UnauthorizedError("You cannot create orders for another customer")

        with foodhub_order_creation_duration_seconds.time():
            restaurant = await CatalogRepository.get_restaurant(db, data.restaurant_id)
            if not restaurant:
                raise NotFoundError("Restaurant not found")

            cart = await CatalogGuard.validate_items(db, restaurant.id, data.items)
            subtotal = cart.subtotal

            delivery_fee = 0.0
            address_id = None
            if data.order_type == "delivery":
                if subtotal < float(restaurant.minimum_order or 0):
                    raise BelowMinimum()
                if data.delivery_address_id is None:
                    raise AddressRequired()
                address = await AddressRepository.get_for_user(db, data.delivery_address_id, data.customer_id)
                if not address:
                    raise AddressNotFound()
                quote = await FeeService.resolve_delivery_fee(db, address, subtotal)
                delivery_fee = quote.delivery_fee
                address_id = address.id

            tip_amount = float(data.tip_amount or 0)
            order = Order(
                customer_id=data.customer_id,
                restaurant_id=restaurant.id,
                delivery_address_id=address_id,
                status="pending",
                order_type=data.order_type,
                subtotal=subtotal,
                delivery_fee=delivery_fee,
                tax_amount=0,
                tip_amount=tip_amount,
                total_amount=round(subtotal + delivery_fee + tip_amount, 2),
                special_instructions=data.special_instructions,
            )
            items = [
                OrderItem(
                    menu_item_id=line.menu_item_id,
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    special_instructions=line.special_instructions,
                )
                for line in cart.lines
            ]
            delivery = Delivery(status="assigned", rider_id=None) if data.order_type == "delivery" else None

            try:
                await OrderRepository.add_order(db, order, items, delivery)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        foodhub_orders_created_total.labels(order_type=order.order_type).inc()
        logger.info(
            "order_created",
            order_id=str(order.id),
            order_type=order.order_type,
            total_amount=order.total_amount,
        )
        return order, delivery

    @staticmethod
    async def update_status(db: AsyncSession, actor: Actor, order_id, status: str, note: Optional[str] = None) -> Order:
        if status not in ORDER_STATUSES:
            raise InvalidStatus()

        row = await OrderRepository.get_order_access(db, order_id)
        if row is None:
            raise NotFoundError("Order not found")
        order, restaurant_owner_id, rider_id = row

        if not can_mutate(actor, order, restaurant_owner_id, rider_id):
            raise UnauthorizedError("You cannot modify this order")

        previous_status = order.status
        # Any whitelisted status is accepted from any current status.
        try:
            updated = await OrderRepository.set_status(db, order_id, status)
            await OrderRepository.append_event(db, order_id, status, note, actor.id)
            mirrored = DELIVERY_STATUS_MIRROR.get(status)
            if mirrored is not None:
                await DeliveryRepository.set_status_for_order(db, order_id, mirrored)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        foodhub_order_status_transitions_total.labels(status=status).inc()
        logger.info(
            "order_status_updated",
            order_id=str(order_id),
            from_status=previous_status,
            status=status,
            actor_id=str(actor.id),
        )
        return updated

    @staticmethod
    async def _get_visible(db: AsyncSession, actor: Actor, order_id) -> Order:
        row = await OrderRepository.get_order_access(db, order_id)
        if row is None:
            raise NotFoundError("Order not found")
        order, restaurant_owner_id, rider_id = row
        if not can_mutate(actor, order, restaurant_owner_id, rider_id):
            raise UnauthorizedError("You cannot view this order")
        return order

    @staticmethod
    async def get_order(db: AsyncSession, actor: Actor, order_id) -> dict:
        order = await OrderService._get_visible(db, actor, order_id)
        items = await OrderRepository.get_items(db, order.id)
        delivery = await OrderRepository.get_delivery(db, order.id)
        return {"order": order, "items": items, "delivery": delivery}

    @staticmethod
    async def status_history(db: AsyncSession, actor: Actor, order_id):
        order = await OrderService._get_visible(db, actor, order_id)
        return await OrderRepository.list_events(db, order.id)

    @staticmethod
    async def _page(db: AsyncSession, criteria: list, status: str, page: int, page_size: int) -> dict:
        if status != "all":
            criteria.append(Order.status == status)
        page = max(page, 1)
        page_size = max(page_size, 1)
        orders, total = await OrderRepository.list_orders(
            db, *criteria, limit=page_size, offset=(page - 1) * page_size
        )
        return {
            "data": orders,
            "meta": {
                "total": total,
                "page": page,
                "page_size": page_size,
                "total_pages": max(math.ceil(total / page_size), 1),
            },
        }

    @staticmethod
    async def list_for_customer(db: AsyncSession, actor: Actor, status: str = "all", page: int = 1, page_size: int = 20) -> dict:
        return await OrderService._page(db, [Order.customer_id == actor.id], status, page, page_size)

    @staticmethod
    async def list_for_restaurant(
        db: AsyncSession, actor: Actor, restaurant_id, status: str = "all", page: int = 1, page_size: int = 20
    ) -> dict:
        restaurant = await CatalogRepository.get_restaurant(db, restaurant_id)
        if not restaurant:
            raise NotFoundError("Restaurant not found")
        if not actor.is_admin and not (actor.role == "restaurant" and actor.is_user(restaurant.owner_id)):
            raise UnauthorizedError("You can only view orders of your own restaurant")
        return await OrderService._page(db, [Order.restaurant_id == restaurant.id], status, page, page_size)
