import pytest
from sqlalchemy import func, select, update

from services.catalog_service.models import MenuItem
from services.fee_service.service import UnserviceableArea
from services.order_service.models import Order, OrderItem
from services.order_service.repository import OrderRepository
from services.order_service.service import (
    AddressNotFound,
    AddressRequired,
    BelowMinimum,
    InvalidStatus,
    OrderService,
)
from shared.errors import NotFoundError, UnauthorizedError

from .conftest import actor_for, order_payload, place_order


async def test_delivery_order_totals_and_pending_delivery(db, world):
    order, delivery = await place_order(db, world)

    assert order.status == "pending"
    assert order.subtotal == 800
    assert order.delivery_fee == 30
    assert order.tax_amount == 0
    assert order.total_amount == 850
    assert delivery.order_id == order.id
    assert delivery.status == "assigned"
    assert delivery.rider_id is None


async def test_order_items_keep_the_price_at_order_time(db, session_factory, world):
    order, _ = await place_order(db, world)

    async with session_factory() as session:
        await session.execute(update(MenuItem).where(MenuItem.id == world["dish"].id).values(price=999))
        await session.commit()
        items = (await session.execute(select(OrderItem).where(OrderItem.order_id == order.id))).scalars().all()

    assert [item.unit_price for item in items] == [400]


async def test_pickup_order_has_no_fee_delivery_or_minimum(db, world):
    order, delivery = await place_order(db, world, quantity=1, order_type="pickup", delivery_address_id=None, tip_amount=0)

    assert order.delivery_fee == 0
    assert order.total_amount == 400
    assert order.delivery_address_id is None
    assert delivery is None


async def test_delivery_below_minimum(db, world):
    with pytest.raises(BelowMinimum):
        await place_order(db, world, quantity=1)


async def test_delivery_requires_an_address(db, world):
    with pytest.raises(AddressRequired):
        await place_order(db, world, delivery_address_id=None)


async def test_address_of_another_customer_is_rejected(db, seed, world):
    stranger = await seed.user("customer")
    foreign = await seed.address(stranger)

    with pytest.raises(AddressNotFound):
        await place_order(db, world, delivery_address_id=foreign.id)


async def test_unserviceable_address_creates_nothing(db, seed, session_factory, world):
    far_away = await seed.address(world["customer"], street="Quezon Ave", city="Manila")

    with pytest.raises(UnserviceableArea):
        await place_order(db, world, delivery_address_id=far_away.id)

    async with session_factory() as session:
        assert (await session.execute(select(func.count()).select_from(Order))).scalar_one() == 0


async def test_cannot_order_for_someone_else(db, seed, world):
    stranger = await seed.user("customer")

    with pytest.raises(UnauthorizedError):
        await OrderService.create_order(db, actor_for(stranger), order_payload(world))


async def test_unknown_restaurant(db, world):
    with pytest.raises(NotFoundError):
        await place_order(db, world, restaurant_id=world["customer"].id)


# --- Status updates ---

async def test_restaurant_owner_moves_order_and_history_is_recorded(db, world):
    order, _ = await place_order(db, world)
    owner = actor_for(world["owner"])

    await OrderService.update_status(db, owner, order.id, "preparing", "Cooking now")
    updated = await OrderService.update_status(db, owner, order.id, "ready")

    assert updated.status == "ready"
    events = await OrderService.status_history(db, owner, order.id)
    assert [(e.status, e.note) for e in events] == [("preparing", "Cooking now"), ("ready", None)]
    assert all(e.created_by == world["owner"].id for e in events)


async def test_any_whitelisted_status_is_accepted_from_any_status(db, world):
    order, _ = await place_order(db, world)
    owner = actor_for(world["owner"])

    await OrderService.update_status(db, owner, order.id, "delivered")
    back = await OrderService.update_status(db, owner, order.id, "pending")

    assert back.status == "pending"


async def test_unknown_status_is_rejected(db, world):
    order, _ = await place_order(db, world)

    with pytest.raises(InvalidStatus):
        await OrderService.update_status(db, actor_for(world["owner"]), order.id, "teleported")


async def test_stranger_cannot_update_or_view(db, seed, world):
    order, _ = await place_order(db, world)
    stranger = actor_for(await seed.user("restaurant"))

    with pytest.raises(UnauthorizedError):
        await OrderService.update_status(db, stranger, order.id, "preparing")
    with pytest.raises(UnauthorizedError):
        await OrderService.get_order(db, stranger, order.id)


async def test_unknown_order(db, world):
    with pytest.raises(NotFoundError):
        await OrderService.update_status(db, actor_for(world["owner"]), world["dish"].id, "preparing")


async def test_cancelling_puts_the_delivery_back_to_assigned(db, session_factory, world):
    order, delivery = await place_order(db, world)
    customer = actor_for(world["customer"])

    await OrderService.update_status(db, customer, order.id, "picked_up")
    async with session_factory() as session:
        assert (await OrderRepository.get_delivery(session, order.id)).status == "picked_up"

    await OrderService.update_status(db, customer, order.id, "cancelled")
    async with session_factory() as session:
        mirrored = await OrderRepository.get_delivery(session, order.id)
        assert mirrored.status == "assigned"
        assert (await OrderRepository.get_order(session, order.id)).status == "cancelled"


async def test_preparing_does_not_touch_the_delivery(db, session_factory, world):
    order, _ = await place_order(db, world)

    await OrderService.update_status(db, actor_for(world["owner"]), order.id, "preparing")

    async with session_factory() as session:
        assert (await OrderRepository.get_delivery(session, order.id)).status == "assigned"


# --- Reads ---

async def test_get_order_returns_items_and_delivery(db, world):
    order, delivery = await place_order(db, world)

    view = await OrderService.get_order(db, actor_for(world["customer"]), order.id)

    assert view["order"].id == order.id
    assert len(view["items"]) == 1
    assert view["delivery"].id == delivery.id


async def test_customer_order_list_is_paginated(db, world):
    for _ in range(3):
        await place_order(db, world)

    page = await OrderService.list_for_customer(db, actor_for(world["customer"]), page=2, page_size=2)

    assert len(page["data"]) == 1
    assert page["meta"] == {"total": 3, "page": 2, "page_size": 2, "total_pages": 2}


async def test_restaurant_list_is_owner_only(db, seed, world):
    await place_order(db, world)
    other_owner = actor_for(await seed.user("restaurant"))

    page = await OrderService.list_for_restaurant(db, actor_for(world["owner"]), world["restaurant"].id)
    assert page["meta"]["total"] == 1

    with pytest.raises(UnauthorizedError):
        await OrderService.list_for_restaurant(db, other_owner, world["restaurant"].id)
