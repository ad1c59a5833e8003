import os

# Settings are read at import time, so the environment must be in place first.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["OTEL_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["NOTIFICATION_URL"] = ""
os.environ["PAYMONGO_WEBHOOK_SECRET"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from shared.config.database import Base, get_db
from shared.security import Actor, create_access_token

from services.auth_service.models import Address, User
from services.catalog_service.models import MenuItem, MenuItemVariant, Restaurant
from services.delivery_service.models import Delivery, DeliveryRequest, RiderProfile  # noqa: F401
from services.fee_service.models import DeliveryFeeTier
from services.order_service.models import Order, OrderItem, OrderStatusEvent  # noqa: F401
from services.order_service.schemas import OrderCreate, OrderItemCreate
from services.order_service.service import OrderService
from services.payment_service.models import Payment  # noqa: F401

STANDARD_TIERS = (
    (0, 500, 50),
    (500, 1000, 30),
    (1000, 5000, 0),
)


@pytest.fixture
async def engine(tmp_path):
    # A file database, so concurrent sessions really are separate connections.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'foodhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Seed:
    """Inserts fixture rows through its own session and commits each one."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._counter = 0

    async def _add(self, *rows):
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def user(self, role: str = "customer", **kwargs) -> User:
        self._counter += 1
        kwargs.setdefault("email", f"{role}{self._counter}@example.com")
        kwargs.setdefault("full_name", f"{role.title()} {self._counter}")
        kwargs.setdefault("hashed_password", "not-a-real-hash")
        return await self._add(User(user_type=role, **kwargs))

    async def restaurant(self, owner: User = None, **kwargs) -> Restaurant:
        if owner is None:
            owner = await self.user("restaurant")
        kwargs.setdefault("name", "Kusina ni Aling Nena")
        kwargs.setdefault("minimum_order", 600)
        return await self._add(Restaurant(owner_id=owner.id, **kwargs))

    async def menu_item(self, restaurant: Restaurant, price: float = 400, **kwargs) -> MenuItem:
        kwargs.setdefault("name", "Chicken Adobo")
        return await self._add(MenuItem(restaurant_id=restaurant.id, price=price, **kwargs))

    async def variant(self, item: MenuItem, price: float, **kwargs) -> MenuItemVariant:
        kwargs.setdefault("name", "Large")
        return await self._add(MenuItemVariant(menu_item_id=item.id, price=price, **kwargs))

    async def tiers(self, barangay: str = "Tayaga", bands=STANDARD_TIERS):
        rows = [
            DeliveryFeeTier(barangay=barangay, min_order_amount=lo, max_order_amount=hi, delivery_fee=fee)
            for lo, hi, fee in bands
        ]
        return await self._add(*rows)

    async def address(self, user: User, street: str = "123 Rizal St, Tayaga", city: str = "Bansalan") -> Address:
        return await self._add(Address(user_id=user.id, street_address=street, city=city))

    async def rider_profile(self, rider: User, **kwargs) -> RiderProfile:
        return await self._add(RiderProfile(user_id=rider.id, **kwargs))


@pytest.fixture
def seed(session_factory):
    return Seed(session_factory)


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.user_type)


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.user_type})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client_for(session_factory):
    """Builds an HTTP client for one mounted service app, backed by the test database."""
    apps = []

    async def override_get_db():
        async with session_factory() as session:
            yield session

    def _make(app):
        app.dependency_overrides[get_db] = override_get_db
        apps.append(app)
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    yield _make

    for app in apps:
        app.dependency_overrides.clear()


@pytest.fixture
async def world(seed):
    """A customer with a serviceable address and a restaurant with one 400-peso dish."""
    await seed.tiers("Tayaga")
    customer = await seed.user("customer")
    owner = await seed.user("restaurant")
    restaurant = await seed.restaurant(owner=owner, minimum_order=600)
    dish = await seed.menu_item(restaurant, price=400)
    address = await seed.address(customer)
    return {"customer": customer, "owner": owner, "restaurant": restaurant, "dish": dish, "address": address}


def order_payload(world, quantity=2, **overrides):
    data = dict(
        customer_id=world["customer"].id,
        restaurant_id=world["restaurant"].id,
        delivery_address_id=world["address"].id,
        order_type="delivery",
        tip_amount=20,
        items=[OrderItemCreate(menu_item_id=world["dish"].id, quantity=quantity)],
    )
    data.update(overrides)
    return OrderCreate(**data)


async def place_order(db, world, **overrides):
    return await OrderService.create_order(db, actor_for(world["customer"]), order_payload(world, **overrides))


async def ready_delivery(db, world):
    """Places a delivery order and has the restaurant mark it ready; returns (order, delivery)."""
    order, delivery = await place_order(db, world)
    await OrderService.update_status(db, actor_for(world["owner"]), order.id, "ready")
    return order, delivery
