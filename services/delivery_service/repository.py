from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth_service.models import User
from services.catalog_service.models import Restaurant
from services.order_service.models import Order
from shared.config.database import utcnow

from .models import ACTIVE_DELIVERY_STATUSES, Delivery, DeliveryRequest, RiderProfile


class DeliveryRepository:
    """Writes flush only; the calling service owns commit/rollback."""

    @staticmethod
    async def get(db: AsyncSession, delivery_id) -> Optional[Delivery]:
        result = await db.execute(
            select(Delivery).where(Delivery.id == delivery_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def get_with_order(db: AsyncSession, delivery_id):
        result = await db.execute(
            select(Delivery, Order)
            .join(Order, Order.id == Delivery.order_id)
            .where(Delivery.id == delivery_id)
            .execution_options(populate_existing=True)
        )
        return result.first()

    @staticmethod
    async def assign_rider_if_unassigned(db: AsyncSession, delivery_id, rider_id) -> bool:
        """
        The only way a rider gets onto a delivery: one conditional UPDATE.
        Returns False when another rider got there first (or the row is gone).
        """
        result = await db.execute(
            update(Delivery)
            .where(Delivery.id == delivery_id, Delivery.rider_id.is_(None))
            .values(rider_id=rider_id, status="assigned", updated_at=utcnow())
            .returning(Delivery.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def update_for_rider(db: AsyncSession, delivery_id, rider_id, **values) -> bool:
        result = await db.execute(
            update(Delivery)
            .where(Delivery.id == delivery_id, Delivery.rider_id == rider_id)
            .values(updated_at=utcnow(), **values)
            .returning(Delivery.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def set_status_for_order(db: AsyncSession, order_id, status: str) -> None:
        await db.execute(
            update(Delivery)
            .where(Delivery.order_id == order_id)
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def list_available(db: AsyncSession):
        """Unassigned deliveries whose order the restaurant has marked ready, oldest first."""
        result = await db.execute(
            select(Delivery, Order, Restaurant.name)
            .join(Order, Order.id == Delivery.order_id)
            .outerjoin(Restaurant, Restaurant.id == Order.restaurant_id)
            .where(Delivery.rider_id.is_(None), Order.status == "ready")
            .order_by(Delivery.created_at)
            .execution_options(populate_existing=True)
        )
        return result.all()

    @staticmethod
    async def list_for_rider(db: AsyncSession, rider_id, status: Optional[str]):
        query = (
            select(Delivery, Order, Restaurant.name)
            .join(Order, Order.id == Delivery.order_id)
            .outerjoin(Restaurant, Restaurant.id == Order.restaurant_id)
            .where(Delivery.rider_id == rider_id)
            .order_by(Delivery.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if status is not None:
            query = query.where(Delivery.status == status)
        result = await db.execute(query)
        return result.all()

    @staticmethod
    async def list_all_for_rider(db: AsyncSession, rider_id) -> list[Delivery]:
        result = await db.execute(
            select(Delivery).where(Delivery.rider_id == rider_id).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())


class DeliveryRequestRepository:

    @staticmethod
    async def get(db: AsyncSession, request_id) -> Optional[DeliveryRequest]:
        result = await db.execute(
            select(DeliveryRequest)
            .where(DeliveryRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def has_pending(db: AsyncSession, delivery_id, rider_id) -> bool:
        result = await db.execute(
            select(DeliveryRequest.id).where(
                DeliveryRequest.delivery_id == delivery_id,
                DeliveryRequest.rider_id == rider_id,
                DeliveryRequest.status == "pending",
            )
        )
        return result.first() is not None

    @staticmethod
    async def add(db: AsyncSession, request: DeliveryRequest) -> DeliveryRequest:
        db.add(request)
        await db.flush()
        return request

    @staticmethod
    async def resolve_if_pending(db: AsyncSession, request_id, status: str) -> bool:
        result = await db.execute(
            update(DeliveryRequest)
            .where(DeliveryRequest.id == request_id, DeliveryRequest.status == "pending")
            .values(status=status, updated_at=utcnow())
            .returning(DeliveryRequest.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def reject_other_pending(db: AsyncSession, delivery_id, accepted_request_id) -> list:
        """Reject every other pending request for the delivery; returns the losing rider ids."""
        result = await db.execute(
            update(DeliveryRequest)
            .where(
                DeliveryRequest.delivery_id == delivery_id,
                DeliveryRequest.id != accepted_request_id,
                DeliveryRequest.status == "pending",
            )
            .values(status="rejected", updated_at=utcnow())
            .returning(DeliveryRequest.rider_id)
            .execution_options(synchronize_session=False)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_pending(db: AsyncSession, *criteria):
        result = await db.execute(
            select(DeliveryRequest, Order, Restaurant.name, User.full_name)
            .join(Order, Order.id == DeliveryRequest.order_id)
            .outerjoin(Restaurant, Restaurant.id == DeliveryRequest.restaurant_id)
            .outerjoin(User, User.id == DeliveryRequest.rider_id)
            .where(DeliveryRequest.status == "pending", *criteria)
            .order_by(DeliveryRequest.created_at.desc())
        )
        return result.all()


class RiderRepository:

    @staticmethod
    async def get_rider(db: AsyncSession, user_id, active_only: bool = False) -> Optional[User]:
        query = select(User).where(User.id == user_id, User.user_type == "rider")
        if active_only:
            query = query.where(User.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_profile(db: AsyncSession, user_id) -> Optional[RiderProfile]:
        result = await db.execute(select(RiderProfile).where(RiderProfile.user_id == user_id))
        return result.scalars().first()

    @staticmethod
    async def get_or_create_profile(db: AsyncSession, user_id) -> RiderProfile:
        profile = await RiderRepository.get_profile(db, user_id)
        if profile is None:
            profile = RiderProfile(user_id=user_id, is_available=True)
            db.add(profile)
        return profile

    @staticmethod
    async def list_available(db: AsyncSession):
        """
        Active riders whose availability flag is on (no profile counts as available),
        least busy first, then by name.
        """
        active_count = func.count(Delivery.id).label("active_deliveries")
        result = await db.execute(
            select(User, RiderProfile, active_count)
            .outerjoin(RiderProfile, RiderProfile.user_id == User.id)
            .outerjoin(
                Delivery,
                and_(Delivery.rider_id == User.id, Delivery.status.in_(ACTIVE_DELIVERY_STATUSES)),
            )
            .where(
                User.user_type == "rider",
                User.is_active.is_(True),
                func.coalesce(RiderProfile.is_available, True).is_(True),
            )
            .group_by(User.id, RiderProfile.user_id)
            .order_by(active_count, User.full_name)
        )
        return result.all()
