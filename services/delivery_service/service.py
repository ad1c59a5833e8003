"""
Delivery assignment engine.

Two paths put a rider on a delivery: a direct claim, and the request/accept
negotiation where either the rider or the restaurant makes the offer and the
other side accepts. Both end in the same conditional update on
``deliveries.rider_id``, which is the only thing standing between two riders
and one delivery. Every check made before that update is advisory.
"""
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.catalog_service.repository import CatalogRepository
from services.order_service.repository import OrderRepository
from shared.config.database import utcnow
from shared.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from shared.observability import (
    foodhub_delivery_assignment_conflicts_total,
    foodhub_delivery_assignments_total,
    foodhub_delivery_requests_total,
    foodhub_order_status_transitions_total,
)
from shared.security import Actor

from .models import ACTIVE_DELIVERY_STATUSES, DELIVERY_STATUSES, Delivery, DeliveryRequest
from .repository import DeliveryRepository, DeliveryRequestRepository, RiderRepository

logger = structlog.get_logger(__name__)


class NoLongerAvailable(ConflictError):
    code = "NO_LONGER_AVAILABLE"
    message = "Delivery is no longer available"


class AlreadyAssigned(ConflictError):
    code = "ALREADY_ASSIGNED"
    message = "This delivery is already assigned to a rider"


class NotPending(ConflictError):
    code = "NOT_PENDING"
    message = "Request is no longer pending"


class NotReady(BadRequestError):
    code = "NOT_READY"
    message = "Order is not ready for pickup"


class DuplicateRequest(BadRequestError):
    code = "DUPLICATE_REQUEST"
    message = "A pending request already exists for this rider and delivery"


class InvalidDeliveryStatus(BadRequestError):
    code = "INVALID_STATUS"
    message = "Invalid delivery status"


class InvalidLocation(BadRequestError):
    code = "INVALID_LOCATION"
    message = "Invalid coordinates"


class RiderNotFound(NotFoundError):
    message = "Rider not found or not available"


@dataclass
class AcceptResult:
    request_id: object
    delivery_id: object
    order_id: object
    rider_id: object
    requested_by: str
    restaurant_name: Optional[str] = None
    rejected_rider_ids: list = field(default_factory=list)


def _require_rider(actor: Actor) -> None:
    if actor.role != "rider":
        raise UnauthorizedError("Only riders can perform this action")


def _require_self_or_admin(actor: Actor, rider_id, message: str) -> None:
    if not actor.is_admin and not actor.is_user(rider_id):
        raise UnauthorizedError(message)


async def _owns_restaurant(db: AsyncSession, actor: Actor, restaurant_id) -> bool:
    if actor.role != "restaurant":
        return False
    restaurant = await CatalogRepository.get_restaurant(db, restaurant_id)
    return restaurant is not None and actor.is_user(restaurant.owner_id)


class DeliveryService:

    # --- Direct claim ---

    @staticmethod
    async def claim(db: AsyncSession, actor: Actor, delivery_id) -> Delivery:
        _require_rider(actor)
        try:
            won = await DeliveryRepository.assign_rider_if_unassigned(db, delivery_id, actor.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if not won:
            if await DeliveryRepository.get(db, delivery_id) is None:
                raise NotFoundError("Delivery not found")
            foodhub_delivery_assignment_conflicts_total.labels(path="claim").inc()
            logger.info("delivery_claim_lost", delivery_id=str(delivery_id), rider_id=str(actor.id))
            raise NoLongerAvailable()

        foodhub_delivery_assignments_total.labels(path="claim").inc()
        logger.info("delivery_claimed", delivery_id=str(delivery_id), rider_id=str(actor.id))
        return await DeliveryRepository.get(db, delivery_id)

    # --- Negotiation ---

    @staticmethod
    async def request_delivery(db: AsyncSession, actor: Actor, delivery_id) -> DeliveryRequest:
        """A rider asks the restaurant for a ready, unassigned delivery."""
        _require_rider(actor)
        row = await DeliveryRepository.get_with_order(db, delivery_id)
        if row is None:
            raise NotFoundError("Delivery not found")
        delivery, order = row

        if delivery.rider_id is not None:
            raise AlreadyAssigned()
        if order.status != "ready":
            raise NotReady()
        if await DeliveryRequestRepository.has_pending(db, delivery.id, actor.id):
            raise DuplicateRequest("You already have a pending request for this delivery")

        return await DeliveryService._create_request(db, delivery, order, actor.id, "rider")

    @staticmethod
    async def request_rider(db: AsyncSession, actor: Actor, delivery_id, rider_id) -> DeliveryRequest:
        """The restaurant invites one specific rider to take its delivery."""
        row = await DeliveryRepository.get_with_order(db, delivery_id)
        if row is None:
            raise NotFoundError("Delivery not found")
        delivery, order = row

        if not await _owns_restaurant(db, actor, order.restaurant_id):
            raise NotFoundError("Delivery not found or does not belong to your restaurant")
        if delivery.rider_id is not None:
            raise AlreadyAssigned()
        if await RiderRepository.get_rider(db, rider_id, active_only=True) is None:
            raise RiderNotFound()
        if await DeliveryRequestRepository.has_pending(db, delivery.id, rider_id):
            raise DuplicateRequest("You already have a pending request for this rider")

        return await DeliveryService._create_request(db, delivery, order, rider_id, "restaurant")

    @staticmethod
    async def _create_request(db: AsyncSession, delivery: Delivery, order, rider_id, requested_by: str) -> DeliveryRequest:
        request = DeliveryRequest(
            delivery_id=delivery.id,
            order_id=order.id,
            restaurant_id=order.restaurant_id,
            rider_id=rider_id,
            requested_by=requested_by,
            status="pending",
        )
        try:
            await DeliveryRequestRepository.add(db, request)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        foodhub_delivery_requests_total.labels(requested_by=requested_by).inc()
        logger.info(
            "delivery_request_created",
            request_id=str(request.id),
            delivery_id=str(delivery.id),
            rider_id=str(rider_id),
            requested_by=requested_by,
        )
        return request

    @staticmethod
    async def _can_accept(db: AsyncSession, actor: Actor, request: DeliveryRequest) -> bool:
        # The side that did not make the offer accepts it.
        if request.requested_by == "rider":
            order = await OrderRepository.get_order(db, request.order_id)
            return order is not None and await _owns_restaurant(db, actor, order.restaurant_id)
        if request.requested_by == "restaurant":
            if actor.role != "rider" or not actor.is_user(request.rider_id):
                return False
            return await RiderRepository.get_rider(db, actor.id) is not None
        return False

    @staticmethod
    async def accept(db: AsyncSession, actor: Actor, request_id) -> AcceptResult:
        request = await DeliveryRequestRepository.get(db, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        if request.status != "pending":
            raise NotPending()
        if not await DeliveryService._can_accept(db, actor, request):
            raise UnauthorizedError("You do not have permission to accept this request")

        delivery = await DeliveryRepository.get(db, request.delivery_id)
        if delivery is None:
            raise NotFoundError("Delivery not found")
        if delivery.rider_id is not None:
            raise AlreadyAssigned()

        try:
            if not await DeliveryRepository.assign_rider_if_unassigned(db, delivery.id, request.rider_id):
                foodhub_delivery_assignment_conflicts_total.labels(path="request_accept").inc()
                raise NoLongerAvailable()
            if not await DeliveryRequestRepository.resolve_if_pending(db, request.id, "accepted"):
                raise NotPending()
            rejected_rider_ids = await DeliveryRequestRepository.reject_other_pending(db, delivery.id, request.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        restaurant = await CatalogRepository.get_restaurant(db, request.restaurant_id)
        foodhub_delivery_assignments_total.labels(path="request_accept").inc()
        logger.info(
            "delivery_request_accepted",
            request_id=str(request.id),
            delivery_id=str(delivery.id),
            rider_id=str(request.rider_id),
            rejected=len(rejected_rider_ids),
        )
        return AcceptResult(
            request_id=request.id,
            delivery_id=delivery.id,
            order_id=request.order_id,
            rider_id=request.rider_id,
            requested_by=request.requested_by,
            restaurant_name=restaurant.name if restaurant else None,
            rejected_rider_ids=rejected_rider_ids,
        )

    @staticmethod
    async def reject(db: AsyncSession, actor: Actor, request_id) -> DeliveryRequest:
        request = await DeliveryRequestRepository.get(db, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        if request.status != "pending":
            raise NotPending()

        # Either party to the offer may turn it down.
        is_rider = actor.role == "rider" and actor.is_user(request.rider_id)
        if not is_rider and not await _owns_restaurant(db, actor, request.restaurant_id):
            raise UnauthorizedError("You do not have permission to reject this request")

        try:
            if not await DeliveryRequestRepository.resolve_if_pending(db, request.id, "rejected"):
                raise NotPending()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("delivery_request_rejected", request_id=str(request.id), actor_id=str(actor.id))
        return await DeliveryRequestRepository.get(db, request.id)

    @staticmethod
    async def list_restaurant_requests(db: AsyncSession, actor: Actor):
        """Pending offers riders have made to the actor's restaurants."""
        restaurants = await CatalogRepository.list_restaurants_owned_by(db, actor.id)
        if not restaurants:
            raise UnauthorizedError("You must be a restaurant owner to view delivery requests")
        return await DeliveryRequestRepository.list_pending(
            db,
            DeliveryRequest.restaurant_id.in_([r.id for r in restaurants]),
            DeliveryRequest.requested_by == "rider",
        )

    @staticmethod
    async def list_rider_requests(db: AsyncSession, actor: Actor):
        """Pending offers restaurants have made to the actor."""
        _require_rider(actor)
        return await DeliveryRequestRepository.list_pending(
            db,
            DeliveryRequest.rider_id == actor.id,
            DeliveryRequest.requested_by == "restaurant",
        )

    # --- Progress ---

    @staticmethod
    async def update_status(db: AsyncSession, actor: Actor, delivery_id, status: str) -> Delivery:
        if status not in DELIVERY_STATUSES:
            raise InvalidDeliveryStatus()

        delivery = await DeliveryRepository.get(db, delivery_id)
        if delivery is None:
            raise NotFoundError("Delivery not found")
        if not actor.is_user(delivery.rider_id):
            raise UnauthorizedError("You do not have permission to update this delivery")

        now = utcnow()
        values = {"status": status}
        if status == "picked_up":
            values["pickup_time"] = now
        if status == "delivered":
            values["delivery_time"] = now
            values["actual_delivery_time"] = now

        try:
            if not await DeliveryRepository.update_for_rider(db, delivery.id, actor.id, **values):
                raise NotFoundError("Delivery assignment not found or could not be updated")
            # Only the terminal status is copied onto the order.
            if status == "delivered":
                await OrderRepository.set_status(db, delivery.order_id, "delivered", actual_delivery_time=now)
                await OrderRepository.append_event(
                    db, delivery.order_id, "delivered", "Order delivered by rider", actor.id
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if status == "delivered":
            foodhub_order_status_transitions_total.labels(status="delivered").inc()
        logger.info("delivery_status_updated", delivery_id=str(delivery.id), status=status)
        return await DeliveryRepository.get(db, delivery.id)

    @staticmethod
    async def collect_cash(db: AsyncSession, actor: Actor, delivery_id, amount: float) -> Delivery:
        if amount < 0:
            raise BadRequestError("Amount must be non-negative")
        # Not guarded against a second submission: the latest amount wins.
        try:
            updated = await DeliveryRepository.update_for_rider(
                db, delivery_id, actor.id, cash_collected=True, cash_amount=amount
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if not updated:
            raise NotFoundError("Delivery assignment not found")

        logger.info("cash_collected", delivery_id=str(delivery_id), amount=amount)
        return await DeliveryRepository.get(db, delivery_id)

    # --- Listings ---

    @staticmethod
    async def list_available_orders(db: AsyncSession):
        return await DeliveryRepository.list_available(db)

    @staticmethod
    async def list_available_riders(db: AsyncSession, actor: Actor):
        if not actor.is_admin and actor.role != "restaurant":
            raise UnauthorizedError("You must be a restaurant owner to view available riders")
        return await RiderRepository.list_available(db)

    @staticmethod
    async def list_assignments(db: AsyncSession, actor: Actor, rider_id, status: str = "assigned"):
        _require_self_or_admin(actor, rider_id, "You can only view your own assignments")
        return await DeliveryRepository.list_for_rider(db, rider_id, None if status == "all" else status)

    # --- Rider profile ---

    @staticmethod
    async def get_rider_profile(db: AsyncSession, actor: Actor, rider_id):
        _require_self_or_admin(actor, rider_id, "You can only view your own profile")
        rider = await RiderRepository.get_rider(db, rider_id)
        if rider is None:
            raise NotFoundError("Rider not found")
        return rider, await RiderRepository.get_profile(db, rider_id)

    @staticmethod
    async def update_rider_profile(db: AsyncSession, actor: Actor, rider_id, changes: dict):
        _require_self_or_admin(actor, rider_id, "You can only update your own profile")
        rider = await RiderRepository.get_rider(db, rider_id)
        if rider is None:
            raise NotFoundError("Rider not found")

        try:
            profile = await RiderRepository.get_or_create_profile(db, rider_id)
            for key in ("full_name", "phone"):
                if changes.get(key) is not None:
                    setattr(rider, key, changes[key])
            for key in ("vehicle_type", "license_number"):
                if changes.get(key) is not None:
                    setattr(profile, key, changes[key])
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return rider, profile

    @staticmethod
    async def set_availability(db: AsyncSession, actor: Actor, rider_id, is_available: bool):
        _require_self_or_admin(actor, rider_id, "You can only update your own availability")
        if await RiderRepository.get_rider(db, rider_id) is None:
            raise NotFoundError("Rider not found")
        try:
            profile = await RiderRepository.get_or_create_profile(db, rider_id)
            profile.is_available = is_available
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("rider_availability_changed", rider_id=str(rider_id), is_available=is_available)
        return profile

    @staticmethod
    async def update_location(db: AsyncSession, actor: Actor, latitude: float, longitude: float):
        _require_rider(actor)
        if not (-90 <= latitude <= 90) or not (-180 <= longitude <= 180):
            raise InvalidLocation()
        try:
            profile = await RiderRepository.get_or_create_profile(db, actor.id)
            profile.latitude = latitude
            profile.longitude = longitude
            profile.location_updated_at = utcnow()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return profile

    @staticmethod
    async def rider_stats(db: AsyncSession, actor: Actor, rider_id) -> dict:
        _require_self_or_admin(actor, rider_id, "You can only view your own statistics")
        deliveries = await DeliveryRepository.list_all_for_rider(db, rider_id)
        today = utcnow().date()

        def on_today(moment) -> bool:
            return moment is not None and moment.date() == today

        completed_today = [d for d in deliveries if d.status == "delivered" and on_today(d.delivery_time)]
        durations = [
            (d.delivery_time - d.pickup_time).total_seconds() / 60
            for d in completed_today
            if d.pickup_time is not None
        ]
        return {
            "todays_deliveries": sum(1 for d in deliveries if on_today(d.created_at)),
            "active_deliveries": sum(1 for d in deliveries if d.status in ACTIVE_DELIVERY_STATUSES),
            "completed_today": len(completed_today),
            "todays_cash_collected": round(
                sum(d.cash_amount or 0 for d in deliveries if d.cash_collected and on_today(d.updated_at)), 2
            ),
            "avg_delivery_time": round(sum(durations) / len(durations)) if durations else 0,
        }
