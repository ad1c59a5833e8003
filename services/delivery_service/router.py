import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.notifications import notify_rider_match, send_notification
from shared.security import Actor, get_current_actor, require_roles

from .schemas import (
    AcceptResponse,
    AssignmentResponse,
    AvailabilityUpdate,
    AvailableDeliveryResponse,
    AvailableRiderResponse,
    CashCollection,
    DeliveryRequestResponse,
    DeliveryResponse,
    DeliveryStatusUpdate,
    LocationUpdate,
    PendingRequestResponse,
    RiderInvite,
    RiderProfileResponse,
    RiderProfileUpdate,
    RiderStatsResponse,
)
from .service import DeliveryService

router = APIRouter(tags=["Deliveries"])
rider_router = APIRouter(prefix="/riders", tags=["Riders"])
public_router = APIRouter()

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "delivery", "status": "running"}


def _pending_view(row) -> PendingRequestResponse:
    request, order, restaurant_name, rider_name = row
    return PendingRequestResponse(
        id=request.id,
        delivery_id=request.delivery_id,
        order_id=request.order_id,
        restaurant_id=request.restaurant_id,
        rider_id=request.rider_id,
        requested_by=request.requested_by,
        status=request.status,
        created_at=request.created_at,
        restaurant_name=restaurant_name,
        rider_name=rider_name,
        order_total=order.total_amount,
        order_status=order.status,
    )


def _profile_view(rider, profile) -> RiderProfileResponse:
    view = RiderProfileResponse(id=rider.id, email=rider.email, full_name=rider.full_name, phone=rider.phone)
    if profile is not None:
        view.vehicle_type = profile.vehicle_type
        view.license_number = profile.license_number
        view.is_available = profile.is_available
        view.latitude = profile.latitude
        view.longitude = profile.longitude
        view.location_updated_at = profile.location_updated_at
    return view


# --- Matching ---

@router.get("/available", response_model=list[AvailableDeliveryResponse])
async def list_available_deliveries(
    actor: Actor = Depends(require_roles("rider", "admin")),
    db: AsyncSession = Depends(get_db),
):
    rows = await DeliveryService.list_available_orders(db)
    return [
        AvailableDeliveryResponse(
            delivery_id=delivery.id,
            order_id=order.id,
            restaurant_id=order.restaurant_id,
            restaurant_name=restaurant_name,
            order_status=order.status,
            total_amount=order.total_amount,
            delivery_fee=order.delivery_fee,
            special_instructions=order.special_instructions,
            created_at=delivery.created_at,
        )
        for delivery, order, restaurant_name in rows
    ]


@router.post("/{delivery_id}/claim", response_model=DeliveryResponse)
async def claim_delivery(
    delivery_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryService.claim(db, actor, delivery_id)


@router.post("/{delivery_id}/requests", response_model=DeliveryRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_delivery(
    delivery_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryService.request_delivery(db, actor, delivery_id)


@router.post("/{delivery_id}/invitations", response_model=DeliveryRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_rider(
    delivery_id: uuid.UUID,
    payload: RiderInvite,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    request = await DeliveryService.request_rider(db, actor, delivery_id, payload.rider_id)
    background_tasks.add_task(
        send_notification,
        "delivery_request.created",
        request.rider_id,
        "A restaurant has requested you for a delivery.",
        {"request_id": str(request.id), "order_id": str(request.order_id)},
    )
    return request


@router.get("/requests/restaurant", response_model=list[PendingRequestResponse])
async def list_restaurant_requests(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return [_pending_view(row) for row in await DeliveryService.list_restaurant_requests(db, actor)]


@router.get("/requests/rider", response_model=list[PendingRequestResponse])
async def list_rider_requests(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return [_pending_view(row) for row in await DeliveryService.list_rider_requests(db, actor)]


@router.post("/requests/{request_id}/accept", response_model=AcceptResponse)
async def accept_request(
    request_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await DeliveryService.accept(db, actor, request_id)
    # Runs after the response, so the assignment is already committed.
    background_tasks.add_task(
        notify_rider_match,
        result.rider_id,
        result.rejected_rider_ids,
        result.order_id,
        result.restaurant_name,
    )
    return AcceptResponse(
        request_id=result.request_id,
        delivery_id=result.delivery_id,
        order_id=result.order_id,
        rider_id=result.rider_id,
        restaurant_name=result.restaurant_name,
        rejected_rider_ids=result.rejected_rider_ids,
    )


@router.post("/requests/{request_id}/reject", response_model=DeliveryRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryService.reject(db, actor, request_id)


# --- Progress ---

@router.patch("/{delivery_id}/status", response_model=DeliveryResponse)
async def update_delivery_status(
    delivery_id: uuid.UUID,
    payload: DeliveryStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryService.update_status(db, actor, delivery_id, payload.status)


@router.post("/{delivery_id}/cash", response_model=DeliveryResponse)
async def collect_cash(
    delivery_id: uuid.UUID,
    payload: CashCollection,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryService.collect_cash(db, actor, delivery_id, payload.amount)


# --- Riders ---

@rider_router.get("/available", response_model=list[AvailableRiderResponse])
async def list_available_riders(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    rows = await DeliveryService.list_available_riders(db, actor)
    return [
        AvailableRiderResponse(
            id=user.id,
            full_name=user.full_name,
            phone=user.phone,
            vehicle_type=profile.vehicle_type if profile else None,
            latitude=profile.latitude if profile else None,
            longitude=profile.longitude if profile else None,
            active_deliveries=active_deliveries,
        )
        for user, profile, active_deliveries in rows
    ]


@rider_router.put("/me/location", response_model=RiderProfileResponse)
async def update_location(
    payload: LocationUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    await DeliveryService.update_location(db, actor, payload.latitude, payload.longitude)
    rider, profile = await DeliveryService.get_rider_profile(db, actor, actor.id)
    return _profile_view(rider, profile)


@rider_router.get("/{rider_id}/assignments", response_model=list[AssignmentResponse])
async def list_assignments(
    rider_id: uuid.UUID,
    status: str = Query(default="assigned"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    rows = await DeliveryService.list_assignments(db, actor, rider_id, status)
    assignments = []
    for delivery, order, restaurant_name in rows:
        view = AssignmentResponse.model_validate(delivery)
        view.restaurant_name = restaurant_name
        view.order_status = order.status
        view.total_amount = order.total_amount
        assignments.append(view)
    return assignments


@rider_router.get("/{rider_id}/profile", response_model=RiderProfileResponse)
async def get_rider_profile(
    rider_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    rider, profile = await DeliveryService.get_rider_profile(db, actor, rider_id)
    return _profile_view(rider, profile)


@rider_router.put("/{rider_id}/profile", response_model=RiderProfileResponse)
async def update_rider_profile(
    rider_id: uuid.UUID,
    payload: RiderProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    rider, profile = await DeliveryService.update_rider_profile(
        db, actor, rider_id, payload.model_dump(exclude_unset=True)
    )
    return _profile_view(rider, profile)


@rider_router.put("/{rider_id}/availability", response_model=RiderProfileResponse)
async def set_availability(
    rider_id: uuid.UUID,
    payload: AvailabilityUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    await DeliveryService.set_availability(db, actor, rider_id, payload.is_available)
    rider, profile = await DeliveryService.get_rider_profile(db, actor, rider_id)
    return _profile_view(rider, profile)


@rider_router.get("/{rider_id}/stats", response_model=RiderStatsResponse)
async def get_rider_stats(
    rider_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DeliveryService.rider_stats(db, actor, rider_id)
