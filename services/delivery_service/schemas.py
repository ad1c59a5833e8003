import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DeliveryResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    rider_id: Optional[uuid.UUID]
    status: str
    pickup_time: Optional[datetime]
    delivery_time: Optional[datetime]
    actual_delivery_time: Optional[datetime]
    cash_collected: bool
    cash_amount: Optional[float]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class DeliveryStatusUpdate(BaseModel):
    status: str


class CashCollection(BaseModel):
    amount: float = Field(ge=0)


class RiderInvite(BaseModel):
    rider_id: uuid.UUID


class DeliveryRequestResponse(BaseModel):
    id: uuid.UUID
    delivery_id: uuid.UUID
    order_id: uuid.UUID
    restaurant_id: uuid.UUID
    rider_id: uuid.UUID
    requested_by: str
    status: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class PendingRequestResponse(DeliveryRequestResponse):
    restaurant_name: Optional[str] = None
    rider_name: Optional[str] = None
    order_total: Optional[float] = None
    order_status: Optional[str] = None


class AcceptResponse(BaseModel):
    request_id: uuid.UUID
    delivery_id: uuid.UUID
    order_id: uuid.UUID
    rider_id: uuid.UUID
    restaurant_name: Optional[str]
    rejected_rider_ids: list[uuid.UUID]


class AvailableDeliveryResponse(BaseModel):
    delivery_id: uuid.UUID
    order_id: uuid.UUID
    restaurant_id: uuid.UUID
    restaurant_name: Optional[str]
    order_status: str
    total_amount: float
    delivery_fee: float
    special_instructions: Optional[str]
    created_at: Optional[datetime]


class AssignmentResponse(DeliveryResponse):
    restaurant_name: Optional[str] = None
    order_status: Optional[str] = None
    total_amount: Optional[float] = None


class AvailableRiderResponse(BaseModel):
    id: uuid.UUID
    full_name: Optional[str]
    phone: Optional[str]
    vehicle_type: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    active_deliveries: int


class RiderProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: Optional[str]
    phone: Optional[str]
    vehicle_type: Optional[str] = None
    license_number: Optional[str] = None
    is_available: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_updated_at: Optional[datetime] = None


class RiderProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    license_number: Optional[str] = None


class AvailabilityUpdate(BaseModel):
    is_available: bool


class LocationUpdate(BaseModel):
    # Range checks happen in the service so they surface as INVALID_LOCATION.
    latitude: float
    longitude: float


class RiderStatsResponse(BaseModel):
    todays_deliveries: int
    active_deliveries: int
    completed_today: int
    todays_cash_collected: float
    avg_delivery_time: int
