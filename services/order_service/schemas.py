import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class OrderItemCreate(BaseModel):
    menu_item_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    quantity: int = 1
    special_instructions: Optional[str] = None


class OrderCreate(BaseModel):
    customer_id: uuid.UUID
    restaurant_id: uuid.UUID
    delivery_address_id: Optional[uuid.UUID] = None
    order_type: Literal["delivery", "pickup"] = "delivery"
    tip_amount: float = Field(default=0, ge=0)
    items: list[OrderItemCreate]
    special_instructions: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    # Validated against the status whitelist in the service, not here,
    # so an unknown value is a 400 like every other business rule.
    status: str
    note: Optional[str] = None


class OrderCreatedResponse(BaseModel):
    order_id: uuid.UUID
    status: str
    subtotal: float
    delivery_fee: float
    tip_amount: float
    total_amount: float
    estimated_delivery_time: Optional[datetime]
    delivery_id: Optional[uuid.UUID]


class OrderResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    restaurant_id: uuid.UUID
    delivery_address_id: Optional[uuid.UUID]
    status: str
    order_type: str
    subtotal: float
    delivery_fee: float
    tax_amount: float
    tip_amount: float
    total_amount: float
    special_instructions: Optional[str]
    estimated_delivery_time: Optional[datetime]
    actual_delivery_time: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderItemResponse(BaseModel):
    id: uuid.UUID
    menu_item_id: uuid.UUID
    variant_id: Optional[uuid.UUID]
    quantity: int
    unit_price: float
    special_instructions: Optional[str]

    class Config:
        from_attributes = True


class DeliverySummary(BaseModel):
    id: uuid.UUID
    rider_id: Optional[uuid.UUID]
    status: str

    class Config:
        from_attributes = True


class OrderDetailResponse(BaseModel):
    order: OrderResponse
    items: list[OrderItemResponse]
    delivery: Optional[DeliverySummary]


class OrderStatusResponse(BaseModel):
    id: uuid.UUID
    status: str
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderStatusEventResponse(BaseModel):
    id: uuid.UUID
    status: str
    note: Optional[str]
    created_by: Optional[uuid.UUID]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class PageMeta(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int


class OrderPage(BaseModel):
    data: list[OrderResponse]
    meta: PageMeta
