import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class SourceCreate(BaseModel):
    order_id: uuid.UUID
    amount: float = Field(gt=0)
    redirect_success: Optional[str] = None
    redirect_failed: Optional[str] = None


class SourceResponse(BaseModel):
    source_id: Optional[str]
    checkout_url: Optional[str]
    status: Optional[str]
    payment_id: uuid.UUID


class ChargeCreate(BaseModel):
    source_id: str
    order_id: uuid.UUID


class ChargeResponse(BaseModel):
    payment_id: Optional[str]
    status: Optional[str]
    payment_status: str
    order_status: str


class PaymentResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    payment_method: str
    payment_status: str
    amount: float
    currency: str
    transaction_id: Optional[str]
    payment_gateway: str
    gateway_response: Optional[Any]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class PaymentStatusResponse(BaseModel):
    payment: PaymentResponse
    order_status: str
