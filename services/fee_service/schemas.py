import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FeeCalculationRequest(BaseModel):
    barangay: str = Field(min_length=1)
    order_amount: float = Field(ge=0)


class FeeQuoteResponse(BaseModel):
    barangay: str
    order_amount: float
    delivery_fee: float
    tier: str  # "band" or "max" when the top band was used as fallback


class FeeTierUpsert(BaseModel):
    barangay: str = Field(min_length=1)
    min_order_amount: float
    max_order_amount: float
    delivery_fee: float
    is_active: bool = True


class FeeTierResponse(BaseModel):
    id: uuid.UUID
    barangay: str
    min_order_amount: float
    max_order_amount: float
    delivery_fee: float
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class DefaultFeeResponse(BaseModel):
    barangay: str
    delivery_fee: float
