import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import require_roles

from .schemas import (
    DefaultFeeResponse,
    FeeCalculationRequest,
    FeeQuoteResponse,
    FeeTierResponse,
    FeeTierUpsert,
)
from .service import FeeService

router = APIRouter(tags=["Delivery Fees"])
admin_router = APIRouter(tags=["Delivery Fees"], dependencies=[Depends(require_roles("admin"))])
public_router = APIRouter()

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "fees", "status": "running"}


@router.post("/calculate", response_model=FeeQuoteResponse)
async def calculate_delivery_fee(payload: FeeCalculationRequest, db: AsyncSession = Depends(get_db)):
    quote = await FeeService.calculate(db, payload.barangay, payload.order_amount)
    return FeeQuoteResponse(
        barangay=quote.barangay,
        order_amount=quote.order_amount,
        delivery_fee=quote.delivery_fee,
        tier=quote.tier,
    )


@router.get("/tiers", response_model=dict[str, list[FeeTierResponse]])
async def list_all_tiers(db: AsyncSession = Depends(get_db)):
    return await FeeService.list_tiers(db)


@router.get("/tiers/{barangay}", response_model=list[FeeTierResponse])
async def get_zone_tiers(barangay: str, db: AsyncSession = Depends(get_db)):
    return await FeeService.get_tiers(db, barangay)


@admin_router.post("/tiers", response_model=FeeTierResponse)
async def upsert_tier(payload: FeeTierUpsert, db: AsyncSession = Depends(get_db)):
    return await FeeService.upsert_tier(db, payload)


@admin_router.delete("/tiers/{tier_id}")
async def delete_tier(tier_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await FeeService.delete_tier(db, tier_id)
    return {"message": "Delivery fee tier deleted successfully"}


@admin_router.delete("/barangays/{barangay}")
async def delete_barangay(barangay: str, db: AsyncSession = Depends(get_db)):
    deleted = await FeeService.delete_barangay(db, barangay)
    return {"message": f"Deleted {deleted} delivery fee tier(s) for {barangay}"}


# Legacy flat-fee lookup; registered last so it does not shadow the routes above.
legacy_router = APIRouter(tags=["Delivery Fees"])

@legacy_router.get("/{barangay}", response_model=DefaultFeeResponse)
async def get_default_fee(barangay: str, db: AsyncSession = Depends(get_db)):
    fee = await FeeService.get_default_fee(db, barangay)
    return DefaultFeeResponse(barangay=barangay, delivery_fee=fee)
