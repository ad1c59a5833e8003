from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DeliveryFeeTier


class FeeTierRepository:

    @staticmethod
    async def list_active_zones(db: AsyncSession) -> list[str]:
        result = await db.execute(
            select(DeliveryFeeTier.barangay)
            .where(DeliveryFeeTier.is_active.is_(True))
            .distinct()
            .order_by(DeliveryFeeTier.barangay)
        )
        return list(result.scalars().all())

    @staticmethod
    async def find_band(db: AsyncSession, barangay: str, amount: float) -> Optional[DeliveryFeeTier]:
        """Active tier whose band contains `amount`, highest lower bound first."""
        result = await db.execute(
            select(DeliveryFeeTier)
            .where(
                DeliveryFeeTier.barangay == barangay,
                DeliveryFeeTier.is_active.is_(True),
                DeliveryFeeTier.min_order_amount <= amount,
                DeliveryFeeTier.max_order_amount >= amount,
            )
            .order_by(DeliveryFeeTier.min_order_amount.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def find_top_band(db: AsyncSession, barangay: str) -> Optional[DeliveryFeeTier]:
        result = await db.execute(
            select(DeliveryFeeTier)
            .where(DeliveryFeeTier.barangay == barangay, DeliveryFeeTier.is_active.is_(True))
            .order_by(DeliveryFeeTier.max_order_amount.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def find_default_band(db: AsyncSession, barangay: str) -> Optional[DeliveryFeeTier]:
        result = await db.execute(
            select(DeliveryFeeTier)
            .where(
                DeliveryFeeTier.barangay == barangay,
                DeliveryFeeTier.is_active.is_(True),
                DeliveryFeeTier.min_order_amount == 0,
            )
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_zone(db: AsyncSession, barangay: str) -> list[DeliveryFeeTier]:
        result = await db.execute(
            select(DeliveryFeeTier)
            .where(DeliveryFeeTier.barangay == barangay)
            .order_by(DeliveryFeeTier.min_order_amount)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_active(db: AsyncSession) -> list[DeliveryFeeTier]:
        result = await db.execute(
            select(DeliveryFeeTier)
            .where(DeliveryFeeTier.is_active.is_(True))
            .order_by(DeliveryFeeTier.barangay, DeliveryFeeTier.min_order_amount)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_by_band(db: AsyncSession, barangay: str, min_amount: float, max_amount: float):
        result = await db.execute(
            select(DeliveryFeeTier).where(
                DeliveryFeeTier.barangay == barangay,
                DeliveryFeeTier.min_order_amount == min_amount,
                DeliveryFeeTier.max_order_amount == max_amount,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def save(db: AsyncSession, tier: DeliveryFeeTier) -> DeliveryFeeTier:
        db.add(tier)
        await db.commit()
        await db.refresh(tier)
        return tier

    @staticmethod
    async def delete_tier(db: AsyncSession, tier_id) -> bool:
        result = await db.execute(
            delete(DeliveryFeeTier).where(DeliveryFeeTier.id == tier_id).returning(DeliveryFeeTier.id)
        )
        deleted = result.scalar_one_or_none()
        await db.commit()
        return deleted is not None

    @staticmethod
    async def delete_zone(db: AsyncSession, barangay: str) -> int:
        result = await db.execute(
            delete(DeliveryFeeTier).where(DeliveryFeeTier.barangay == barangay).returning(DeliveryFeeTier.id)
        )
        count = len(result.scalars().all())
        await db.commit()
        return count
