from dataclasses import dataclass
from itertools import groupby

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import BadRequestError, NotFoundError

from .models import DeliveryFeeTier
from .repository import FeeTierRepository
from .schemas import FeeTierUpsert
from .zones import address_text, match_zone

logger = structlog.get_logger(__name__)


class UnserviceableArea(BadRequestError):
    code = "UNSERVICEABLE_AREA"


class FeeConfigurationMissing(BadRequestError):
    code = "FEE_CONFIGURATION_MISSING"


class InvalidFeeTier(BadRequestError):
    code = "INVALID_FEE_TIER"


@dataclass
class FeeQuote:
    barangay: str
    order_amount: float
    delivery_fee: float
    fallback: bool = False

    @property
    def tier(self) -> str:
        return "max" if self.fallback else "band"


class FeeService:

    @staticmethod
    async def resolve_delivery_fee(db: AsyncSession, address, subtotal: float) -> FeeQuote:
        """Price delivery to `address` (street_address + city) for an order of `subtotal`."""
        zones = await FeeTierRepository.list_active_zones(db)
        if not zones:
            raise FeeConfigurationMissing("No delivery fee tiers configured. Please contact support.")

        zone = match_zone(address_text(address.street_address, address.city), zones)
        if zone is None:
            logger.info("unserviceable_address", address_id=str(getattr(address, "id", "")), zones=zones)
            raise UnserviceableArea(
                "Delivery is not available to your selected location. "
                f"We currently deliver to: {', '.join(zones)}. "
                "Please ensure your address includes one of these barangays.",
                details={"zones": zones},
            )

        return await FeeService.calculate(db, zone, subtotal)

    @staticmethod
    async def calculate(db: AsyncSession, barangay: str, amount: float) -> FeeQuote:
        tier = await FeeTierRepository.find_band(db, barangay, amount)
        if tier is not None:
            return FeeQuote(barangay, amount, float(tier.delivery_fee))

        # Above the highest configured band: charge the top band's fee.
        tier = await FeeTierRepository.find_top_band(db, barangay)
        if tier is None:
            raise FeeConfigurationMissing(f"Delivery fee configuration not found for {barangay}")
        return FeeQuote(barangay, amount, float(tier.delivery_fee), fallback=True)

    @staticmethod
    async def list_tiers(db: AsyncSession) -> dict[str, list[DeliveryFeeTier]]:
        tiers = await FeeTierRepository.list_active(db)
        return {zone: list(group) for zone, group in groupby(tiers, key=lambda t: t.barangay)}

    @staticmethod
    async def get_tiers(db: AsyncSession, barangay: str) -> list[DeliveryFeeTier]:
        tiers = await FeeTierRepository.list_for_zone(db, barangay)
        if not tiers:
            raise NotFoundError("Delivery fee tiers not found for this barangay")
        return tiers

    @staticmethod
    async def get_default_fee(db: AsyncSession, barangay: str) -> float:
        tier = await FeeTierRepository.find_default_band(db, barangay)
        if tier is None:
            raise NotFoundError("Delivery fee not found for this barangay")
        return float(tier.delivery_fee)

    @staticmethod
    async def upsert_tier(db: AsyncSession, data: FeeTierUpsert) -> DeliveryFeeTier:
        if data.min_order_amount < 0 or data.max_order_amount < 0 or data.delivery_fee < 0:
            raise InvalidFeeTier("Amounts must be non-negative")
        if data.min_order_amount >= data.max_order_amount:
            raise InvalidFeeTier("Min order amount must be less than max order amount")

        existing = await FeeTierRepository.get_by_band(
            db, data.barangay, data.min_order_amount, data.max_order_amount
        )

        if data.is_active:
            for other in await FeeTierRepository.list_for_zone(db, data.barangay):
                if other is existing or not other.is_active:
                    continue
                # Bands may share an endpoint but not an interior.
                if data.min_order_amount < other.max_order_amount and other.min_order_amount < data.max_order_amount:
                    raise InvalidFeeTier(
                        f"Band {data.min_order_amount}-{data.max_order_amount} overlaps "
                        f"{other.min_order_amount}-{other.max_order_amount} for {data.barangay}"
                    )

        tier = existing or DeliveryFeeTier(
            barangay=data.barangay,
            min_order_amount=data.min_order_amount,
            max_order_amount=data.max_order_amount,
        )
        tier.delivery_fee = data.delivery_fee
        tier.is_active = data.is_active
        tier = await FeeTierRepository.save(db, tier)
        logger.info("fee_tier_saved", barangay=tier.barangay, tier_id=str(tier.id))
        return tier

    @staticmethod
    async def delete_tier(db: AsyncSession, tier_id) -> None:
        if not await FeeTierRepository.delete_tier(db, tier_id):
            raise NotFoundError("Delivery fee tier not found")

    @staticmethod
    async def delete_barangay(db: AsyncSession, barangay: str) -> int:
        deleted = await FeeTierRepository.delete_zone(db, barangay)
        if not deleted:
            raise NotFoundError("No delivery fee tiers found for this barangay")
        return deleted
