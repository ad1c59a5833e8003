"""
Catalog Guard: validates requested order lines against the live menu.

Prices are resolved here from the current catalog and then frozen into the
order item snapshot by the order service.
"""
import uuid
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import BadRequestError

from .repository import CatalogRepository


class EmptyOrder(BadRequestError):
    code = "EMPTY_ORDER"
    message = "Order items are required"


class ItemNotFound(BadRequestError):
    code = "ITEM_NOT_FOUND"


class ItemUnavailable(BadRequestError):
    code = "ITEM_UNAVAILABLE"


class VariantRequired(BadRequestError):
    code = "VARIANT_REQUIRED"


class VariantInvalid(BadRequestError):
    code = "VARIANT_INVALID"


class VariantUnavailable(BadRequestError):
    code = "VARIANT_UNAVAILABLE"


class UnexpectedVariant(BadRequestError):
    code = "UNEXPECTED_VARIANT"


class InvalidQuantity(BadRequestError):
    code = "INVALID_QUANTITY"
    message = "Quantity must be a positive integer"


@dataclass
class PricedLine:
    menu_item_id: uuid.UUID
    variant_id: Optional[uuid.UUID]
    quantity: int
    unit_price: float
    special_instructions: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@dataclass
class ValidatedCart:
    lines: list[PricedLine] = field(default_factory=list)

    @property
    def subtotal(self) -> float:
        return round(sum(line.line_total for line in self.lines), 2)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class CatalogGuard:

    @staticmethod
    async def validate_items(db: AsyncSession, restaurant_id, items: Sequence) -> ValidatedCart:
        """
        Each entry of `items` exposes menu_item_id, variant_id, quantity and
        special_instructions. Raises on the first invalid line.
        """
        if not items:
            raise EmptyOrder()

        menu_items = await CatalogRepository.get_menu_items(
            db, restaurant_id, [item.menu_item_id for item in items]
        )
        variants = await CatalogRepository.get_variants(
            db, [item.variant_id for item in items if item.variant_id is not None]
        )

        cart = ValidatedCart()
        for item in items:
            menu_item = menu_items.get(item.menu_item_id)
            if menu_item is None:
                raise ItemNotFound(f"Menu item {item.menu_item_id} not found")
            if not menu_item.is_available:
                raise ItemUnavailable(f"Menu item {menu_item.name} is not available")

            if menu_item.has_variants:
                if item.variant_id is None:
                    raise VariantRequired(f"Menu item {menu_item.name} requires a variant selection")
                variant = variants.get(item.variant_id)
                if variant is None or variant.menu_item_id != menu_item.id:
                    raise VariantInvalid(
                        f"Variant {item.variant_id} does not belong to menu item {menu_item.name}"
                    )
                if not variant.is_available:
                    raise VariantUnavailable(f"Variant {variant.name} is not available")
                unit_price = float(variant.price)
            else:
                if item.variant_id is not None:
                    raise UnexpectedVariant(f"Menu item {menu_item.name} has no variants")
                unit_price = float(menu_item.price)

            if not _is_positive_int(item.quantity):
                raise InvalidQuantity()

            cart.lines.append(
                PricedLine(
                    menu_item_id=menu_item.id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    special_instructions=item.special_instructions,
                )
            )
        return cart
