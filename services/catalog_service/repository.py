from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import MenuItem, MenuItemVariant, Restaurant


class CatalogRepository:

    @staticmethod
    async def get_restaurant(db: AsyncSession, restaurant_id) -> Optional[Restaurant]:
        result = await db.execute(select(Restaurant).where(Restaurant.id == restaurant_id))
        return result.scalars().first()

    @staticmethod
    async def list_restaurants_owned_by(db: AsyncSession, owner_id) -> list[Restaurant]:
        result = await db.execute(select(Restaurant).where(Restaurant.owner_id == owner_id))
        return list(result.scalars().all())

    @staticmethod
    async def get_menu_items(db: AsyncSession, restaurant_id, item_ids: Iterable) -> dict:
        """Menu items of one restaurant keyed by id; ids from other restaurants are simply absent."""
        ids = set(item_ids)
        if not ids:
            return {}
        result = await db.execute(
            select(MenuItem).where(MenuItem.id.in_(ids), MenuItem.restaurant_id == restaurant_id)
        )
        return {item.id: item for item in result.scalars().all()}

    @staticmethod
    async def get_variants(db: AsyncSession, variant_ids: Iterable) -> dict:
        ids = set(variant_ids)
        if not ids:
            return {}
        result = await db.execute(select(MenuItemVariant).where(MenuItemVariant.id.in_(ids)))
        return {variant.id: variant for variant in result.scalars().all()}
