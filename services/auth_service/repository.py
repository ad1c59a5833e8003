from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Address, User


class UserRepository:

    @staticmethod
    async def create(db: AsyncSession, user: User) -> User:
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalars().first()


class AddressRepository:

    @staticmethod
    async def create(db: AsyncSession, address: Address) -> Address:
        db.add(address)
        await db.commit()
        await db.refresh(address)
        return address

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id) -> list[Address]:
        result = await db.execute(
            select(Address).where(Address.user_id == user_id).order_by(Address.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_for_user(db: AsyncSession, address_id, user_id) -> Optional[Address]:
        result = await db.execute(
            select(Address).where(Address.id == address_id, Address.user_id == user_id)
        )
        return result.scalars().first()
