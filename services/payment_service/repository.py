from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import utcnow

from .models import Payment


class PaymentRepository:

    @staticmethod
    async def latest_for_order(db: AsyncSession, order_id) -> Optional[Payment]:
        result = await db.execute(
            select(Payment)
            .where(Payment.order_id == order_id)
            .order_by(Payment.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def add(db: AsyncSession, payment: Payment) -> Payment:
        db.add(payment)
        await db.flush()
        return payment

    @staticmethod
    async def update(db: AsyncSession, payment_id, **values) -> None:
        await db.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def update_for_order(db: AsyncSession, order_id, status_not_in: tuple = (), **values) -> int:
        """Applies to every payment row of the order not in `status_not_in`; returns how many matched."""
        stmt = update(Payment).where(Payment.order_id == order_id)
        if status_not_in:
            stmt = stmt.where(Payment.payment_status.not_in(status_not_in))
        result = await db.execute(
            stmt
            .values(updated_at=utcnow(), **values)
            .returning(Payment.id)
            .execution_options(synchronize_session=False)
        )
        return len(result.all())
