from sqlalchemy import Boolean, Column, DateTime, Float, String, UniqueConstraint, Uuid

from shared.config.database import Base, new_id, utcnow


class DeliveryFeeTier(Base):
    __tablename__ = "delivery_fee_tiers"
    __table_args__ = (
        UniqueConstraint("barangay", "min_order_amount", "max_order_amount", name="uq_fee_tier_band"),
    )

    id = Column(Uuid, primary_key=True, default=new_id)
    barangay = Column(String(100), nullable=False, index=True)
    min_order_amount = Column(Float, nullable=False)
    max_order_amount = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
