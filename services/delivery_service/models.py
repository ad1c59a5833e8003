from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Uuid

from shared.config.database import Base, new_id, utcnow

DELIVERY_STATUSES = ("assigned", "picked_up", "en_route", "delivered")
ACTIVE_DELIVERY_STATUSES = ("assigned", "picked_up", "en_route")


class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(Uuid, primary_key=True, default=new_id)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, unique=True)
    # Null means "awaiting rider" even though status starts as 'assigned'.
    # Only ever set through a conditional update on rider_id IS NULL.
    rider_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="assigned")
    pickup_time = Column(DateTime(timezone=True), nullable=True)
    delivery_time = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_time = Column(DateTime(timezone=True), nullable=True)
    cash_collected = Column(Boolean, nullable=False, default=False)
    cash_amount = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class DeliveryRequest(Base):
    __tablename__ = "delivery_requests"

    id = Column(Uuid, primary_key=True, default=new_id)
    delivery_id = Column(Uuid, ForeignKey("deliveries.id"), nullable=False, index=True)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id"), nullable=False, index=True)
    rider_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    requested_by = Column(String(20), nullable=False)  # rider, restaurant
    status = Column(String(20), nullable=False, default="pending")  # pending, accepted, rejected
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class RiderProfile(Base):
    __tablename__ = "rider_profiles"

    user_id = Column(Uuid, ForeignKey("users.id"), primary_key=True)
    vehicle_type = Column(String(50), nullable=True)
    license_number = Column(String(50), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    location_updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
