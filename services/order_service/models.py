from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, Uuid

from shared.config.database import Base, new_id, utcnow

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "preparing",
    "ready",
    "picked_up",
    "delivered",
    "cancelled",
)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=new_id)
    customer_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id"), nullable=False, index=True)
    delivery_address_id = Column(Uuid, ForeignKey("addresses.id"), nullable=True)  # null for pickup
    status = Column(String(20), nullable=False, default="pending")
    order_type = Column(String(20), nullable=False, default="delivery")  # delivery, pickup
    # Totals are frozen at creation: total_amount = subtotal + delivery_fee + tip_amount
    subtotal = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False, default=0)
    tax_amount = Column(Float, nullable=False, default=0)
    tip_amount = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False)
    special_instructions = Column(Text, nullable=True)
    estimated_delivery_time = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=new_id)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Uuid, ForeignKey("menu_items.id"), nullable=False)
    variant_id = Column(Uuid, ForeignKey("menu_item_variants.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)  # snapshot, never re-read from the menu
    special_instructions = Column(Text, nullable=True)


class OrderStatusEvent(Base):
    """Append-only audit trail, one row per status transition."""

    __tablename__ = "order_status_events"

    id = Column(Uuid, primary_key=True, default=new_id)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    note = Column(Text, nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True)  # null for system transitions
    created_at = Column(DateTime(timezone=True), default=utcnow)
