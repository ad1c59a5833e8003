from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Uuid

from shared.config.database import Base, new_id, utcnow


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Uuid, primary_key=True, default=new_id)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    minimum_order = Column(Float, nullable=False, default=0)
    delivery_fee = Column(Float, nullable=False, default=0)  # legacy flat fee, tiers take precedence
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Uuid, primary_key=True, default=new_id)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    has_variants = Column(Boolean, default=False, nullable=False)


class MenuItemVariant(Base):
    __tablename__ = "menu_item_variants"

    id = Column(Uuid, primary_key=True, default=new_id)
    menu_item_id = Column(Uuid, ForeignKey("menu_items.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

