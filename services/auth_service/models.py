from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid

from shared.config.database import Base, new_id, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    user_type = Column(String(20), nullable=False, default="customer")  # customer, restaurant, rider, admin
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Uuid, primary_key=True, default=new_id)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    street_address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
