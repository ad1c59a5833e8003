from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, String, Uuid

from shared.config.database import Base, new_id, utcnow


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=new_id)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    payment_method = Column(String(20), nullable=False, default="gcash")
    payment_status = Column(String(20), nullable=False, default="pending")  # pending, processing, completed, failed
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="PHP")
    # Source id while processing, gateway payment id once charged.
    transaction_id = Column(String(100), nullable=True)
    payment_gateway = Column(String(20), nullable=False, default="paymongo")
    gateway_response = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
