"""
SQLAlchemy models used by the payment layer:
- Payment channels (adapter name + stored config)
- Orders
- Raw webhook log
"""
import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# =====================================================
# PAYMENT CHANNEL MODEL
# =====================================================

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    uuid = Column(String(32), unique=True, nullable=False, index=True)

    # Adapter registry key, e.g. "Stripe" or "StripeALLInOne"
    payment = Column(String(32), nullable=False)
    name = Column(String(128), nullable=False)

    # Adapter specific keys: stripe_sk_live, stripe_webhook_key, currency ...
    config = Column(JSON, nullable=False, default=dict)

    # Overrides APP_URL when building the webhook URL
    notify_domain = Column(String(255), nullable=True)
    enable = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(),
                        onupdate=func.now(), nullable=False)

    orders = relationship("Order", back_populates="payment")

    def __repr__(self):
        return f"<Payment(id={self.id}, payment={self.payment}, name={self.name})>"


# =====================================================
# ORDER MODEL
# =====================================================

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    trade_no = Column(String(36), unique=True, nullable=False, index=True)

    # Minor units of settings.BASE_CURRENCY
    total_amount = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=OrderStatus.PENDING.value, index=True)

    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)
    # Provider transaction id, set once on settlement
    callback_no = Column(String(255), nullable=True)
    return_url = Column(String(512), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(),
                        onupdate=func.now(), nullable=False)

    payment = relationship("Payment", back_populates="orders")

    def __repr__(self):
        return f"<Order(trade_no={self.trade_no}, status={self.status}, total_amount={self.total_amount})>"


# =====================================================
# WEBHOOK LOG MODEL
# =====================================================

class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(32), nullable=False, index=True)  # adapter name
    channel_uuid = Column(String(32), nullable=True, index=True)

    headers = Column(JSON, nullable=True)
    payload = Column(JSON, nullable=False)

    status = Column(String(32), default="received", nullable=False, index=True)  # received, processed, ignored, failed
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<WebhookEvent(id={self.id}, provider={self.provider}, status={self.status})>"
