from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Numeric, String, Text

from app.db.base import Base
from app.utils.clock import as_utc, utcnow


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAUSED = "paused"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, unique=True, nullable=False, index=True)
    plan = Column(String, nullable=False, default="monthly")  # monthly / yearly
    status = Column(String, nullable=False, default=SubscriptionStatus.INACTIVE.value)
    start_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_date = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    gateway_subscription_ref = Column(String, unique=True, nullable=True)
    auto_renew = Column(Boolean, nullable=False, default=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def is_active(self, now: datetime) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value and now < as_utc(self.end_date)
