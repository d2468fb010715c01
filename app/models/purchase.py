"""
PurchaseRecord - журнал всех попыток доступа к закрытой картинке (разовая оплата или подписка).
gateway_order_ref и gateway_payment_ref уникальны: на них держится идемпотентность complete().
Статус expired в горячем пути не пишется - истечение считается по expiry_date при чтении.
"""
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from app.db.base import Base
from app.utils.clock import as_utc, utcnow


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    EXPIRED = "expired"  # только отчётная переразметка sweep'ом


class PaymentMethod(str, Enum):
    GATEWAY = "gateway"
    SUBSCRIPTION = "subscription_entitlement"


class PurchaseRecord(Base):
    __tablename__ = "purchases"
    __table_args__ = (
        Index("ix_purchases_user_image_status", "user_id", "image_id", "status"),
        Index("ix_purchases_status_expiry", "status", "expiry_date"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    video_id = Column(String, nullable=True)
    image_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    payment_method = Column(String, nullable=False)  # gateway / subscription_entitlement
    gateway_order_ref = Column(String, unique=True, nullable=True)
    gateway_payment_ref = Column(String, unique=True, nullable=True)
    gateway_signature = Column(String, nullable=True)
    # Сырой ответ шлюза на создание заказа - отдаём клиенту повторно при reuse pending.
    gateway_order_payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    status = Column(String, nullable=False, default=PurchaseStatus.PENDING.value)
    failure_reason = Column(String, nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    refund_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)  # NULL для subscription_entitlement
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_subscription_entitlement(self) -> bool:
        return self.payment_method == PaymentMethod.SUBSCRIPTION.value

    def is_expired(self, now: datetime) -> bool:
        """completed + now >= expiry_date (или уже переразмечена sweep'ом)."""
        if self.status == PurchaseStatus.EXPIRED.value:
            return True
        if self.status != PurchaseStatus.COMPLETED.value or self.expiry_date is None:
            return False
        return now >= as_utc(self.expiry_date)

    def access_granted(self, now: datetime) -> bool:
        """
        Производное значение, не хранится.
        Запись подписки без expiry_date сама по себе доступ не даёт: его даёт активная подписка.
        """
        if self.status != PurchaseStatus.COMPLETED.value or self.expiry_date is None:
            return False
        return now < as_utc(self.expiry_date)
