"""
DTO paywall: снимки внешних коллабораторов (AssetInfo, SubscriptionSnapshot, GatewayOrder)
и результаты операций движка (AccessDecision, SignedAccess, InitiateResult, CompleteResult).
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AccessReason(str, Enum):
    SUBSCRIPTION = "subscription"
    ONE_TIME_PURCHASE = "one-time-purchase"
    NO_ACTIVE_GRANT = "NoActiveGrant"
    EXPIRED = "Expired"


# ----- Снимки коллабораторов -----


class AssetInfo(BaseModel):
    """Каталог: цена и связь видео -> закрытая картинка."""

    id: str
    kind: str
    price: Decimal | None = None
    associated_image_id: str | None = None
    storage_key: str | None = None

    model_config = {"frozen": True}


class SubscriptionSnapshot(BaseModel):
    """Аккаунт: состояние подписки на момент проверки."""

    user_id: str
    status: str
    end_date: datetime
    plan: str | None = None

    model_config = {"frozen": True}

    def is_active(self, now: datetime) -> bool:
        return self.status == "active" and now < self.end_date


class GatewayOrder(BaseModel):
    """Ответ шлюза на createOrder: ссылка на заказ + сырой payload для клиента."""

    order_ref: str
    amount_minor: int
    currency: str
    raw: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


# ----- Решение доступа (без побочных эффектов) -----


class AccessDecision(BaseModel):
    granted: bool
    reason: AccessReason
    expires_at: datetime | None = Field(
        None,
        description="Только для one-time-purchase: момент, после которого доступ пропадает",
    )
    purchase_id: str | None = None

    model_config = {"frozen": True}


class SignedAccess(BaseModel):
    """Результат get_signed_access_url: ссылка от storage + граница доступа."""

    image_id: str
    url: str
    reason: AccessReason
    expires_at: datetime | None = None

    model_config = {"frozen": True}


# ----- Результаты операций ledger -----


class InitiateResult(BaseModel):
    purchase_id: str
    order_ref: str
    amount: Decimal
    currency: str
    order: dict[str, Any] = Field(default_factory=dict, description="Opaque payload для checkout на клиенте")
    reused: bool = Field(False, description="True = вернули уже открытый pending той же пары")

    model_config = {"frozen": True}


class CompleteResult(BaseModel):
    purchase_id: str
    expires_at: datetime | None

    model_config = {"frozen": True}
