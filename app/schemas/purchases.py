from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class InitiateIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    # imageId; видео с привязанной картинкой тоже принимается
    image_id: str = Field(..., min_length=1)


class InitiateOut(BaseModel):
    purchase_id: str
    order_ref: str
    amount: Decimal
    currency: str
    order: dict[str, Any] = {}
    reused: bool = False


class CompleteIn(BaseModel):
    order_ref: str = Field(..., min_length=1)
    payment_ref: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class CompleteOut(BaseModel):
    purchase_id: str
    expires_at: datetime | None


class AccessCheckOut(BaseModel):
    granted: bool
    reason: str
    expires_at: datetime | None = None


class SignedAccessOut(BaseModel):
    image_id: str
    url: str
    reason: str
    expires_at: datetime | None = None


class RefundIn(BaseModel):
    amount: Decimal | None = None
    reason: str | None = None


class PurchaseOut(BaseModel):
    purchase_id: str
    user_id: str
    video_id: str | None = None
    image_id: str
    amount: str
    currency: str
    payment_method: str
    status: str
    order_ref: str | None = None
    access_granted: bool
    is_expired: bool
    can_buy_again: bool
    expires_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
