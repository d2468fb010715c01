"""
Интерфейсы внешних коллабораторов движка. Реализации передаются в конструкторы
PurchaseLedger / AccessDecisionService явно (без глобальных синглтонов).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from app.paywall.models import AssetInfo, GatewayOrder, SubscriptionSnapshot


class Catalog(ABC):
    @abstractmethod
    def get_asset(self, asset_id: str) -> AssetInfo | None:
        raise NotImplementedError

    @abstractmethod
    def find_video_for_image(self, image_id: str) -> str | None:
        """Видео, к которому привязана закрытая картинка (для истории покупок)."""
        raise NotImplementedError


class Accounts(ABC):
    @abstractmethod
    def get_subscription(self, user_id: str) -> SubscriptionSnapshot | None:
        raise NotImplementedError


class PaymentGateway(ABC):
    @abstractmethod
    def create_order(self, amount_minor: int, currency: str, receipt: str | None = None) -> GatewayOrder:
        """Raises GatewayUnavailable on transport errors/timeouts."""
        raise NotImplementedError

    @abstractmethod
    def verify(self, order_ref: str, payment_ref: str, signature: str) -> bool:
        raise NotImplementedError


class AuditSink(ABC):
    @abstractmethod
    def emit(self, event: dict[str, Any]) -> None:
        """Fire-and-forget. Must not raise."""
        raise NotImplementedError
