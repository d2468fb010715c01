"""
Paywall config - типизированная обёртка над app.core.config для окна доступа, цены и валюты.
"""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from app.core.config import settings


def get_access_window() -> timedelta:
    return timedelta(seconds=settings.access_window_seconds)


def get_default_price() -> Decimal:
    return Decimal(str(settings.default_image_price))


def get_currency() -> str:
    return settings.payment_currency


def get_pending_order_ttl() -> timedelta:
    return timedelta(seconds=settings.pending_order_ttl_seconds)


def get_sweep_grace() -> timedelta:
    return timedelta(seconds=settings.expiry_sweep_grace_seconds)


def get_sweep_batch_size() -> int:
    return settings.expiry_sweep_batch_size


def get_subscription_url_ttl() -> int:
    return settings.subscription_url_ttl_seconds
