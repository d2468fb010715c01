"""
Общие фикстуры: in-memory SQLite, управляемые часы, фейковый шлюз и аудит.
Переменные окружения выставляются до импорта app.* (Settings читает их при импорте).
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("R2_ENDPOINT_URL", "https://r2.test")
os.environ.setdefault("R2_ACCESS_KEY_ID", "test-access-key")
os.environ.setdefault("R2_SECRET_ACCESS_KEY", "test-secret-key")
os.environ.setdefault("R2_BUCKET_NAME", "gated")

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.models import asset, audit_log, purchase, purchase_lock, subscription  # noqa: E402,F401
from app.paywall.access import AccessDecisionService  # noqa: E402
from app.paywall.errors import GatewayUnavailable  # noqa: E402
from app.paywall.ledger import PurchaseLedger  # noqa: E402
from app.paywall.models import GatewayOrder  # noqa: E402
from app.paywall.ports import AuditSink, PaymentGateway  # noqa: E402
from app.services.catalog.service import CatalogService  # noqa: E402
from app.services.subscriptions.service import SubscriptionService  # noqa: E402
from app.storage.r2 import R2BlobStore, create_r2_client  # noqa: E402


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class MutableClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


class FakeGateway(PaymentGateway):
    """Заказы order_1, order_2...; валидная подпись = sign(order_ref, payment_ref)."""

    def __init__(self) -> None:
        self.orders: list[GatewayOrder] = []
        self.create_unavailable = False
        self.verify_unavailable = False

    @staticmethod
    def sign(order_ref: str, payment_ref: str) -> str:
        return f"sig:{order_ref}|{payment_ref}"

    def create_order(self, amount_minor: int, currency: str, receipt: str | None = None) -> GatewayOrder:
        if self.create_unavailable:
            raise GatewayUnavailable("gateway down")
        order_ref = f"order_{len(self.orders) + 1}"
        order = GatewayOrder(
            order_ref=order_ref,
            amount_minor=amount_minor,
            currency=currency,
            raw={"id": order_ref, "amount": amount_minor, "currency": currency, "receipt": receipt},
        )
        self.orders.append(order)
        return order

    def verify(self, order_ref: str, payment_ref: str, signature: str) -> bool:
        if self.verify_unavailable:
            raise GatewayUnavailable("gateway down")
        return signature == self.sign(order_ref, payment_ref)


class RecordingAuditSink(AuditSink):
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def emit(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e["type"] for e in self.events]


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def audit():
    return RecordingAuditSink()


@pytest.fixture
def catalog(db):
    return CatalogService(db)


@pytest.fixture
def subscriptions(db, clock):
    return SubscriptionService(db, clock=clock)


@pytest.fixture
def access(db, subscriptions, catalog, clock):
    return AccessDecisionService(
        db,
        accounts=subscriptions,
        catalog=catalog,
        blob_store=R2BlobStore(create_r2_client(), "gated"),
        clock=clock,
    )


@pytest.fixture
def ledger(db, catalog, gateway, access, audit, clock):
    return PurchaseLedger(db, catalog=catalog, gateway=gateway, access=access, audit=audit, clock=clock)


@pytest.fixture
def image(catalog):
    return catalog.create(kind="image", storage_key="images/cover.png", title="Cover", price=Decimal("10"))


@pytest.fixture
def video(catalog, image):
    return catalog.create(kind="video", storage_key="videos/clip.mp4", title="Clip", associated_image_id=image.id)
