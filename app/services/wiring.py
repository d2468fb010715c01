"""
Сборка движка из конкретных коллабораторов. Все зависимости передаются явно;
API, Celery-задачи и скрипты берут сервисы только отсюда.
"""
from sqlalchemy.orm import Session

from app.paywall.access import AccessDecisionService
from app.paywall.audit import CeleryAuditSink
from app.paywall.ledger import PurchaseLedger
from app.paywall.ports import AuditSink, PaymentGateway
from app.services.catalog.service import CatalogService
from app.services.payments.razorpay import RazorpayGateway
from app.services.subscriptions.service import SubscriptionService
from app.storage.r2 import R2BlobStore

_gateway: RazorpayGateway | None = None
_blob_store: R2BlobStore | None = None


def get_gateway() -> RazorpayGateway:
    """Один httpx клиент на процесс."""
    global _gateway
    if _gateway is None:
        _gateway = RazorpayGateway()
    return _gateway


def get_blob_store() -> R2BlobStore:
    """Один boto3 клиент на процесс."""
    global _blob_store
    if _blob_store is None:
        _blob_store = R2BlobStore()
    return _blob_store


def build_access_service(db: Session) -> AccessDecisionService:
    return AccessDecisionService(
        db,
        accounts=SubscriptionService(db),
        catalog=CatalogService(db),
        blob_store=get_blob_store(),
    )


def build_ledger(
    db: Session,
    gateway: PaymentGateway | None = None,
    audit: AuditSink | None = None,
) -> PurchaseLedger:
    return PurchaseLedger(
        db,
        catalog=CatalogService(db),
        gateway=gateway or get_gateway(),
        access=build_access_service(db),
        audit=audit or CeleryAuditSink(),
    )
