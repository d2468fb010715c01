import hmac

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.paywall.access import AccessDecisionService
from app.paywall.ledger import PurchaseLedger
from app.services.idempotency import IdempotencyStore
from app.services.subscriptions.service import SubscriptionService
from app.services.webhooks.service import WebhookService
from app.services.wiring import build_access_service, build_ledger, get_gateway


def get_access_service(db: Session = Depends(get_db)) -> AccessDecisionService:
    return build_access_service(db)


def get_ledger(db: Session = Depends(get_db)) -> PurchaseLedger:
    return build_ledger(db)


def get_webhook_service(
    db: Session = Depends(get_db),
    ledger: PurchaseLedger = Depends(get_ledger),
) -> WebhookService:
    return WebhookService(
        gateway=get_gateway(),
        ledger=ledger,
        subscriptions=SubscriptionService(db),
        idempotency=IdempotencyStore(),
    )


def require_admin(x_admin_key: str | None = Header(None)) -> str:
    """X-Admin-Key против settings.admin_api_key; без настроенного ключа админка закрыта."""
    expected = settings.admin_api_key
    if not expected or not x_admin_key or not hmac.compare_digest(expected, x_admin_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")
    return "admin"
