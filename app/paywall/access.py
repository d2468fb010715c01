"""
Decision: может ли пользователь видеть закрытую картинку прямо сейчас.

Порядок: активная подписка -> последняя completed разовая покупка с неистёкшим окном -> отказ
(NoActiveGrant или Expired, чтобы UX различал «не покупал» и «истекло»).
Только чтение: ledger здесь никогда не меняется, истечение - чистая функция времени.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Callable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.paywall.config import get_subscription_url_ttl
from app.models.purchase import PaymentMethod, PurchaseRecord, PurchaseStatus
from app.paywall.errors import AccessDenied, AssetNotFound
from app.paywall.models import AccessDecision, AccessReason, SignedAccess, SubscriptionSnapshot
from app.paywall.ports import Accounts, Catalog
from app.storage.base import BlobStore
from app.utils.clock import as_utc, utcnow
from app.utils.metrics import access_checks_total

logger = logging.getLogger(__name__)


def decide_access(
    now: datetime,
    subscription: SubscriptionSnapshot | None,
    latest_grant: PurchaseRecord | None,
    has_expired_grant: bool,
) -> AccessDecision:
    """Чистая функция: без I/O, только входы и текущее время."""
    # Guardrail: активный подписчик видит всё, состояние покупок не важно
    if subscription is not None and subscription.is_active(now):
        return AccessDecision(granted=True, reason=AccessReason.SUBSCRIPTION)

    if latest_grant is not None and latest_grant.access_granted(now):
        return AccessDecision(
            granted=True,
            reason=AccessReason.ONE_TIME_PURCHASE,
            expires_at=as_utc(latest_grant.expiry_date),
            purchase_id=latest_grant.id,
        )

    if has_expired_grant or (latest_grant is not None and latest_grant.is_expired(now)):
        return AccessDecision(granted=False, reason=AccessReason.EXPIRED)
    return AccessDecision(granted=False, reason=AccessReason.NO_ACTIVE_GRANT)


class AccessDecisionService:
    def __init__(
        self,
        db: Session,
        accounts: Accounts,
        catalog: Catalog | None = None,
        blob_store: BlobStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.accounts = accounts
        self.catalog = catalog
        self.blob_store = blob_store
        self.clock = clock

    # ------------------------------------------------------------------
    # Queries (read-only)
    # ------------------------------------------------------------------

    def latest_one_time_grant(self, user_id: str, image_id: str) -> PurchaseRecord | None:
        """Completed разовая покупка с самым поздним expiry_date."""
        return (
            self.db.query(PurchaseRecord)
            .filter(
                PurchaseRecord.user_id == user_id,
                PurchaseRecord.image_id == image_id,
                PurchaseRecord.status == PurchaseStatus.COMPLETED.value,
                PurchaseRecord.payment_method == PaymentMethod.GATEWAY.value,
                PurchaseRecord.expiry_date.isnot(None),
            )
            .order_by(PurchaseRecord.expiry_date.desc())
            .first()
        )

    def has_expired_grant(self, user_id: str, image_id: str, now: datetime) -> bool:
        row = (
            self.db.query(PurchaseRecord.id)
            .filter(
                PurchaseRecord.user_id == user_id,
                PurchaseRecord.image_id == image_id,
                PurchaseRecord.payment_method == PaymentMethod.GATEWAY.value,
                or_(
                    PurchaseRecord.status == PurchaseStatus.EXPIRED.value,
                    (PurchaseRecord.status == PurchaseStatus.COMPLETED.value)
                    & (PurchaseRecord.expiry_date <= now),
                ),
            )
            .first()
        )
        return row is not None

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def has_access(self, user_id: str, image_id: str) -> AccessDecision:
        now = self.clock()
        subscription = self.accounts.get_subscription(user_id)
        if subscription is not None and subscription.is_active(now):
            decision = decide_access(now, subscription, None, False)
        else:
            latest = self.latest_one_time_grant(user_id, image_id)
            expired = False
            if latest is None or not latest.access_granted(now):
                expired = self.has_expired_grant(user_id, image_id, now)
            decision = decide_access(now, subscription, latest, expired)

        access_checks_total.labels(
            granted=str(decision.granted).lower(), reason=decision.reason.value
        ).inc()
        return decision

    def get_signed_access_url(self, user_id: str, image_id: str) -> SignedAccess:
        """
        Только гейт: решение + ссылка от blob store. Подпись ссылки - забота storage.
        Raises AccessDenied (reason внутри) или AssetNotFound.
        """
        decision = self.has_access(user_id, image_id)
        if not decision.granted:
            raise AccessDenied(decision.reason.value)

        asset = self.catalog.get_asset(image_id) if self.catalog is not None else None
        if asset is None:
            raise AssetNotFound(f"Image {image_id} not found")

        if decision.reason == AccessReason.SUBSCRIPTION:
            expires_in = get_subscription_url_ttl()
        else:
            remaining = (decision.expires_at - self.clock()).total_seconds()
            expires_in = max(1, math.ceil(remaining))

        key = asset.storage_key or image_id
        url = self.blob_store.url_for(key, expires_in) if self.blob_store is not None else key
        logger.info(
            "access_url_issued",
            extra={"user_id": user_id, "image_id": image_id, "reason": decision.reason.value},
        )
        return SignedAccess(
            image_id=image_id,
            url=url,
            reason=decision.reason,
            expires_at=decision.expires_at,
        )

    def access_summary(self, user_id: str) -> dict:
        """Подписка + все действующие разовые доступы с остатком секунд."""
        now = self.clock()
        subscription = self.accounts.get_subscription(user_id)
        active = (
            self.db.query(PurchaseRecord)
            .filter(
                PurchaseRecord.user_id == user_id,
                PurchaseRecord.status == PurchaseStatus.COMPLETED.value,
                PurchaseRecord.payment_method == PaymentMethod.GATEWAY.value,
                PurchaseRecord.expiry_date > now,
            )
            .order_by(PurchaseRecord.expiry_date.asc())
            .all()
        )
        return {
            "has_active_subscription": bool(subscription and subscription.is_active(now)),
            "subscription": (
                {
                    "status": subscription.status,
                    "plan": subscription.plan,
                    "end_date": subscription.end_date,
                }
                if subscription
                else None
            ),
            "active_purchases": [
                {
                    "purchase_id": p.id,
                    "image_id": p.image_id,
                    "video_id": p.video_id,
                    "expires_at": as_utc(p.expiry_date),
                    "seconds_remaining": int((as_utc(p.expiry_date) - now).total_seconds()),
                }
                for p in active
            ],
        }
