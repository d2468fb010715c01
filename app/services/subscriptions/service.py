"""
SubscriptionService - аккаунтовая сторона подписки (коллаборатор движка).
Движок читает только get_subscription(); остальное вызывают webhook и админка.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable

from sqlalchemy.orm import Session

from app.models.subscription import Subscription, SubscriptionStatus
from app.paywall.models import SubscriptionSnapshot
from app.paywall.ports import Accounts
from app.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

PLAN_DURATIONS = {
    "monthly": timedelta(days=30),
    "yearly": timedelta(days=365),
}


class SubscriptionService(Accounts):
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def get(self, user_id: str) -> Subscription | None:
        return self.db.query(Subscription).filter(Subscription.user_id == user_id).one_or_none()

    def get_by_gateway_ref(self, gateway_subscription_ref: str) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(Subscription.gateway_subscription_ref == gateway_subscription_ref)
            .one_or_none()
        )

    def get_subscription(self, user_id: str) -> SubscriptionSnapshot | None:
        sub = self.get(user_id)
        if sub is None:
            return None
        return SubscriptionSnapshot(
            user_id=sub.user_id,
            status=sub.status,
            end_date=as_utc(sub.end_date),
            plan=sub.plan,
        )

    def activate(
        self,
        user_id: str,
        plan: str = "monthly",
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        amount: Decimal | int = 0,
        currency: str = "INR",
        gateway_subscription_ref: str | None = None,
        auto_renew: bool = True,
    ) -> Subscription:
        """Upsert по user_id (одна подписка на пользователя)."""
        start = start_date or self.clock()
        end = end_date or start + PLAN_DURATIONS.get(plan, PLAN_DURATIONS["monthly"])
        sub = self.get(user_id)
        if sub is None:
            sub = Subscription(user_id=user_id)
        sub.plan = plan
        sub.status = SubscriptionStatus.ACTIVE.value
        sub.start_date = start
        sub.end_date = end
        sub.amount = Decimal(str(amount))
        sub.currency = currency
        sub.auto_renew = auto_renew
        sub.cancelled_at = None
        sub.cancellation_reason = None
        if gateway_subscription_ref:
            sub.gateway_subscription_ref = gateway_subscription_ref
        self.db.add(sub)
        self.db.commit()
        self.db.refresh(sub)
        logger.info(
            "subscription_activated",
            extra={"user_id": user_id, "status": sub.status, "reason": plan},
        )
        return sub

    def cancel(self, sub: Subscription, reason: str = "User requested") -> Subscription:
        sub.status = SubscriptionStatus.CANCELLED.value
        sub.cancelled_at = self.clock()
        sub.cancellation_reason = reason
        sub.auto_renew = False
        return self._save(sub)

    def pause(self, sub: Subscription) -> Subscription:
        sub.status = SubscriptionStatus.PAUSED.value
        return self._save(sub)

    def resume(self, sub: Subscription) -> Subscription:
        sub.status = SubscriptionStatus.ACTIVE.value
        return self._save(sub)

    def expire(self, sub: Subscription) -> Subscription:
        sub.status = SubscriptionStatus.EXPIRED.value
        return self._save(sub)

    def extend(self, sub: Subscription, days: int) -> Subscription:
        sub.end_date = as_utc(sub.end_date) + timedelta(days=days)
        return self._save(sub)

    def _save(self, sub: Subscription) -> Subscription:
        self.db.add(sub)
        self.db.commit()
        self.db.refresh(sub)
        logger.info("subscription_updated", extra={"user_id": sub.user_id, "status": sub.status})
        return sub
