"""
Razorpay webhook: проверка подписи тела, дедуп по X-Razorpay-Event-Id (Redis SETNX),
диспетчеризация событий в ledger и подписки.

Ledger идемпотентен сам по себе; дедуп лишь экономит работу на ретраях шлюза.
Конфликты ledger (запись не найдена, не pending, чужой payment) - терминальны: логируем и
отвечаем 200, чтобы шлюз не ретраил. Прочие ошибки снимают ключ дедупа и пробрасываются.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any

from app.paywall.errors import DuplicatePayment, InvalidState, RecordNotFound, ValidationFailed
from app.paywall.ledger import PurchaseLedger
from app.services.idempotency import IdempotencyStore
from app.services.payments.razorpay import RazorpayGateway
from app.services.subscriptions.service import SubscriptionService
from app.utils.metrics import webhook_events_total

logger = logging.getLogger(__name__)

TERMINAL_ERRORS = (RecordNotFound, InvalidState, DuplicatePayment)


class WebhookService:
    def __init__(
        self,
        gateway: RazorpayGateway,
        ledger: PurchaseLedger,
        subscriptions: SubscriptionService,
        idempotency: IdempotencyStore | None = None,
    ) -> None:
        self.gateway = gateway
        self.ledger = ledger
        self.subscriptions = subscriptions
        self.idempotency = idempotency

    def process(self, body: bytes, signature: str | None, event_id: str | None = None) -> dict[str, Any]:
        """Returns {"status": processed|duplicate|ignored, "event": ...}. Raises ValidationFailed."""
        if not self.gateway.verify_webhook_signature(body, signature):
            webhook_events_total.labels(event="unknown", status="bad_signature").inc()
            logger.warning("webhook_invalid_signature", extra={"event_id": event_id})
            raise ValidationFailed("Invalid webhook signature")

        try:
            event = json.loads(body)
        except ValueError:
            raise ValidationFailed("Webhook body is not valid JSON")
        name = event.get("event", "unknown")

        dedupe_key = f"webhook:{event_id}" if event_id else None
        if dedupe_key and self.idempotency and not self.idempotency.check_and_set(dedupe_key):
            webhook_events_total.labels(event=name, status="duplicate").inc()
            logger.info("webhook_duplicate", extra={"event": name, "event_id": event_id})
            return {"status": "duplicate", "event": name}

        try:
            status = self.dispatch(name, event.get("payload") or {})
        except TERMINAL_ERRORS as e:
            webhook_events_total.labels(event=name, status="ignored").inc()
            logger.warning(
                "webhook_ledger_conflict",
                extra={"event": name, "event_id": event_id, "error": e.code, "purchase_id": e.record_id},
            )
            return {"status": "ignored", "event": name, "error": e.code}
        except Exception:
            if dedupe_key and self.idempotency:
                self.idempotency.release(dedupe_key)
            webhook_events_total.labels(event=name, status="error").inc()
            logger.exception("webhook_processing_error", extra={"event": name, "event_id": event_id})
            raise

        webhook_events_total.labels(event=name, status=status).inc()
        logger.info("webhook_processed", extra={"event": name, "event_id": event_id, "status": status})
        return {"status": status, "event": name}

    def dispatch(self, name: str, payload: dict[str, Any]) -> str:
        if name == "payment.captured":
            payment = _entity(payload, "payment")
            self.ledger.complete_from_webhook(payment.get("order_id", ""), payment.get("id", ""))
            return "processed"
        if name == "payment.failed":
            payment = _entity(payload, "payment")
            self.ledger.fail_order(payment.get("order_id", ""), reason="gateway_reported")
            return "processed"
        if name in ("subscription.activated", "subscription.charged"):
            return self._subscription_activated(_entity(payload, "subscription"))
        if name == "subscription.cancelled":
            sub = self._find_subscription(_entity(payload, "subscription"))
            if sub is None:
                return "ignored"
            self.subscriptions.cancel(sub, reason="Cancelled via gateway webhook")
            return "processed"
        if name == "subscription.completed":
            sub = self._find_subscription(_entity(payload, "subscription"))
            if sub is None:
                return "ignored"
            self.subscriptions.expire(sub)
            return "processed"
        logger.info("webhook_unhandled_event", extra={"event": name})
        return "ignored"

    def _subscription_activated(self, entity: dict[str, Any]) -> str:
        notes = entity.get("notes") or {}
        existing = self._find_subscription(entity)
        user_id = notes.get("user_id") or notes.get("userId") or (existing.user_id if existing else None)
        if not user_id:
            logger.warning("webhook_subscription_without_user", extra={"event_id": entity.get("id")})
            return "ignored"
        plan = notes.get("plan") or (existing.plan if existing else "monthly")
        self.subscriptions.activate(
            user_id=user_id,
            plan=plan,
            start_date=_from_epoch(entity.get("current_start")),
            end_date=_from_epoch(entity.get("current_end")),
            gateway_subscription_ref=entity.get("id"),
            auto_renew=not entity.get("cancel_at_cycle_end", False),
        )
        return "processed"

    def _find_subscription(self, entity: dict[str, Any]):
        ref = entity.get("id")
        return self.subscriptions.get_by_gateway_ref(ref) if ref else None


def _entity(payload: dict[str, Any], key: str) -> dict[str, Any]:
    """Razorpay кладёт объект в payload[key]["entity"]."""
    node = payload.get(key) or {}
    return node.get("entity", node)


def _from_epoch(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)
