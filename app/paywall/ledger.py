"""
PurchaseLedger - журнал покупок и его state machine.

pending -> completed (verified) | pending -> failed | completed -> refunded.
expired не пишется в горячем пути: completed + now >= expiry_date считается при чтении;
sweep_expired() переразмечает старые строки только для отчётности.

Атомарность:
- initiate: строка-замок (user_id, image_id) FOR UPDATE, затем проверка доступа и вставка
  в одной транзакции;
- переходы статуса: условный UPDATE ... WHERE status = <ожидаемый>, результат по rowcount;
- gateway_payment_ref UNIQUE - повтор одного подтверждения не может дать второй доступ.
Ничего не ретраится внутри: идемпотентность держится на order_ref/payment_ref.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.purchase import PaymentMethod, PurchaseRecord, PurchaseStatus
from app.models.purchase_lock import PurchaseLock
from app.paywall.access import AccessDecisionService
from app.paywall.audit import build_event
from app.paywall.config import (
    get_access_window,
    get_currency,
    get_default_price,
    get_pending_order_ttl,
    get_sweep_batch_size,
    get_sweep_grace,
)
from app.paywall.errors import (
    AlreadyGranted,
    AssetNotFound,
    DuplicatePayment,
    GatewayUnavailable,
    InvalidAmount,
    InvalidState,
    NotCompleted,
    RecordNotFound,
    ValidationFailed,
    VerificationFailed,
)
from app.paywall.models import AccessReason, AssetInfo, CompleteResult, InitiateResult
from app.paywall.ports import AuditSink, Catalog, PaymentGateway
from app.utils.clock import as_utc, utcnow
from app.utils.currency import to_minor_units
from app.utils.metrics import (
    purchases_completed_total,
    purchases_expired_swept_total,
    purchases_failed_total,
    purchases_initiated_total,
    purchases_refunded_total,
)

logger = logging.getLogger(__name__)

# Статусы, в которых запись когда-то была оплачена и может быть возвращена
REFUNDABLE_STATUSES = (PurchaseStatus.COMPLETED.value, PurchaseStatus.EXPIRED.value)


class PurchaseLedger:
    def __init__(
        self,
        db: Session,
        catalog: Catalog,
        gateway: PaymentGateway,
        access: AccessDecisionService,
        audit: AuditSink,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.catalog = catalog
        self.gateway = gateway
        self.access = access
        self.audit = audit
        self.clock = clock

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, purchase_id: str) -> PurchaseRecord | None:
        return self.db.query(PurchaseRecord).filter(PurchaseRecord.id == purchase_id).one_or_none()

    def get_by_order_ref(self, order_ref: str) -> PurchaseRecord | None:
        return (
            self.db.query(PurchaseRecord)
            .filter(PurchaseRecord.gateway_order_ref == order_ref)
            .one_or_none()
        )

    def get_by_payment_ref(self, payment_ref: str) -> PurchaseRecord | None:
        return (
            self.db.query(PurchaseRecord)
            .filter(PurchaseRecord.gateway_payment_ref == payment_ref)
            .one_or_none()
        )

    def _open_pending(self, user_id: str, image_id: str) -> PurchaseRecord | None:
        return (
            self.db.query(PurchaseRecord)
            .filter(
                PurchaseRecord.user_id == user_id,
                PurchaseRecord.image_id == image_id,
                PurchaseRecord.status == PurchaseStatus.PENDING.value,
                PurchaseRecord.payment_method == PaymentMethod.GATEWAY.value,
            )
            .order_by(PurchaseRecord.created_at.desc())
            .first()
        )

    # ------------------------------------------------------------------
    # initiate
    # ------------------------------------------------------------------

    def initiate(self, user_id: str, asset_id: str) -> InitiateResult:
        """
        Открыть покупку: картинка (или видео с привязанной картинкой), цена из каталога,
        заказ в шлюзе, pending запись. Повторный вызов при свежем pending той же пары
        возвращает тот же заказ.
        Raises ValidationFailed, AssetNotFound, AlreadyGranted, GatewayUnavailable.
        """
        _require(user_id=user_id, asset_id=asset_id)
        image, video_id = self._resolve_gated_image(asset_id)
        now = self.clock()

        try:
            self._lock_pair(user_id, image.id)

            decision = self.access.has_access(user_id, image.id)
            if decision.granted:
                logger.info(
                    "purchase_already_granted",
                    extra={"user_id": user_id, "image_id": image.id, "reason": decision.reason.value},
                )
                raise AlreadyGranted(
                    "Access is already granted"
                    + (" by subscription" if decision.reason == AccessReason.SUBSCRIPTION else ""),
                    record_id=decision.purchase_id,
                )

            abandoned_id = None
            pending = self._open_pending(user_id, image.id)
            if pending is not None:
                if now - as_utc(pending.created_at) < get_pending_order_ttl():
                    result = InitiateResult(
                        purchase_id=pending.id,
                        order_ref=pending.gateway_order_ref,
                        amount=pending.amount,
                        currency=pending.currency,
                        order=pending.gateway_order_payload or {},
                        reused=True,
                    )
                    self.db.commit()
                    logger.info(
                        "purchase_pending_reused",
                        extra={"user_id": user_id, "image_id": image.id, "purchase_id": pending.id},
                    )
                    return result
                self._transition(
                    pending.id, PurchaseStatus.PENDING, PurchaseStatus.FAILED, now, failure_reason="abandoned"
                )
                abandoned_id = pending.id

            amount = image.price if image.price is not None else get_default_price()
            currency = get_currency()
            purchase_id = str(uuid4())
            order = self.gateway.create_order(
                to_minor_units(amount, currency), currency, receipt=f"rcpt_{purchase_id[:8]}"
            )

            record = PurchaseRecord(
                id=purchase_id,
                user_id=user_id,
                video_id=video_id,
                image_id=image.id,
                amount=Decimal(str(amount)),
                currency=currency,
                payment_method=PaymentMethod.GATEWAY.value,
                gateway_order_ref=order.order_ref,
                gateway_order_payload=order.raw,
                status=PurchaseStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            self.db.add(record)
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if abandoned_id is not None:
            purchases_failed_total.labels(reason="abandoned").inc()
            logger.info("purchase_abandoned", extra={"user_id": user_id, "purchase_id": abandoned_id})
            self._notify(
                "purchase.failed",
                user_id=user_id,
                purchase_id=abandoned_id,
                status=PurchaseStatus.FAILED.value,
                reason="abandoned",
            )
        purchases_initiated_total.inc()
        logger.info(
            "purchase_initiated",
            extra={
                "user_id": user_id,
                "image_id": image.id,
                "purchase_id": purchase_id,
                "order_ref": order.order_ref,
            },
        )
        return InitiateResult(
            purchase_id=purchase_id,
            order_ref=order.order_ref,
            amount=Decimal(str(amount)),
            currency=currency,
            order=order.raw,
        )

    def _resolve_gated_image(self, asset_id: str) -> tuple[AssetInfo, str | None]:
        """(картинка, video_id). Видео допускается, если у него есть привязанная картинка."""
        asset = self.catalog.get_asset(asset_id)
        if asset is None:
            raise AssetNotFound(f"Asset {asset_id} not found")
        if asset.kind == "video":
            if not asset.associated_image_id:
                raise AssetNotFound(f"Video {asset_id} has no gated image")
            image = self.catalog.get_asset(asset.associated_image_id)
            if image is None:
                raise AssetNotFound(f"Image {asset.associated_image_id} not found")
            return image, asset.id
        return asset, self.catalog.find_video_for_image(asset.id)

    # ------------------------------------------------------------------
    # complete
    # ------------------------------------------------------------------

    def complete(self, order_ref: str, payment_ref: str, signature: str) -> CompleteResult:
        """
        Подтверждение оплаты от клиента. Повтор с тем же (order_ref, payment_ref, signature)
        возвращает уже завершённую запись; другой payment_ref на завершённом заказе -> InvalidState.
        Raises RecordNotFound, InvalidState, VerificationFailed, DuplicatePayment, GatewayUnavailable.
        """
        _require(order_ref=order_ref, payment_ref=payment_ref, signature=signature)
        record = self.get_by_order_ref(order_ref)
        if record is None:
            raise RecordNotFound(f"No purchase for order {order_ref}")

        if record.status != PurchaseStatus.PENDING.value:
            return self._replayed(record, payment_ref, signature)

        try:
            verified = self.gateway.verify(order_ref, payment_ref, signature)
        except GatewayUnavailable:
            self._fail(record, "gateway_unavailable")
            raise

        if not verified:
            self._fail(record, "verification_failed")
            logger.warning(
                "purchase_verification_failed",
                extra={"purchase_id": record.id, "order_ref": order_ref, "payment_ref": payment_ref},
            )
            raise VerificationFailed("Payment signature is invalid", record_id=record.id)

        return self._finalize(record, payment_ref, signature)

    def complete_from_webhook(self, order_ref: str, payment_ref: str) -> CompleteResult:
        """payment.captured: подпись уже проверена на уровне тела webhook."""
        _require(order_ref=order_ref, payment_ref=payment_ref)
        record = self.get_by_order_ref(order_ref)
        if record is None:
            raise RecordNotFound(f"No purchase for order {order_ref}")
        if record.status != PurchaseStatus.PENDING.value:
            return self._replayed(record, payment_ref, None)
        return self._finalize(record, payment_ref, None)

    def fail_order(self, order_ref: str, reason: str = "gateway_reported") -> PurchaseRecord | None:
        """payment.failed: pending -> failed. Для не-pending записей - no-op."""
        record = self.get_by_order_ref(order_ref)
        if record is None:
            return None
        if record.status == PurchaseStatus.PENDING.value:
            self._fail(record, reason)
        else:
            logger.info(
                "purchase_fail_ignored",
                extra={"purchase_id": record.id, "status": record.status, "reason": reason},
            )
        return record

    def _replayed(self, record: PurchaseRecord, payment_ref: str, signature: str | None) -> CompleteResult:
        """Повторная доставка подтверждения для уже не-pending записи."""
        paid = record.status in REFUNDABLE_STATUSES
        if paid and record.gateway_payment_ref == payment_ref:
            same_signature = (
                signature is None
                or record.gateway_signature == signature
                or (
                    record.gateway_signature is None
                    and self.gateway.verify(record.gateway_order_ref, payment_ref, signature)
                )
            )
            if same_signature:
                logger.info(
                    "purchase_already_completed",
                    extra={"purchase_id": record.id, "payment_ref": payment_ref},
                )
                return CompleteResult(
                    purchase_id=record.id,
                    expires_at=as_utc(record.expiry_date),
                )
        raise InvalidState(f"Purchase is {record.status}", record_id=record.id)

    def _finalize(self, record: PurchaseRecord, payment_ref: str, signature: str | None) -> CompleteResult:
        purchase_id = record.id
        user_id = record.user_id
        image_id = record.image_id
        order_ref = record.gateway_order_ref

        other = self.get_by_payment_ref(payment_ref)
        if other is not None and other.id != purchase_id:
            logger.warning(
                "purchase_duplicate_payment",
                extra={"purchase_id": purchase_id, "payment_ref": payment_ref},
            )
            raise DuplicatePayment("Payment already used", record_id=other.id)

        now = self.clock()
        expiry = now + get_access_window()
        try:
            self._lock_pair(user_id, image_id)
            moved = self._transition(
                purchase_id,
                PurchaseStatus.PENDING,
                PurchaseStatus.COMPLETED,
                now,
                gateway_payment_ref=payment_ref,
                gateway_signature=signature,
                completed_at=now,
                expiry_date=expiry,
            )
            if not moved:
                # Параллельная доставка успела раньше
                self.db.rollback()
                current = self.get(purchase_id)
                return self._replayed(current, payment_ref, signature)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            holder = self.get_by_payment_ref(payment_ref)
            logger.warning(
                "purchase_duplicate_payment",
                extra={"purchase_id": purchase_id, "payment_ref": payment_ref},
            )
            raise DuplicatePayment("Payment already used", record_id=holder.id if holder else None)
        except Exception:
            self.db.rollback()
            raise

        purchases_completed_total.labels(method=PaymentMethod.GATEWAY.value).inc()
        logger.info(
            "purchase_completed",
            extra={
                "user_id": user_id,
                "image_id": image_id,
                "purchase_id": purchase_id,
                "order_ref": order_ref,
                "payment_ref": payment_ref,
            },
        )
        self._notify(
            "purchase.completed",
            user_id=user_id,
            purchase_id=purchase_id,
            image_id=image_id,
            status=PurchaseStatus.COMPLETED.value,
            expires_at=expiry,
        )
        return CompleteResult(purchase_id=purchase_id, expires_at=expiry)

    def _fail(self, record: PurchaseRecord, reason: str) -> None:
        purchase_id, user_id = record.id, record.user_id
        try:
            moved = self._transition(
                purchase_id, PurchaseStatus.PENDING, PurchaseStatus.FAILED, self.clock(), failure_reason=reason
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if moved:
            purchases_failed_total.labels(reason=reason).inc()
            logger.info("purchase_failed", extra={"purchase_id": purchase_id, "reason": reason})
            self._notify(
                "purchase.failed",
                user_id=user_id,
                purchase_id=purchase_id,
                status=PurchaseStatus.FAILED.value,
                reason=reason,
            )

    # ------------------------------------------------------------------
    # Subscription entitlement
    # ------------------------------------------------------------------

    def grant_via_subscription(self, user_id: str, video_id: str | None, image_id: str) -> PurchaseRecord:
        """
        Запись для истории, когда доступ дала подписка: completed, amount=0, expiry_date=NULL.
        Доступ по ней определяется end_date подписки, не окном покупки. Одна запись на пару.
        """
        _require(user_id=user_id, image_id=image_id)
        now = self.clock()
        subscription = self.access.accounts.get_subscription(user_id)
        if subscription is None or not subscription.is_active(now):
            raise InvalidState("No active subscription")

        try:
            self._lock_pair(user_id, image_id)
            existing = (
                self.db.query(PurchaseRecord)
                .filter(
                    PurchaseRecord.user_id == user_id,
                    PurchaseRecord.image_id == image_id,
                    PurchaseRecord.payment_method == PaymentMethod.SUBSCRIPTION.value,
                    PurchaseRecord.status == PurchaseStatus.COMPLETED.value,
                )
                .first()
            )
            if existing is not None:
                self.db.commit()
                return existing

            record = PurchaseRecord(
                user_id=user_id,
                video_id=video_id,
                image_id=image_id,
                amount=Decimal("0"),
                currency=get_currency(),
                payment_method=PaymentMethod.SUBSCRIPTION.value,
                status=PurchaseStatus.COMPLETED.value,
                completed_at=now,
                expiry_date=None,
                created_at=now,
                updated_at=now,
            )
            self.db.add(record)
            self.db.flush()
            purchase_id = record.id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        purchases_completed_total.labels(method=PaymentMethod.SUBSCRIPTION.value).inc()
        logger.info(
            "purchase_subscription_entitlement",
            extra={"user_id": user_id, "image_id": image_id, "purchase_id": purchase_id},
        )
        self._notify(
            "purchase.subscription_entitlement",
            user_id=user_id,
            purchase_id=purchase_id,
            image_id=image_id,
            status=PurchaseStatus.COMPLETED.value,
        )
        return self.get(purchase_id)

    # ------------------------------------------------------------------
    # Refund (admin)
    # ------------------------------------------------------------------

    def refund(
        self,
        purchase_id: str,
        amount: Decimal | int | float | str | None = None,
        reason: str | None = None,
        admin_id: str | None = None,
    ) -> PurchaseRecord:
        """
        completed -> refunded; доступ пропадает сразу, независимо от expiry_date.
        amount=None - полный возврат. Проверяется только 0 <= amount <= оплачено.
        Raises RecordNotFound, NotCompleted, InvalidAmount.
        """
        record = self.get(purchase_id)
        if record is None:
            raise RecordNotFound(f"Purchase {purchase_id} not found")
        if record.status not in REFUNDABLE_STATUSES:
            raise NotCompleted(f"Purchase is {record.status}", record_id=record.id)

        refund_amount = _parse_amount(amount, default=record.amount)
        if refund_amount < 0 or refund_amount > record.amount:
            raise InvalidAmount(
                f"Refund amount must be between 0 and {record.amount}", record_id=record.id
            )

        now = self.clock()
        user_id = record.user_id
        try:
            result = self.db.execute(
                update(PurchaseRecord)
                .where(
                    PurchaseRecord.id == purchase_id,
                    PurchaseRecord.status.in_(REFUNDABLE_STATUSES),
                )
                .values(
                    status=PurchaseStatus.REFUNDED.value,
                    refund_amount=refund_amount,
                    refund_reason=reason,
                    refunded_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise NotCompleted("Purchase was changed concurrently", record_id=purchase_id)
            self.db.commit()
        except NotCompleted:
            raise
        except Exception:
            self.db.rollback()
            raise

        purchases_refunded_total.inc()
        logger.info(
            "purchase_refunded",
            extra={"purchase_id": purchase_id, "user_id": user_id, "reason": reason},
        )
        self._notify(
            "purchase.refunded",
            user_id=user_id,
            purchase_id=purchase_id,
            status=PurchaseStatus.REFUNDED.value,
            amount=refund_amount,
            reason=reason,
            admin_id=admin_id,
        )
        return self.get(purchase_id)

    # ------------------------------------------------------------------
    # Expiry sweep (отчётность)
    # ------------------------------------------------------------------

    def sweep_expired(self, batch_size: int | None = None) -> int:
        """
        completed разовые покупки с expiry_date <= now - grace -> expired, пачками.
        Условный UPDATE не трогает строки, которые в этот момент не completed, поэтому
        параллельный complete() не перезаписывается. Доступ от sweep не зависит.
        """
        batch = batch_size or get_sweep_batch_size()
        cutoff = self.clock() - get_sweep_grace()
        total = 0
        while True:
            ids = [
                row.id
                for row in self.db.query(PurchaseRecord.id)
                .filter(
                    PurchaseRecord.status == PurchaseStatus.COMPLETED.value,
                    PurchaseRecord.payment_method == PaymentMethod.GATEWAY.value,
                    PurchaseRecord.expiry_date <= cutoff,
                )
                .limit(batch)
                .all()
            ]
            if not ids:
                break
            try:
                result = self.db.execute(
                    update(PurchaseRecord)
                    .where(
                        PurchaseRecord.id.in_(ids),
                        PurchaseRecord.status == PurchaseStatus.COMPLETED.value,
                        PurchaseRecord.expiry_date <= cutoff,
                    )
                    .values(status=PurchaseStatus.EXPIRED.value)
                    .execution_options(synchronize_session=False)
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            total += result.rowcount
            if len(ids) < batch:
                break

        if total:
            purchases_expired_swept_total.inc(total)
        logger.info("purchase_expired_swept", extra={"count": total})
        return total

    # ------------------------------------------------------------------
    # History / stats
    # ------------------------------------------------------------------

    def history(
        self, user_id: str, status: str | None = None, limit: int = 20, offset: int = 0
    ) -> list[dict[str, Any]]:
        q = self.db.query(PurchaseRecord).filter(PurchaseRecord.user_id == user_id)
        if status:
            q = q.filter(PurchaseRecord.status == status)
        rows = q.order_by(PurchaseRecord.created_at.desc()).offset(offset).limit(limit).all()
        now = self.clock()
        return [self.serialize(r, now) for r in rows]

    def stats(self) -> dict[str, Any]:
        """Счётчики по статусам + производные active/expired для completed."""
        now = self.clock()
        by_status = {
            status: count
            for status, count in self.db.query(PurchaseRecord.status, func.count(PurchaseRecord.id))
            .group_by(PurchaseRecord.status)
            .all()
        }
        active = (
            self.db.query(func.count(PurchaseRecord.id))
            .filter(
                PurchaseRecord.status == PurchaseStatus.COMPLETED.value,
                PurchaseRecord.expiry_date > now,
            )
            .scalar()
            or 0
        )
        lapsed = (
            self.db.query(func.count(PurchaseRecord.id))
            .filter(
                PurchaseRecord.status == PurchaseStatus.COMPLETED.value,
                PurchaseRecord.expiry_date <= now,
            )
            .scalar()
            or 0
        )
        revenue = (
            self.db.query(func.coalesce(func.sum(PurchaseRecord.amount), 0))
            .filter(PurchaseRecord.status.in_(REFUNDABLE_STATUSES))
            .scalar()
            or 0
        )
        return {
            "by_status": {s.value: by_status.get(s.value, 0) for s in PurchaseStatus},
            "active_grants": active,
            "expired_unswept": lapsed,
            "revenue": str(Decimal(str(revenue))),
            "currency": get_currency(),
        }

    @staticmethod
    def serialize(record: PurchaseRecord, now: datetime) -> dict[str, Any]:
        expired = record.is_expired(now)
        return {
            "purchase_id": record.id,
            "user_id": record.user_id,
            "video_id": record.video_id,
            "image_id": record.image_id,
            "amount": str(record.amount),
            "currency": record.currency,
            "payment_method": record.payment_method,
            "status": record.status,
            "order_ref": record.gateway_order_ref,
            "access_granted": record.access_granted(now),
            "is_expired": expired,
            "can_buy_again": expired or record.status in (
                PurchaseStatus.FAILED.value,
                PurchaseStatus.REFUNDED.value,
            ),
            "expires_at": as_utc(record.expiry_date),
            "completed_at": as_utc(record.completed_at),
            "created_at": as_utc(record.created_at),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_pair(self, user_id: str, image_id: str) -> PurchaseLock:
        """Вставить строку-замок, если её нет (ON CONFLICT DO NOTHING), и взять FOR UPDATE."""
        dialect = self.db.get_bind().dialect.name
        values = {"user_id": user_id, "image_id": image_id, "created_at": self.clock()}
        if dialect == "postgresql":
            stmt = pg_insert(PurchaseLock).values(**values).on_conflict_do_nothing()
            self.db.execute(stmt)
        elif dialect == "sqlite":
            stmt = sqlite_insert(PurchaseLock).values(**values).on_conflict_do_nothing()
            self.db.execute(stmt)
        elif self.db.get(PurchaseLock, (user_id, image_id)) is None:
            self.db.add(PurchaseLock(**values))
            self.db.flush()
        return (
            self.db.query(PurchaseLock)
            .filter(PurchaseLock.user_id == user_id, PurchaseLock.image_id == image_id)
            .with_for_update()
            .one()
        )

    def _transition(
        self,
        purchase_id: str,
        expected: PurchaseStatus,
        target: PurchaseStatus,
        now: datetime,
        **values: Any,
    ) -> bool:
        """Условный UPDATE: переход только если текущий статус == expected. Без commit."""
        result = self.db.execute(
            update(PurchaseRecord)
            .where(PurchaseRecord.id == purchase_id, PurchaseRecord.status == expected.value)
            .values(status=target.value, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def _notify(self, event_type: str, *, user_id: str, purchase_id: str, **fields: Any) -> None:
        try:
            self.audit.emit(build_event(event_type, user_id=user_id, purchase_id=purchase_id, **fields))
        except Exception:
            logger.exception("audit_emit_failed", extra={"event": event_type, "purchase_id": purchase_id})


def _require(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value or not str(value).strip()]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")


def _parse_amount(value: Any, default: Decimal) -> Decimal:
    if value is None:
        return Decimal(str(default))
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if not result.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}")
    return result
