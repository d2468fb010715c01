"""Tests for PurchaseLedger: initiate/complete lifecycle, idempotency, refunds, sweep, subscriptions."""
from datetime import timedelta
from decimal import Decimal

import pytest

from app.models.purchase import PaymentMethod, PurchaseRecord, PurchaseStatus
from app.paywall.errors import (
    AccessDenied,
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
from app.paywall.models import AccessReason


def _sign(order_ref, payment_ref):
    """Подпись, которую принимает FakeGateway из conftest."""
    return f"sig:{order_ref}|{payment_ref}"


def _buy(ledger, user_id, image_id, payment_ref="pay_1"):
    started = ledger.initiate(user_id, image_id)
    done = ledger.complete(started.order_ref, payment_ref, _sign(started.order_ref, payment_ref))
    return started, done


class TestInitiate:
    def test_creates_pending_record_and_gateway_order(self, ledger, gateway, image, db):
        result = ledger.initiate("u1", image.id)

        assert result.order_ref == "order_1"
        assert result.amount == Decimal("10")
        assert result.currency == "INR"
        assert result.reused is False
        assert gateway.orders[0].amount_minor == 1000

        record = ledger.get(result.purchase_id)
        assert record.status == PurchaseStatus.PENDING.value
        assert record.payment_method == PaymentMethod.GATEWAY.value
        assert record.gateway_order_ref == "order_1"
        assert record.expiry_date is None

    def test_default_price_when_catalog_has_none(self, ledger, catalog, gateway):
        free = catalog.create(kind="image", storage_key="images/x.png")
        result = ledger.initiate("u1", free.id)
        assert result.amount == Decimal("10")
        assert gateway.orders[0].amount_minor == 1000

    def test_video_resolves_to_gated_image(self, ledger, image, video):
        result = ledger.initiate("u1", video.id)
        record = ledger.get(result.purchase_id)
        assert record.image_id == image.id
        assert record.video_id == video.id

    def test_image_purchase_records_owning_video(self, ledger, image, video):
        result = ledger.initiate("u1", image.id)
        assert ledger.get(result.purchase_id).video_id == video.id

    def test_video_without_image_is_not_found(self, ledger, catalog):
        orphan = catalog.create(kind="video", storage_key="videos/orphan.mp4")
        with pytest.raises(AssetNotFound):
            ledger.initiate("u1", orphan.id)

    def test_unknown_asset(self, ledger):
        with pytest.raises(AssetNotFound):
            ledger.initiate("u1", "missing")

    @pytest.mark.parametrize("user_id,asset_id", [("", "img"), ("u1", ""), ("  ", "img")])
    def test_blank_identifiers(self, ledger, user_id, asset_id):
        with pytest.raises(ValidationFailed):
            ledger.initiate(user_id, asset_id)

    def test_gateway_down_leaves_no_record(self, ledger, gateway, image, db):
        gateway.create_unavailable = True
        with pytest.raises(GatewayUnavailable):
            ledger.initiate("u1", image.id)
        assert db.query(PurchaseRecord).count() == 0

    def test_fresh_pending_is_reused(self, ledger, gateway, image, clock):
        first = ledger.initiate("u1", image.id)
        clock.advance(60)
        second = ledger.initiate("u1", image.id)

        assert second.reused is True
        assert second.purchase_id == first.purchase_id
        assert second.order_ref == first.order_ref
        assert second.order == first.order
        assert len(gateway.orders) == 1

    def test_stale_pending_is_abandoned(self, ledger, gateway, image, clock, audit):
        first = ledger.initiate("u1", image.id)
        clock.advance(901)
        second = ledger.initiate("u1", image.id)

        assert second.reused is False
        assert second.purchase_id != first.purchase_id
        stale = ledger.get(first.purchase_id)
        assert stale.status == PurchaseStatus.FAILED.value
        assert stale.failure_reason == "abandoned"
        assert len(gateway.orders) == 2

        failed = [e for e in audit.events if e["type"] == "purchase.failed"]
        assert len(failed) == 1
        assert failed[0]["purchase_id"] == first.purchase_id
        assert failed[0]["reason"] == "abandoned"
        assert failed[0]["status"] == PurchaseStatus.FAILED.value

    def test_abandon_is_not_audited_when_new_order_fails(self, ledger, gateway, image, clock, audit):
        first = ledger.initiate("u1", image.id)
        clock.advance(901)
        gateway.create_unavailable = True
        with pytest.raises(GatewayUnavailable):
            ledger.initiate("u1", image.id)

        assert ledger.get(first.purchase_id).status == PurchaseStatus.PENDING.value
        assert "purchase.failed" not in audit.types

    def test_already_granted_returns_existing_record(self, ledger, image):
        started, _ = _buy(ledger, "u1", image.id)
        with pytest.raises(AlreadyGranted) as exc:
            ledger.initiate("u1", image.id)
        assert exc.value.record_id == started.purchase_id

    def test_rebuy_after_expiry(self, ledger, image, clock):
        _buy(ledger, "u1", image.id)
        clock.advance(301)
        again = ledger.initiate("u1", image.id)
        assert again.reused is False


class TestComplete:
    def test_window_end_to_end(self, ledger, access, image, clock, audit):
        t0 = clock()
        started, done = _buy(ledger, "u1", image.id)

        assert done.expires_at == t0 + timedelta(seconds=300)
        assert "purchase.completed" in audit.types

        clock.set(t0 + timedelta(seconds=299))
        decision = access.has_access("u1", image.id)
        assert decision.granted is True
        assert decision.reason == AccessReason.ONE_TIME_PURCHASE
        assert decision.purchase_id == started.purchase_id

        clock.set(t0 + timedelta(seconds=300))
        decision = access.has_access("u1", image.id)
        assert decision.granted is False
        assert decision.reason == AccessReason.EXPIRED

        # ledger не переразмечается при чтении
        assert ledger.get(started.purchase_id).status == PurchaseStatus.COMPLETED.value

    def test_other_user_has_no_access(self, ledger, access, image):
        _buy(ledger, "u1", image.id)
        decision = access.has_access("u2", image.id)
        assert decision.granted is False
        assert decision.reason == AccessReason.NO_ACTIVE_GRANT

    def test_replay_is_idempotent(self, ledger, image, clock):
        started, done = _buy(ledger, "u1", image.id)
        clock.advance(10)
        again = ledger.complete(started.order_ref, "pay_1", _sign(started.order_ref, "pay_1"))

        assert again == done
        assert again.model_dump() == done.model_dump()

    def test_different_payment_on_completed_order(self, ledger, image):
        started, _ = _buy(ledger, "u1", image.id)
        with pytest.raises(InvalidState):
            ledger.complete(started.order_ref, "pay_2", _sign(started.order_ref, "pay_2"))

    def test_same_payment_cannot_complete_two_orders(self, ledger, catalog, image):
        other_image = catalog.create(kind="image", storage_key="images/other.png", price=Decimal("5"))
        first = ledger.initiate("u1", image.id)
        second = ledger.initiate("u1", other_image.id)
        ledger.complete(first.order_ref, "pay_1", _sign(first.order_ref, "pay_1"))

        with pytest.raises(DuplicatePayment) as exc:
            ledger.complete(second.order_ref, "pay_1", _sign(second.order_ref, "pay_1"))
        assert exc.value.record_id == first.purchase_id
        assert ledger.get(second.purchase_id).status == PurchaseStatus.PENDING.value

    def test_bad_signature_fails_record(self, ledger, image, audit):
        started = ledger.initiate("u1", image.id)
        with pytest.raises(VerificationFailed):
            ledger.complete(started.order_ref, "pay_1", "forged")

        record = ledger.get(started.purchase_id)
        assert record.status == PurchaseStatus.FAILED.value
        assert record.failure_reason == "verification_failed"
        assert "purchase.failed" in audit.types

    def test_complete_after_failure_is_invalid_state(self, ledger, image):
        started = ledger.initiate("u1", image.id)
        with pytest.raises(VerificationFailed):
            ledger.complete(started.order_ref, "pay_1", "forged")
        with pytest.raises(InvalidState):
            ledger.complete(started.order_ref, "pay_1", _sign(started.order_ref, "pay_1"))

    def test_gateway_unavailable_during_verify(self, ledger, gateway, image):
        started = ledger.initiate("u1", image.id)
        gateway.verify_unavailable = True
        with pytest.raises(GatewayUnavailable):
            ledger.complete(started.order_ref, "pay_1", "whatever")
        assert ledger.get(started.purchase_id).failure_reason == "gateway_unavailable"

    def test_unknown_order(self, ledger):
        with pytest.raises(RecordNotFound):
            ledger.complete("order_x", "pay_1", "sig")

    def test_missing_signature(self, ledger, image):
        started = ledger.initiate("u1", image.id)
        with pytest.raises(ValidationFailed):
            ledger.complete(started.order_ref, "pay_1", "")


class TestWebhookCompletion:
    def test_webhook_then_client_confirmation(self, ledger, image):
        started = ledger.initiate("u1", image.id)
        done = ledger.complete_from_webhook(started.order_ref, "pay_1")

        again = ledger.complete(started.order_ref, "pay_1", _sign(started.order_ref, "pay_1"))
        assert again == done

    def test_webhook_replay(self, ledger, image):
        started = ledger.initiate("u1", image.id)
        done = ledger.complete_from_webhook(started.order_ref, "pay_1")
        assert ledger.complete_from_webhook(started.order_ref, "pay_1") == done

    def test_webhook_capture_for_abandoned_attempt(self, ledger, image, clock):
        first = ledger.initiate("u1", image.id)
        clock.advance(901)
        ledger.initiate("u1", image.id)
        with pytest.raises(InvalidState):
            ledger.complete_from_webhook(first.order_ref, "pay_late")

    def test_fail_order(self, ledger, image):
        started = ledger.initiate("u1", image.id)
        record = ledger.fail_order(started.order_ref, reason="gateway_reported")
        assert record.status == PurchaseStatus.FAILED.value
        assert ledger.fail_order("order_unknown") is None

    def test_fail_order_does_not_touch_completed(self, ledger, image):
        started, _ = _buy(ledger, "u1", image.id)
        ledger.fail_order(started.order_ref)
        assert ledger.get(started.purchase_id).status == PurchaseStatus.COMPLETED.value


class TestRefund:
    def test_full_refund_revokes_access(self, ledger, access, image, audit):
        started, _ = _buy(ledger, "u1", image.id)
        record = ledger.refund(started.purchase_id, reason="chargeback", admin_id="admin")

        assert record.status == PurchaseStatus.REFUNDED.value
        assert record.refund_amount == Decimal("10")
        assert record.refund_reason == "chargeback"
        decision = access.has_access("u1", image.id)
        assert decision.granted is False
        assert decision.reason == AccessReason.NO_ACTIVE_GRANT
        assert audit.events[-1]["admin_id"] == "admin"

    def test_partial_refund(self, ledger, image):
        started, _ = _buy(ledger, "u1", image.id)
        record = ledger.refund(started.purchase_id, amount="2.50")
        assert record.refund_amount == Decimal("2.50")

    def test_refund_of_swept_record(self, ledger, image, clock):
        started, _ = _buy(ledger, "u1", image.id)
        clock.advance(400)
        ledger.sweep_expired()
        assert ledger.refund(started.purchase_id).status == PurchaseStatus.REFUNDED.value

    def test_refund_more_than_paid(self, ledger, image):
        started, _ = _buy(ledger, "u1", image.id)
        with pytest.raises(InvalidAmount):
            ledger.refund(started.purchase_id, amount="10.01")

    def test_refund_negative_or_garbage(self, ledger, image):
        started, _ = _buy(ledger, "u1", image.id)
        with pytest.raises(InvalidAmount):
            ledger.refund(started.purchase_id, amount=-1)
        with pytest.raises(InvalidAmount):
            ledger.refund(started.purchase_id, amount="ten")
        for value in ("NaN", "Infinity", "-Infinity", "sNaN"):
            with pytest.raises(InvalidAmount):
                ledger.refund(started.purchase_id, amount=value)
        assert ledger.get(started.purchase_id).status == PurchaseStatus.COMPLETED.value

    def test_refund_pending(self, ledger, image):
        started = ledger.initiate("u1", image.id)
        with pytest.raises(NotCompleted):
            ledger.refund(started.purchase_id)

    def test_refund_twice(self, ledger, image):
        started, _ = _buy(ledger, "u1", image.id)
        ledger.refund(started.purchase_id)
        with pytest.raises(NotCompleted):
            ledger.refund(started.purchase_id)

    def test_refund_unknown(self, ledger):
        with pytest.raises(RecordNotFound):
            ledger.refund("missing")


class TestSubscription:
    def test_subscription_overrides_ledger(self, ledger, access, subscriptions, image, clock):
        subscriptions.activate("u1", plan="monthly")
        decision = access.has_access("u1", image.id)
        assert decision.granted is True
        assert decision.reason == AccessReason.SUBSCRIPTION

        with pytest.raises(AlreadyGranted):
            ledger.initiate("u1", image.id)

    def test_subscription_end_falls_back_to_ledger(self, ledger, access, subscriptions, image, clock):
        _buy(ledger, "u1", image.id)
        subscriptions.activate("u1", end_date=clock() + timedelta(seconds=10))
        clock.advance(20)
        decision = access.has_access("u1", image.id)
        assert decision.reason == AccessReason.ONE_TIME_PURCHASE

    def test_grant_via_subscription(self, ledger, subscriptions, image, video, audit):
        subscriptions.activate("u1")
        record = ledger.grant_via_subscription("u1", video.id, image.id)

        assert record.payment_method == PaymentMethod.SUBSCRIPTION.value
        assert record.status == PurchaseStatus.COMPLETED.value
        assert record.amount == Decimal("0")
        assert record.expiry_date is None
        assert "purchase.subscription_entitlement" in audit.types

        again = ledger.grant_via_subscription("u1", video.id, image.id)
        assert again.id == record.id

    def test_grant_via_subscription_requires_active(self, ledger, image):
        with pytest.raises(InvalidState):
            ledger.grant_via_subscription("u1", None, image.id)

    def test_entitlement_does_not_outlive_subscription(self, ledger, access, subscriptions, image, clock):
        subscriptions.activate("u1", end_date=clock() + timedelta(seconds=10))
        ledger.grant_via_subscription("u1", None, image.id)
        clock.advance(11)
        assert access.has_access("u1", image.id).granted is False


class TestSignedUrl:
    def test_one_time_purchase_url(self, ledger, access, image):
        _, done = _buy(ledger, "u1", image.id)
        signed = access.get_signed_access_url("u1", image.id)
        assert signed.url.startswith("https://r2.test/gated/images/cover.png?")
        assert "X-Amz-Signature=" in signed.url
        assert "X-Amz-Expires=300" in signed.url
        assert signed.reason == AccessReason.ONE_TIME_PURCHASE
        assert signed.expires_at == done.expires_at

    def test_denied_carries_reason(self, access, image):
        with pytest.raises(AccessDenied) as exc:
            access.get_signed_access_url("u1", image.id)
        assert exc.value.reason == "NoActiveGrant"

    def test_subscriber_url(self, access, subscriptions, image):
        subscriptions.activate("u1")
        signed = access.get_signed_access_url("u1", image.id)
        assert signed.reason == AccessReason.SUBSCRIPTION
        assert "X-Amz-Expires=3600" in signed.url

    def test_url_lifetime_follows_injected_clock(self, ledger, access, image, clock):
        _buy(ledger, "u1", image.id)
        clock.advance(200)
        assert "X-Amz-Expires=100" in access.get_signed_access_url("u1", image.id).url

    def test_summary(self, ledger, access, image, clock):
        _buy(ledger, "u1", image.id)
        clock.advance(100)
        summary = access.access_summary("u1")
        assert summary["has_active_subscription"] is False
        assert len(summary["active_purchases"]) == 1
        assert summary["active_purchases"][0]["seconds_remaining"] == 200


class TestSweepAndReporting:
    def test_sweep_relabels_only_lapsed(self, ledger, catalog, image, clock):
        other = catalog.create(kind="image", storage_key="images/other.png")
        old, _ = _buy(ledger, "u1", image.id)
        clock.advance(200)
        fresh, _ = _buy(ledger, "u1", other.id, payment_ref="pay_2")
        clock.advance(150)

        assert ledger.sweep_expired() == 1
        assert ledger.get(old.purchase_id).status == PurchaseStatus.EXPIRED.value
        assert ledger.get(fresh.purchase_id).status == PurchaseStatus.COMPLETED.value
        assert ledger.sweep_expired() == 0

    def test_sweep_in_batches(self, ledger, catalog, clock):
        for n in range(5):
            img = catalog.create(kind="image", storage_key=f"images/{n}.png")
            _buy(ledger, "u1", img.id, payment_ref=f"pay_{n}")
        clock.advance(301)
        assert ledger.sweep_expired(batch_size=2) == 5

    def test_swept_record_still_reports_expired(self, ledger, access, image, clock):
        _buy(ledger, "u1", image.id)
        clock.advance(301)
        ledger.sweep_expired()
        assert access.has_access("u1", image.id).reason == AccessReason.EXPIRED

    def test_history_flags(self, ledger, image, clock):
        _buy(ledger, "u1", image.id)
        rows = ledger.history("u1")
        assert rows[0]["access_granted"] is True
        assert rows[0]["can_buy_again"] is False

        clock.advance(301)
        rows = ledger.history("u1")
        assert rows[0]["is_expired"] is True
        assert rows[0]["can_buy_again"] is True

    def test_stats(self, ledger, image):
        _buy(ledger, "u1", image.id)
        stats = ledger.stats()
        assert stats["by_status"]["completed"] == 1
        assert stats["active_grants"] == 1
        assert Decimal(stats["revenue"]) == Decimal("10")
