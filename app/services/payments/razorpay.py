"""
Razorpay adapter для PurchaseLedger: createOrder через REST API (httpx sync),
verify и подписи вебхуков - через razorpay SDK (utility.verify_*_signature).

Все сетевые вызовы с таймаутом и через circuit breaker; транспортные ошибки, 5xx и открытый
breaker превращаются в GatewayUnavailable. Повторов внутри нет.
"""
import logging
import time
from typing import Any

import httpx
import pybreaker
import razorpay

from app.core.config import settings
from app.paywall.errors import GatewayUnavailable
from app.paywall.models import GatewayOrder
from app.paywall.ports import PaymentGateway
from app.services.circuit_breaker import get_circuit_breaker
from app.utils.metrics import (
    payment_gateway_request_duration_seconds,
    payment_gateway_requests_total,
)

logger = logging.getLogger(__name__)


class RazorpayGateway(PaymentGateway):
    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
        sdk: razorpay.Client | None = None,
    ) -> None:
        self._key_id = key_id if key_id is not None else settings.razorpay_key_id
        self._key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self._webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.razorpay_webhook_secret
        )
        self._api_base = (api_base or settings.razorpay_api_base).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.payment_gateway_timeout
        self._client = client
        self._breaker = breaker
        self._sdk = sdk

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    @property
    def sdk(self) -> razorpay.Client:
        """Клиент razorpay SDK с теми же ключами; нужен только для проверки подписей."""
        if self._sdk is None:
            self._sdk = razorpay.Client(auth=(self._key_id, self._key_secret))
        return self._sdk

    @property
    def breaker(self) -> pybreaker.CircuitBreaker:
        if self._breaker is None:
            self._breaker = get_circuit_breaker("payment_gateway")
        return self._breaker

    @property
    def enabled(self) -> bool:
        return bool(self._key_id and self._key_secret)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _record_request(self, operation: str, status: str, duration: float) -> None:
        payment_gateway_requests_total.labels(operation=operation, status=status).inc()
        payment_gateway_request_duration_seconds.labels(operation=operation).observe(duration)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(self, amount_minor: int, currency: str, receipt: str | None = None) -> GatewayOrder:
        if not self.enabled:
            raise GatewayUnavailable("Payment gateway is not configured")
        body = {
            "amount": int(amount_minor),
            "currency": currency,
            "receipt": receipt or f"rec_{str(int(time.time()))[-8:]}",
            "payment_capture": 1,
        }
        start = time.time()
        try:
            data = self.breaker.call(self._post, "/orders", body)
        except pybreaker.CircuitBreakerError:
            self._record_request("create_order", "circuit_open", time.time() - start)
            raise GatewayUnavailable("Payment gateway circuit is open")
        except httpx.HTTPStatusError as e:
            self._record_request("create_order", f"http_{e.response.status_code}", time.time() - start)
            logger.warning(
                "gateway_order_rejected",
                extra={"status_code": e.response.status_code, "error": e.response.text[:300]},
            )
            raise GatewayUnavailable(f"Gateway rejected order: HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            self._record_request("create_order", "error", time.time() - start)
            logger.warning("gateway_order_transport_error", extra={"error": str(e)})
            raise GatewayUnavailable(f"Gateway request failed: {type(e).__name__}")

        self._record_request("create_order", "success", time.time() - start)
        order_ref = data.get("id")
        if not order_ref:
            raise GatewayUnavailable("Gateway response has no order id")
        return GatewayOrder(
            order_ref=order_ref,
            amount_minor=int(data.get("amount", amount_minor)),
            currency=data.get("currency", currency),
            raw={**data, "key_id": self._key_id},
        )

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = self.client.post(
            f"{self._api_base}{path}",
            json=body,
            auth=(self._key_id, self._key_secret),
            timeout=self._timeout,
        )
        resp.raise_for_status()
        return resp.json()

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def verify(self, order_ref: str, payment_ref: str, signature: str) -> bool:
        if not self._key_secret:
            raise GatewayUnavailable("Payment gateway is not configured")
        if not signature:
            return False
        try:
            self.sdk.utility.verify_payment_signature({
                "razorpay_order_id": order_ref,
                "razorpay_payment_id": payment_ref,
                "razorpay_signature": signature,
            })
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        """Подпись тела вебхука ключом webhook_secret через SDK (HMAC-SHA256, сравнение за константное время)."""
        if not self._webhook_secret:
            logger.error("webhook_secret_not_configured")
            return False
        if not signature:
            return False
        try:
            payload = body.decode("utf-8")
        except UnicodeDecodeError:
            return False
        try:
            self.sdk.utility.verify_webhook_signature(payload, signature, self._webhook_secret)
        except razorpay.errors.SignatureVerificationError:
            return False
        return True
