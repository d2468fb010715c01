"""
Ошибки движка доступа. code - стабильная строка для API; record_id - id уже существующей записи
при конфликте, чтобы клиент мог опросить её, а не повторять вслепую.
"""
from __future__ import annotations


class PaywallError(Exception):
    code = "paywall_error"

    def __init__(self, message: str = "", *, record_id: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.record_id = record_id

    def as_dict(self) -> dict[str, str | None]:
        return {"error": self.code, "message": self.message, "record_id": self.record_id}


# ----- validation -----


class ValidationFailed(PaywallError):
    code = "ValidationFailed"


class AssetNotFound(PaywallError):
    code = "AssetNotFound"


class RecordNotFound(PaywallError):
    code = "RecordNotFound"


class InvalidAmount(PaywallError):
    code = "InvalidAmount"


# ----- conflicts -----


class AlreadyGranted(PaywallError):
    code = "AlreadyGranted"


class InvalidState(PaywallError):
    code = "InvalidState"


class DuplicatePayment(PaywallError):
    code = "DuplicatePayment"


class NotCompleted(PaywallError):
    code = "NotCompleted"


# ----- external dependency -----


class VerificationFailed(PaywallError):
    code = "VerificationFailed"


class GatewayUnavailable(PaywallError):
    code = "GatewayUnavailable"


# ----- authorization (ожидаемый исход, не сбой) -----


class AccessDenied(PaywallError):
    code = "AccessDenied"

    def __init__(self, reason: str, *, record_id: str | None = None) -> None:
        super().__init__(f"Access denied: {reason}", record_id=record_id)
        self.reason = reason
