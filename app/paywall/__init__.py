"""
Движок платного доступа к закрытым картинкам (внутренняя библиотека).
Decision (access) и mutation (ledger) разделены: решение никогда не пишет в журнал.
"""
from app.paywall.access import AccessDecisionService, decide_access
from app.paywall.audit import CeleryAuditSink, NullAuditSink
from app.paywall.errors import (
    AccessDenied,
    AlreadyGranted,
    AssetNotFound,
    DuplicatePayment,
    GatewayUnavailable,
    InvalidAmount,
    InvalidState,
    NotCompleted,
    PaywallError,
    RecordNotFound,
    ValidationFailed,
    VerificationFailed,
)
from app.paywall.ledger import PurchaseLedger
from app.paywall.models import (
    AccessDecision,
    AccessReason,
    AssetInfo,
    CompleteResult,
    GatewayOrder,
    InitiateResult,
    SignedAccess,
    SubscriptionSnapshot,
)

__all__ = [
    "AccessDecision",
    "AccessDecisionService",
    "AccessDenied",
    "AccessReason",
    "AlreadyGranted",
    "AssetInfo",
    "AssetNotFound",
    "CeleryAuditSink",
    "CompleteResult",
    "DuplicatePayment",
    "GatewayOrder",
    "GatewayUnavailable",
    "InitiateResult",
    "InvalidAmount",
    "InvalidState",
    "NotCompleted",
    "NullAuditSink",
    "PaywallError",
    "PurchaseLedger",
    "RecordNotFound",
    "SignedAccess",
    "SubscriptionSnapshot",
    "ValidationFailed",
    "VerificationFailed",
    "decide_access",
]
