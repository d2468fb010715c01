"""PaywallError -> HTTP: код ошибки стабилен, статус по таксономии (validation/conflict/external/authz)."""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.paywall.errors import PaywallError

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "ValidationFailed": 400,
    "InvalidAmount": 400,
    "AssetNotFound": 404,
    "RecordNotFound": 404,
    "AlreadyGranted": 409,
    "InvalidState": 409,
    "DuplicatePayment": 409,
    "NotCompleted": 409,
    "VerificationFailed": 402,
    "GatewayUnavailable": 503,
    "AccessDenied": 403,
}


async def paywall_error_handler(request: Request, exc: PaywallError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, 400)
    if status_code >= 500:
        logger.warning("paywall_dependency_error", extra={"path": request.url.path, "error": exc.code})
    body = exc.as_dict()
    reason = getattr(exc, "reason", None)
    if reason:
        body["reason"] = reason
    return JSONResponse(status_code=status_code, content=body)
