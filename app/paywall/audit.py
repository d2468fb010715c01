"""
Аудит переходов ledger: emit() пишет событие в лог и ставит задачу записи AuditLog в очередь.
Fire-and-forget: любая ошибка доставки логируется и глотается, запись ledger не откатывается.
"""
from __future__ import annotations

import logging
from typing import Any

from app.paywall.ports import AuditSink

logger = logging.getLogger(__name__)


class CeleryAuditSink(AuditSink):
    def emit(self, event: dict[str, Any]) -> None:
        logger.info(
            "paywall_transition",
            extra={
                "event": event.get("type"),
                "user_id": event.get("user_id"),
                "purchase_id": event.get("purchase_id"),
                "status": event.get("status"),
            },
        )
        try:
            from app.workers.tasks.audit import record_audit_event

            record_audit_event.delay(event)
        except Exception:
            logger.exception(
                "audit_emit_failed",
                extra={"event": event.get("type"), "purchase_id": event.get("purchase_id")},
            )


class NullAuditSink(AuditSink):
    """Для скриптов и тестов, где аудит не нужен."""

    def emit(self, event: dict[str, Any]) -> None:
        return None


def build_event(event_type: str, *, user_id: str, purchase_id: str, **fields: Any) -> dict[str, Any]:
    """Событие сериализуемо в JSON (Celery json serializer)."""
    payload: dict[str, Any] = {"type": event_type, "user_id": user_id, "purchase_id": purchase_id}
    for key, value in fields.items():
        if value is None:
            continue
        payload[key] = value.isoformat() if hasattr(value, "isoformat") else (
            str(value) if not isinstance(value, (str, int, float, bool)) else value
        )
    return payload
