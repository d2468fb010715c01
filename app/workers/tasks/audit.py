"""
Celery task: запись события перехода ledger в audit_logs.
Вызывается только из CeleryAuditSink.emit (fire-and-forget).
"""
import logging

from app.core.celery_app import celery_app
from app.db.session import SessionLocal
from app.services.audit.service import AuditService

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.workers.tasks.audit.record_audit_event",
    ignore_result=True,
    time_limit=30,
)
def record_audit_event(event: dict) -> None:
    db = SessionLocal()
    try:
        AuditService(db).log_purchase_event(event)
    except Exception:
        db.rollback()
        logger.exception(
            "audit_record_error",
            extra={"event": event.get("type"), "purchase_id": event.get("purchase_id")},
        )
    finally:
        db.close()
