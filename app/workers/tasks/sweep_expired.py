"""
Celery beat task: переразметка completed разовых покупок с истёкшим окном в expired.
Только отчётность - решение о доступе считается по expiry_date при каждом чтении.
"""
import logging

from sqlalchemy.exc import ProgrammingError

from app.core.celery_app import celery_app
from app.db.session import SessionLocal
from app.paywall.audit import NullAuditSink
from app.services.wiring import build_ledger

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.workers.tasks.sweep_expired.sweep_expired_purchases",
    time_limit=120,
    soft_time_limit=110,
)
def sweep_expired_purchases() -> dict:
    db = SessionLocal()
    try:
        ledger = build_ledger(db, audit=NullAuditSink())
        swept = ledger.sweep_expired()
        return {"ok": True, "swept": swept}
    except ProgrammingError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        if "does not exist" in msg or "UndefinedTable" in msg:
            db.rollback()
            return {"ok": True, "skipped": "table_not_found"}
        logger.exception("sweep_expired_error")
        db.rollback()
        return {"ok": False}
    except Exception:
        logger.exception("sweep_expired_error")
        db.rollback()
        return {"ok": False}
    finally:
        db.close()
