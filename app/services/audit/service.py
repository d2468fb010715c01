from typing import Any

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


class AuditService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def log(
        self,
        actor_type: str,
        actor_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload or {},
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def log_purchase_event(self, event: dict[str, Any]) -> AuditLog:
        """Событие перехода ledger (см. app.paywall.audit.build_event)."""
        admin_id = event.get("admin_id")
        return self.log(
            actor_type="admin" if admin_id else "system",
            actor_id=admin_id or event.get("user_id"),
            action=event.get("type", "purchase.unknown"),
            entity_type="purchase",
            entity_id=event.get("purchase_id"),
            payload=event,
        )

    def list_for_entity(self, entity_type: str, entity_id: str, limit: int = 50) -> list[AuditLog]:
        return (
            self.db.query(AuditLog)
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
            .all()
        )
