import uuid, json
from datetime import datetime
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog

def log_audit(db: Session, actor_user_id: str, action: str, entity_type: str, entity_id: str, details: dict | None = None, at: datetime | None = None):
    entry = AuditLog(
        id=str(uuid.uuid4()),
        actor_user_id=actor_user_id or "system",
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details_json=json.dumps(details or {}, ensure_ascii=False, default=str),
    )
    if at is not None:
        entry.created_at = at
    db.add(entry)
    return entry

def list_audit(db: Session, entity_type: str, entity_id: str) -> list[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
        .order_by(AuditLog.created_at.asc())
        .all()
    )
