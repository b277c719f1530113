from sqlalchemy.orm import Session

from orgauth.models.audit_log import AuditLog

def audit(db: Session, actor_id, actor_role, entity_type: str, entity_id: str, action: str, data: dict):
    row = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        data=data or {},
    )
    db.add(row)
