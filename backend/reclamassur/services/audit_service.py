"""
Audit trails: admin actions and document access.
Writers add rows to the session; the caller commits with its own change.
"""
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..models.db_models import ActivityLogDB, AdminAuditLogDB, ProfileDB

AUDIT_LOG_LIMIT = 100


def log_admin_action(
    db: Session,
    admin_user_id: str,
    action: str,
    target_user_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> AdminAuditLogDB:
    entry = AdminAuditLogDB(
        id=str(uuid4()),
        admin_user_id=admin_user_id,
        target_user_id=target_user_id,
        action=action,
        details=details or {},
    )
    db.add(entry)
    return entry


def log_document_activity(
    db: Session,
    user_id: str,
    action: str,
    dossier_id: Optional[str] = None,
    document_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ActivityLogDB:
    entry = ActivityLogDB(
        id=str(uuid4()),
        user_id=user_id,
        action=action,
        dossier_id=dossier_id,
        document_id=document_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    return entry


def list_admin_audit_log(db: Session, limit: int = AUDIT_LOG_LIMIT) -> List[dict]:
    """Newest admin actions with admin and target emails."""
    entries = db.query(AdminAuditLogDB).order_by(AdminAuditLogDB.created_at.desc()).limit(limit).all()
    profile_ids = {e.admin_user_id for e in entries} | {e.target_user_id for e in entries if e.target_user_id}
    emails = {
        p.id: p.email
        for p in db.query(ProfileDB).filter(ProfileDB.id.in_(profile_ids)).all()
    } if profile_ids else {}

    return [
        {
            "id": e.id,
            "action": e.action,
            "admin_user_id": e.admin_user_id,
            "admin_email": emails.get(e.admin_user_id),
            "target_user_id": e.target_user_id,
            "target_email": emails.get(e.target_user_id),
            "details": e.details or {},
            "created_at": e.created_at.isoformat() if e.created_at else None,
        }
        for e in entries
    ]


def list_activity_logs(
    db: Session,
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    dossier_id: Optional[str] = None,
    limit: int = AUDIT_LOG_LIMIT,
) -> List[ActivityLogDB]:
    query = db.query(ActivityLogDB)
    if action:
        query = query.filter(ActivityLogDB.action == action)
    if user_id:
        query = query.filter(ActivityLogDB.user_id == user_id)
    if dossier_id:
        query = query.filter(ActivityLogDB.dossier_id == dossier_id)
    return query.order_by(ActivityLogDB.created_at.desc()).limit(limit).all()
