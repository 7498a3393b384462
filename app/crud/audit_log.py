from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


def create_audit_log(
    db: Session,
    action: str,
    outcome: str,
    account_id: Optional[int] = None,
    detail: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditLog:
    record = AuditLog(
        account_id=account_id,
        action=action,
        outcome=outcome,
        detail=detail or None,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def get_audit_logs(
    db: Session,
    account_id: Optional[int] = None,
    action: Optional[str] = None,
    outcome: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[AuditLog]:
    """Newest-first audit entries for admin review and test assertions."""
    query = db.query(AuditLog)
    if account_id is not None:
        query = query.filter(AuditLog.account_id == account_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if outcome:
        query = query.filter(AuditLog.outcome == outcome)
    return query.order_by(AuditLog.id.desc()).offset(skip).limit(limit).all()
