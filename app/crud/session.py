from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.models.session import AuthSession


def create_session(
    db: Session,
    account_id: int,
    refresh_token: str,
    expires_at: datetime,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    commit: bool = True,
) -> AuthSession:
    record = AuthSession(
        account_id=account_id,
        refresh_token=refresh_token,
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(record)
    db.flush()
    if commit:
        db.commit()
        db.refresh(record)
    return record


def get_session_by_token(db: Session, refresh_token: str) -> Optional[AuthSession]:
    return db.query(AuthSession).filter(AuthSession.refresh_token == refresh_token).first()


def get_sessions_by_account(db: Session, account_id: int) -> List[AuthSession]:
    return (
        db.query(AuthSession)
        .filter(AuthSession.account_id == account_id)
        .order_by(AuthSession.created_at.desc())
        .all()
    )


def delete_session(db: Session, refresh_token: str, commit: bool = True) -> bool:
    result = db.execute(
        delete(AuthSession)
        .where(AuthSession.refresh_token == refresh_token)
        .execution_options(synchronize_session="fetch")
    )
    if commit:
        db.commit()
    return result.rowcount > 0


def delete_sessions_by_account(db: Session, account_id: int, commit: bool = True) -> int:
    result = db.execute(
        delete(AuthSession)
        .where(AuthSession.account_id == account_id)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount


def delete_expired_sessions(db: Session, now: datetime) -> int:
    result = db.execute(
        delete(AuthSession)
        .where(AuthSession.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
