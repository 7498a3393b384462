from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crud.session import (
    create_session,
    delete_expired_sessions,
    delete_session,
    delete_sessions_by_account,
    get_session_by_token,
    get_sessions_by_account,
)
from app.models.session import AuthSession
from app.services.audit import ClientContext
from app.utils.clock import utcnow
from app.utils.logger import log


class DuplicateRefreshTokenError(Exception):
    """A session with the same refresh token value already exists."""


class SessionStore:
    """Refresh-token to account bindings with absolute expiry.

    Expired sessions are never returned: lookups delete them on sight.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    def create(
        self,
        account_id: int,
        refresh_token: str,
        expires_at: datetime,
        client: Optional[ClientContext] = None,
        commit: bool = True,
    ) -> AuthSession:
        client = client or ClientContext()
        if get_session_by_token(self.db, refresh_token) is not None:
            raise DuplicateRefreshTokenError("Refresh token already in use")
        try:
            return create_session(
                self.db,
                account_id=account_id,
                refresh_token=refresh_token,
                expires_at=expires_at,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
                commit=commit,
            )
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateRefreshTokenError("Refresh token already in use") from e

    def find_by_token(self, refresh_token: str) -> Optional[AuthSession]:
        record = get_session_by_token(self.db, refresh_token)
        if record is None:
            return None
        if record.expires_at <= self._clock():
            log.info(f"Dropping expired session {record.id} for account {record.account_id}")
            delete_session(self.db, refresh_token)
            return None
        return record

    def list_by_account(self, account_id: int) -> List[AuthSession]:
        """Unexpired sessions of an account; expired rows are left for the sweep."""
        now = self._clock()
        return [s for s in get_sessions_by_account(self.db, account_id) if s.expires_at > now]

    def delete(self, refresh_token: str, commit: bool = True) -> bool:
        return delete_session(self.db, refresh_token, commit=commit)

    def delete_by_account(self, account_id: int, commit: bool = True) -> int:
        return delete_sessions_by_account(self.db, account_id, commit=commit)

    def delete_expired(self) -> int:
        removed = delete_expired_sessions(self.db, self._clock())
        if removed:
            log.info(f"Swept {removed} expired sessions")
        return removed
