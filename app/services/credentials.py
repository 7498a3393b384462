import enum
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.config.settings import settings
from app.crud.account import register_failed_login, register_successful_login
from app.models.account import Account, AccountStatus
from app.services.audit import FAILED, SUCCESS, AuditTrail, ClientContext
from app.utils.clock import as_utc, utcnow
from app.utils.passwords import PasswordHasher

LOGIN_FAILED = "login_failed"
LOGIN_PASSWORD_SUCCESS = "login_password_success"

_ALLOWED_STATUSES = (AccountStatus.ACTIVE, AccountStatus.PENDING)


@lru_cache(maxsize=4)
def _decoy_hash(rounds: int) -> str:
    # same cost as real hashes so a missing account takes as long as a wrong password
    return PasswordHasher(rounds).hash(secrets.token_urlsafe(16))


class CredentialOutcome(str, enum.Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    LOCKED = "locked"
    NOT_ACTIVE = "not_active"
    INVALID_PASSWORD = "invalid_password"


@dataclass(frozen=True)
class CredentialCheck:
    outcome: CredentialOutcome
    lock_until: Optional[datetime] = None

    @property
    def valid(self) -> bool:
        return self.outcome is CredentialOutcome.SUCCESS


class CredentialVerifier:
    """Password check guarded by the per-account lockout policy.

    Checks run in a fixed order: existence, lock window, status, password.
    Every outcome lands on the audit trail.
    """

    def __init__(
        self,
        db: Session,
        hasher: PasswordHasher,
        audit: AuditTrail,
        max_failed_attempts: Optional[int] = None,
        lockout: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.hasher = hasher
        self.audit = audit
        self.max_failed_attempts = max_failed_attempts or settings.MAX_FAILED_LOGIN_ATTEMPTS
        self.lockout = lockout or timedelta(minutes=settings.LOCKOUT_MINUTES)
        self._clock = clock
        self._decoy_hash = _decoy_hash(hasher.rounds)

    def check(
        self,
        account: Optional[Account],
        email: str,
        password: str,
        client: Optional[ClientContext] = None,
    ) -> CredentialCheck:
        now = self._clock()

        if account is None:
            self.hasher.verify(password, self._decoy_hash)
            return self._fail(None, email, CredentialOutcome.NOT_FOUND, client)

        lock_until = as_utc(account.lock_until)
        if lock_until is not None and lock_until > now:
            return self._fail(
                account.id, email, CredentialOutcome.LOCKED, client, lock_until=lock_until
            )

        if account.status not in _ALLOWED_STATUSES:
            return self._fail(
                account.id,
                email,
                CredentialOutcome.NOT_ACTIVE,
                client,
                extra={"status": account.status.value},
            )

        if not self.hasher.verify(password, account.password_hash):
            updated = register_failed_login(
                self.db, account.id, now, self.max_failed_attempts, self.lockout
            )
            new_lock = as_utc(updated.lock_until) if updated else None
            extra = {"failed_attempts": updated.failed_login_attempts if updated else None}
            if new_lock is not None and new_lock > now:
                extra["locked_until"] = new_lock.isoformat()
            return self._fail(
                account.id,
                email,
                CredentialOutcome.INVALID_PASSWORD,
                client,
                lock_until=new_lock,
                extra=extra,
            )

        register_successful_login(self.db, account.id, now)
        self.audit.record(
            LOGIN_PASSWORD_SUCCESS,
            SUCCESS,
            account_id=account.id,
            detail={
                "profile_completed": account.profile_completed,
                "requires_face_verification": account.profile_completed,
            },
            client=client,
        )
        return CredentialCheck(CredentialOutcome.SUCCESS)

    def _fail(
        self,
        account_id: Optional[int],
        email: str,
        outcome: CredentialOutcome,
        client: Optional[ClientContext],
        lock_until: Optional[datetime] = None,
        extra: Optional[dict] = None,
    ) -> CredentialCheck:
        detail = {"email": email, "reason": outcome.value}
        detail.update(extra or {})
        self.audit.record(
            LOGIN_FAILED, FAILED, account_id=account_id, detail=detail, client=client
        )
        return CredentialCheck(outcome, lock_until=lock_until)
