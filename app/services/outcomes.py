"""Result values returned by the authentication orchestrator.

Each operation returns one of a small, closed set of dataclasses so callers
branch on the type instead of catching exceptions. `state` tells where the
login flow stands after the call.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from app.models.account import Account


class AuthState(str, enum.Enum):
    AWAITING_CREDENTIALS = "awaiting_credentials"
    AWAITING_PROFILE_COMPLETION = "awaiting_profile_completion"
    AWAITING_FACE_VERIFICATION = "awaiting_face_verification"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


class RejectionReason(str, enum.Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    LOCKED = "locked"
    NOT_ACTIVE = "not_active"
    ACCOUNT_NOT_FOUND = "account_not_found"
    PROFILE_INCOMPLETE = "profile_incomplete"
    PROFILE_ALREADY_COMPLETED = "profile_already_completed"
    INVALID_STATUS = "invalid_status"
    MISSING_NAME = "missing_name"
    RATE_LIMITED = "rate_limited"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    FORBIDDEN = "forbidden"
    PASSWORD_MISMATCH = "password_mismatch"
    WEAK_PASSWORD = "weak_password"
    INCORRECT_PASSWORD = "incorrect_password"
    PASSWORD_REUSED = "password_reused"
    EMAIL_TAKEN = "email_taken"


@dataclass(frozen=True)
class IssuedSession:
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime
    expires_in: int


@dataclass(frozen=True)
class NeedsProfile:
    account: Account
    access_token: str
    expires_in: int
    state: AuthState = AuthState.AWAITING_PROFILE_COMPLETION


@dataclass(frozen=True)
class NeedsFaceChallenge:
    account: Account
    challenge_token: str
    expires_in: int
    state: AuthState = AuthState.AWAITING_FACE_VERIFICATION


@dataclass(frozen=True)
class Authenticated:
    account: Account
    session: IssuedSession
    state: AuthState = AuthState.AUTHENTICATED


@dataclass(frozen=True)
class LoginRejected:
    reason: RejectionReason
    lock_until: Optional[datetime] = None
    state: AuthState = AuthState.REJECTED


@dataclass(frozen=True)
class FaceMismatch:
    distance: float
    threshold: float
    state: AuthState = AuthState.AWAITING_FACE_VERIFICATION


@dataclass(frozen=True)
class FaceRejected:
    reason: RejectionReason
    state: AuthState = AuthState.REJECTED


@dataclass(frozen=True)
class FaceConflict:
    state: AuthState = AuthState.AWAITING_PROFILE_COMPLETION


@dataclass(frozen=True)
class RegistrationRejected:
    reason: RejectionReason
    state: AuthState = AuthState.REJECTED


@dataclass(frozen=True)
class Refreshed:
    account: Account
    access_token: str
    refresh_token: str
    expires_in: int


@dataclass(frozen=True)
class RefreshRejected:
    reason: RejectionReason


@dataclass(frozen=True)
class LoggedOut:
    account_id: int


@dataclass(frozen=True)
class LogoutRejected:
    reason: RejectionReason


@dataclass(frozen=True)
class PasswordChanged:
    revoked_sessions: int


@dataclass(frozen=True)
class PasswordChangeRejected:
    reason: RejectionReason
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Provisioned:
    account: Account
    temporary_password: str
    notified: bool


@dataclass(frozen=True)
class ProvisionRejected:
    reason: RejectionReason


LoginOutcome = Union[LoginRejected, NeedsProfile, NeedsFaceChallenge, Authenticated]
FaceVerificationOutcome = Union[Authenticated, FaceMismatch, FaceRejected]
RegistrationOutcome = Union[Authenticated, RegistrationRejected, FaceConflict]
RefreshOutcome = Union[Refreshed, RefreshRejected]
LogoutOutcome = Union[LoggedOut, LogoutRejected]
PasswordChangeOutcome = Union[PasswordChanged, PasswordChangeRejected]
ProvisionOutcome = Union[Provisioned, ProvisionRejected]
