import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.crud.account import (
    complete_profile,
    create_account,
    get_account,
    get_account_by_email,
    register_successful_login,
    update_password,
)
from app.models.account import Account, AccountRole, AccountStatus
from app.services.audit import FAILED, SUCCESS, AuditTrail, ClientContext
from app.services.credentials import CredentialOutcome, CredentialVerifier
from app.services.descriptor_matcher import DescriptorLike, validate_descriptor
from app.services.face_verification import FaceVerificationGate
from app.services.notifications import EmailNotifier
from app.services.outcomes import (
    Authenticated,
    FaceConflict,
    FaceMismatch,
    FaceRejected,
    FaceVerificationOutcome,
    IssuedSession,
    LoggedOut,
    LoginOutcome,
    LoginRejected,
    LogoutOutcome,
    LogoutRejected,
    NeedsFaceChallenge,
    NeedsProfile,
    PasswordChanged,
    PasswordChangeOutcome,
    PasswordChangeRejected,
    ProvisionOutcome,
    Provisioned,
    ProvisionRejected,
    Refreshed,
    RefreshOutcome,
    RefreshRejected,
    RegistrationOutcome,
    RegistrationRejected,
    RejectionReason,
)
from app.services.session_store import SessionStore
from app.services.tokens import AccessClaims, TokenIssuer
from app.utils.clock import utcnow
from app.utils.logger import log
from app.utils.passwords import (
    PasswordHasher,
    generate_temporary_password,
    password_policy_errors,
)
from app.utils.rate_limit import SlidingWindowLimiter

_LOGIN_REJECTIONS = {
    CredentialOutcome.NOT_FOUND: RejectionReason.INVALID_CREDENTIALS,
    CredentialOutcome.INVALID_PASSWORD: RejectionReason.INVALID_CREDENTIALS,
    CredentialOutcome.LOCKED: RejectionReason.LOCKED,
    CredentialOutcome.NOT_ACTIVE: RejectionReason.NOT_ACTIVE,
}


@dataclass(frozen=True)
class ProfileInfo:
    first_name: str
    last_name: str
    phone: Optional[str] = None


def claims_for(account: Account, requires_face_verification: bool = False) -> AccessClaims:
    return AccessClaims(
        account_id=account.id,
        email=account.email,
        role=account.role.value,
        profile_completed=account.profile_completed,
        requires_face_verification=requires_face_verification,
    )


class AuthService:
    """Password + face login state machine and the session lifecycle around it.

    Collaborators are passed in; the service holds no state of its own beyond
    the request-scoped database session.
    """

    def __init__(
        self,
        db: Session,
        credentials: CredentialVerifier,
        face_gate: FaceVerificationGate,
        tokens: TokenIssuer,
        sessions: SessionStore,
        audit: AuditTrail,
        hasher: PasswordHasher,
        notifier: EmailNotifier,
        face_attempts: SlidingWindowLimiter,
        refresh_rotation: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.credentials = credentials
        self.face_gate = face_gate
        self.tokens = tokens
        self.sessions = sessions
        self.audit = audit
        self.hasher = hasher
        self.notifier = notifier
        self.face_attempts = face_attempts
        self.refresh_rotation = refresh_rotation
        self._clock = clock

    # login flow

    def login(
        self, email: str, password: str, client: Optional[ClientContext] = None
    ) -> LoginOutcome:
        account = get_account_by_email(self.db, email)
        check = self.credentials.check(account, email.strip().lower(), password, client)

        if not check.valid:
            return LoginRejected(
                reason=_LOGIN_REJECTIONS[check.outcome], lock_until=check.lock_until
            )

        ttl = self.tokens.access_ttl_seconds
        if not account.profile_completed:
            token = self.tokens.issue_access_token(claims_for(account), ttl)
            log.info(f"Account {account.id} must complete its profile before a session")
            return NeedsProfile(account=account, access_token=token, expires_in=ttl)

        challenge = self.tokens.issue_access_token(
            claims_for(account, requires_face_verification=True), ttl
        )
        return NeedsFaceChallenge(account=account, challenge_token=challenge, expires_in=ttl)

    def verify_face(
        self,
        account_id: int,
        descriptor: DescriptorLike,
        client: Optional[ClientContext] = None,
    ) -> FaceVerificationOutcome:
        validate_descriptor(descriptor, self.face_gate.dimensions)

        account = get_account(self.db, account_id)
        rejection = None
        if account is None:
            rejection = RejectionReason.ACCOUNT_NOT_FOUND
        elif account.status != AccountStatus.ACTIVE:
            rejection = RejectionReason.NOT_ACTIVE
        elif not account.profile_completed:
            rejection = RejectionReason.PROFILE_INCOMPLETE
        elif not self.face_attempts.hit(str(account_id)):
            rejection = RejectionReason.RATE_LIMITED

        if rejection is not None:
            self.audit.record(
                "face_verification_rejected",
                FAILED,
                account_id=account_id if account is not None else None,
                detail={"reason": rejection.value},
                client=client,
            )
            return FaceRejected(reason=rejection)

        result = self.face_gate.verify(account_id, descriptor, client)
        if not result.match:
            return FaceMismatch(distance=result.distance, threshold=result.threshold)

        self.face_attempts.reset(str(account_id))
        session = self._open_session(account, client)
        register_successful_login(self.db, account.id, self._clock())
        return Authenticated(account=account, session=session)

    def complete_registration(
        self,
        account_id: int,
        profile: ProfileInfo,
        descriptor: DescriptorLike,
        client: Optional[ClientContext] = None,
    ) -> RegistrationOutcome:
        validate_descriptor(descriptor, self.face_gate.dimensions)

        account = get_account(self.db, account_id)
        rejection = None
        if account is None:
            rejection = RejectionReason.ACCOUNT_NOT_FOUND
        elif account.profile_completed:
            rejection = RejectionReason.PROFILE_ALREADY_COMPLETED
        elif account.status != AccountStatus.PENDING:
            rejection = RejectionReason.INVALID_STATUS
        elif not profile.first_name.strip() or not profile.last_name.strip():
            rejection = RejectionReason.MISSING_NAME

        if rejection is not None:
            self.audit.record(
                "registration_rejected",
                FAILED,
                account_id=account_id if account is not None else None,
                detail={"reason": rejection.value},
                client=client,
            )
            return RegistrationRejected(reason=rejection)

        duplicate = self.face_gate.check_if_face_exists(
            descriptor, exclude_account_id=account.id
        )
        if duplicate.exists:
            self.audit.record(
                "registration_face_conflict",
                FAILED,
                account_id=account.id,
                detail={
                    "matched_account_id": duplicate.matched_account_id,
                    "distance": duplicate.distance,
                    "threshold": self.face_gate.threshold,
                },
                client=client,
            )
            return FaceConflict()

        try:
            self.face_gate.enroll(account.id, descriptor, primary=True, commit=False)
            complete_profile(
                self.db,
                account,
                first_name=profile.first_name.strip(),
                last_name=profile.last_name.strip(),
                phone=(profile.phone or "").strip() or None,
                commit=False,
            )
            session = self._open_session(account, client)
        except Exception as e:
            self.db.rollback()
            log.exception(e, f"completing registration for account {account_id}")
            raise

        self.audit.record(
            "registration_completed",
            SUCCESS,
            account_id=account.id,
            detail={"first_name": account.first_name, "last_name": account.last_name},
            client=client,
        )
        return Authenticated(account=account, session=session)

    def _open_session(
        self, account: Account, client: Optional[ClientContext]
    ) -> IssuedSession:
        """Persist the refresh session, then mint the access token.

        Pending changes on the db session are committed together with the
        session row; on failure nothing is committed and no token leaves.
        """
        refresh_token = self.tokens.issue_refresh_token()
        expires_at = self.tokens.refresh_token_expiry(self._clock())
        try:
            self.sessions.create(account.id, refresh_token, expires_at, client, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(account)

        ttl = self.tokens.access_ttl_seconds
        access_token = self.tokens.issue_access_token(claims_for(account), ttl)
        return IssuedSession(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_expires_at=expires_at,
            expires_in=ttl,
        )

    # session lifecycle

    def refresh(
        self, refresh_token: str, client: Optional[ClientContext] = None
    ) -> RefreshOutcome:
        session = self.sessions.find_by_token(refresh_token)
        if session is None:
            self.audit.record(
                "token_refresh_failed",
                FAILED,
                detail={"reason": RejectionReason.INVALID_REFRESH_TOKEN.value},
                client=client,
            )
            return RefreshRejected(RejectionReason.INVALID_REFRESH_TOKEN)

        account = get_account(self.db, session.account_id)
        if account is None or account.status != AccountStatus.ACTIVE:
            reason = (
                RejectionReason.ACCOUNT_NOT_FOUND if account is None else RejectionReason.NOT_ACTIVE
            )
            self.sessions.delete(refresh_token)
            self.audit.record(
                "token_refresh_failed",
                FAILED,
                account_id=account.id if account is not None else None,
                detail={"reason": reason.value},
                client=client,
            )
            return RefreshRejected(reason)

        next_refresh_token = refresh_token
        if self.refresh_rotation:
            next_refresh_token = self.tokens.issue_refresh_token()
            try:
                self.sessions.delete(refresh_token, commit=False)
                self.sessions.create(
                    account.id,
                    next_refresh_token,
                    self.tokens.refresh_token_expiry(self._clock()),
                    client,
                    commit=False,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        ttl = self.tokens.access_ttl_seconds
        access_token = self.tokens.issue_access_token(claims_for(account), ttl)
        self.audit.record(
            "token_refreshed",
            SUCCESS,
            account_id=account.id,
            detail={"rotated": self.refresh_rotation},
            client=client,
        )
        return Refreshed(
            account=account,
            access_token=access_token,
            refresh_token=next_refresh_token,
            expires_in=ttl,
        )

    def logout(
        self,
        refresh_token: str,
        account_id: Optional[int] = None,
        client: Optional[ClientContext] = None,
    ) -> LogoutOutcome:
        session = self.sessions.find_by_token(refresh_token)
        if session is None:
            return LogoutRejected(RejectionReason.INVALID_REFRESH_TOKEN)
        if account_id is not None and session.account_id != account_id:
            self.audit.record(
                "logout_rejected",
                FAILED,
                account_id=session.account_id,
                detail={
                    "reason": RejectionReason.FORBIDDEN.value,
                    "requested_by": account_id,
                },
                client=client,
            )
            return LogoutRejected(RejectionReason.FORBIDDEN)

        owner = session.account_id
        self.sessions.delete(refresh_token)
        self.audit.record(
            "logout", SUCCESS, account_id=owner, detail={"method": "refresh_token"}, client=client
        )
        return LoggedOut(account_id=owner)

    # password management

    def change_password(
        self,
        account_id: int,
        current_password: str,
        new_password: str,
        confirm_password: str,
        client: Optional[ClientContext] = None,
    ) -> PasswordChangeOutcome:
        account = get_account(self.db, account_id)
        if account is None:
            return PasswordChangeRejected(RejectionReason.ACCOUNT_NOT_FOUND)
        if new_password != confirm_password:
            return PasswordChangeRejected(RejectionReason.PASSWORD_MISMATCH)

        errors = password_policy_errors(new_password)
        if errors:
            return PasswordChangeRejected(RejectionReason.WEAK_PASSWORD, errors=errors)

        if not self.hasher.verify(current_password, account.password_hash):
            self.audit.record(
                "password_change_failed",
                FAILED,
                account_id=account.id,
                detail={"reason": RejectionReason.INCORRECT_PASSWORD.value},
                client=client,
            )
            return PasswordChangeRejected(RejectionReason.INCORRECT_PASSWORD)
        if current_password == new_password:
            return PasswordChangeRejected(RejectionReason.PASSWORD_REUSED)

        update_password(self.db, account.id, self.hasher.hash(new_password), self._clock())
        revoked = self.sessions.delete_by_account(account.id)
        self.audit.record(
            "password_changed",
            SUCCESS,
            account_id=account.id,
            detail={"revoked_sessions": revoked},
            client=client,
        )
        return PasswordChanged(revoked_sessions=revoked)

    def forgot_password(self, email: str, client: Optional[ClientContext] = None) -> None:
        """Reset to a temporary password when the email exists; silent otherwise."""
        email = email.strip().lower()
        account = get_account_by_email(self.db, email)
        if account is None:
            self.audit.record(
                "forgot_password_invalid_email", FAILED, detail={"email": email}, client=client
            )
            return

        temporary_password = generate_temporary_password()
        update_password(self.db, account.id, self.hasher.hash(temporary_password), self._clock())
        self.sessions.delete_by_account(account.id)
        notified = self._notify_temporary_password(account.email, temporary_password)
        self.audit.record(
            "password_reset_requested",
            SUCCESS,
            account_id=account.id,
            detail={"email": account.email, "notified": notified},
            client=client,
        )

    # provisioning

    def provision_account(
        self,
        email: str,
        role: AccountRole,
        admin_account_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        client: Optional[ClientContext] = None,
    ) -> ProvisionOutcome:
        start_time = time.time()
        if get_account_by_email(self.db, email) is not None:
            return ProvisionRejected(RejectionReason.EMAIL_TAKEN)

        temporary_password = generate_temporary_password()
        account = create_account(
            self.db,
            email=email,
            password_hash=self.hasher.hash(temporary_password),
            role=role,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
        )
        notified = self._notify_temporary_password(account.email, temporary_password)
        self.audit.record(
            "user_created",
            SUCCESS,
            account_id=admin_account_id,
            detail={
                "created_account_id": account.id,
                "email": account.email,
                "role": account.role.value,
            },
            client=client,
        )
        log.perf("provision_account", time.time() - start_time, account_id=account.id)
        return Provisioned(
            account=account, temporary_password=temporary_password, notified=notified
        )

    def _notify_temporary_password(self, email: str, temporary_password: str) -> bool:
        try:
            return self.notifier.send_temporary_password(email, temporary_password)
        except Exception as e:
            log.exception(e, f"delivering temporary password to {email}")
            return False
