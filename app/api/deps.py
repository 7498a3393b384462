from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.database.connection import get_db
from app.services.audit import AuditTrail, ClientContext
from app.services.auth import AuthService
from app.services.credentials import CredentialVerifier
from app.services.face_verification import FaceVerificationGate
from app.services.notifications import EmailNotifier
from app.services.session_store import SessionStore
from app.utils.passwords import PasswordHasher
from app.utils.rate_limit import SlidingWindowLimiter
from app.utils.security import get_token_issuer


@lru_cache(maxsize=1)
def get_login_limiter() -> SlidingWindowLimiter:
    return SlidingWindowLimiter(
        settings.LOGIN_RATE_LIMIT_MAX, settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS
    )


@lru_cache(maxsize=1)
def get_face_attempt_limiter() -> SlidingWindowLimiter:
    return SlidingWindowLimiter(
        settings.FACE_VERIFICATION_MAX_ATTEMPTS, settings.FACE_VERIFICATION_WINDOW_SECONDS
    )


def get_notifier() -> EmailNotifier:
    return EmailNotifier()


def get_client_context(request: Request) -> ClientContext:
    return ClientContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_auth_service(
    db: Session = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
) -> AuthService:
    hasher = PasswordHasher()
    audit = AuditTrail(db)
    return AuthService(
        db=db,
        credentials=CredentialVerifier(db, hasher, audit),
        face_gate=FaceVerificationGate(db, audit),
        tokens=get_token_issuer(),
        sessions=SessionStore(db),
        audit=audit,
        hasher=hasher,
        notifier=notifier,
        face_attempts=get_face_attempt_limiter(),
        refresh_rotation=settings.REFRESH_TOKEN_ROTATION,
    )
