from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_auth_service, get_client_context, get_login_limiter
from app.crud.account import get_account
from app.database.connection import get_db
from app.schema.account import AccountPublic, CurrentAccount
from app.schema.auth import (
    ChangePasswordRequest,
    CompleteRegistrationRequest,
    FaceVerificationRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    SessionResponse,
)
from app.services.audit import ClientContext
from app.services.auth import AuthService, ProfileInfo
from app.services.outcomes import (
    Authenticated,
    FaceConflict,
    FaceMismatch,
    LoginRejected,
    LogoutRejected,
    NeedsFaceChallenge,
    NeedsProfile,
    PasswordChangeRejected,
    RefreshRejected,
    RejectionReason,
)
from app.services.session_store import SessionStore
from app.services.tokens import AccessClaims
from app.utils.logger import log
from app.utils.rate_limit import SlidingWindowLimiter
from app.utils.security import (
    get_access_claims,
    require_face_challenge,
    require_pending_profile,
    require_session,
)

router = APIRouter(prefix="/auth", tags=["auth"])

GENERIC_RESET_MESSAGE = (
    "If an account with that email exists, a temporary password has been sent."
)

REJECTION_RESPONSES = {
    RejectionReason.INVALID_CREDENTIALS: (status.HTTP_401_UNAUTHORIZED, "Invalid credentials"),
    RejectionReason.LOCKED: (
        status.HTTP_423_LOCKED,
        "Account is temporarily locked. Try again later.",
    ),
    RejectionReason.NOT_ACTIVE: (status.HTTP_403_FORBIDDEN, "Account is not active"),
    RejectionReason.ACCOUNT_NOT_FOUND: (status.HTTP_404_NOT_FOUND, "Account not found"),
    RejectionReason.PROFILE_INCOMPLETE: (status.HTTP_400_BAD_REQUEST, "Profile not completed"),
    RejectionReason.PROFILE_ALREADY_COMPLETED: (
        status.HTTP_400_BAD_REQUEST,
        "Profile already completed",
    ),
    RejectionReason.INVALID_STATUS: (
        status.HTTP_400_BAD_REQUEST,
        "Account status invalid for registration",
    ),
    RejectionReason.MISSING_NAME: (
        status.HTTP_400_BAD_REQUEST,
        "First name and last name are required",
    ),
    RejectionReason.RATE_LIMITED: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Too many attempts, please try again later.",
    ),
    RejectionReason.INVALID_REFRESH_TOKEN: (
        status.HTTP_401_UNAUTHORIZED,
        "Invalid refresh token",
    ),
    RejectionReason.FORBIDDEN: (status.HTTP_403_FORBIDDEN, "Unauthorized"),
    RejectionReason.PASSWORD_MISMATCH: (
        status.HTTP_400_BAD_REQUEST,
        "New passwords do not match",
    ),
    RejectionReason.WEAK_PASSWORD: (status.HTTP_400_BAD_REQUEST, "Invalid password"),
    RejectionReason.INCORRECT_PASSWORD: (
        status.HTTP_401_UNAUTHORIZED,
        "Current password is incorrect",
    ),
    RejectionReason.PASSWORD_REUSED: (
        status.HTTP_400_BAD_REQUEST,
        "New password cannot be the same as current password",
    ),
}


def reject(reason: RejectionReason) -> HTTPException:
    status_code, detail = REJECTION_RESPONSES[reason]
    return HTTPException(status_code=status_code, detail=detail)


def session_response(outcome: Authenticated) -> SessionResponse:
    return SessionResponse(
        access_token=outcome.session.access_token,
        refresh_token=outcome.session.refresh_token,
        expires_in=outcome.session.expires_in,
        refresh_expires_at=outcome.session.refresh_expires_at,
        account=AccountPublic.model_validate(outcome.account),
    )


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
    limiter: SlidingWindowLimiter = Depends(get_login_limiter),
):
    limiter_key = client.ip_address or "unknown"
    if limiter.is_limited(limiter_key):
        log.warn(f"Login rate limit reached for {limiter_key}")
        raise reject(RejectionReason.RATE_LIMITED)

    try:
        outcome = service.login(body.email, body.password, client)
    except Exception as e:
        log.exception(e, "login endpoint")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Login failed"
        )

    if isinstance(outcome, LoginRejected):
        limiter.hit(limiter_key)
        raise reject(outcome.reason)
    if isinstance(outcome, NeedsProfile):
        return LoginResponse(
            state=outcome.state,
            access_token=outcome.access_token,
            expires_in=outcome.expires_in,
            requires_face_verification=False,
            account=AccountPublic.model_validate(outcome.account),
        )
    if isinstance(outcome, NeedsFaceChallenge):
        return LoginResponse(
            state=outcome.state,
            access_token=outcome.challenge_token,
            expires_in=outcome.expires_in,
            requires_face_verification=True,
            account=AccountPublic.model_validate(outcome.account),
        )
    return session_response(outcome)


@router.post("/verify-face", response_model=SessionResponse)
def verify_face(
    body: FaceVerificationRequest,
    claims: AccessClaims = Depends(require_face_challenge),
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
):
    try:
        outcome = service.verify_face(claims.account_id, body.face_descriptor, client)
    except Exception as e:
        log.exception(e, f"face verification for account {claims.account_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Face verification failed",
        )

    if isinstance(outcome, FaceMismatch):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": "Face verification failed",
                "distance": outcome.distance,
                "threshold": outcome.threshold,
            },
        )
    if not isinstance(outcome, Authenticated):
        raise reject(outcome.reason)
    return session_response(outcome)


@router.post("/complete-registration", response_model=SessionResponse)
def complete_registration(
    body: CompleteRegistrationRequest,
    claims: AccessClaims = Depends(require_pending_profile),
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
):
    profile = ProfileInfo(first_name=body.first_name, last_name=body.last_name, phone=body.phone)
    try:
        outcome = service.complete_registration(
            claims.account_id, profile, body.face_descriptor, client
        )
    except Exception as e:
        log.exception(e, f"registration completion for account {claims.account_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration completion failed",
        )

    if isinstance(outcome, FaceConflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This facial identity is already registered. "
            "Please use a different face or contact support.",
        )
    if not isinstance(outcome, Authenticated):
        raise reject(outcome.reason)
    return session_response(outcome)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    body: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
):
    outcome = service.refresh(body.refresh_token, client)
    if isinstance(outcome, RefreshRejected):
        raise reject(outcome.reason)
    return RefreshResponse(
        access_token=outcome.access_token,
        refresh_token=outcome.refresh_token,
        expires_in=outcome.expires_in,
        account=AccountPublic.model_validate(outcome.account),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    body: LogoutRequest,
    claims: AccessClaims = Depends(get_access_claims),
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
):
    outcome = service.logout(body.refresh_token, claims.account_id, client)
    if isinstance(outcome, LogoutRejected):
        raise reject(outcome.reason)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=CurrentAccount)
def read_current_account(
    claims: AccessClaims = Depends(require_session), db: Session = Depends(get_db)
):
    account = get_account(db, claims.account_id)
    if account is None:
        raise reject(RejectionReason.ACCOUNT_NOT_FOUND)
    return CurrentAccount(
        account_id=account.id,
        email=account.email,
        role=account.role.value,
        profile_completed=account.profile_completed,
        last_login_at=account.last_login_at,
        active_sessions=len(SessionStore(db).list_by_account(account.id)),
    )


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    claims: AccessClaims = Depends(require_session),
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
):
    outcome = service.change_password(
        claims.account_id,
        body.current_password,
        body.new_password,
        body.confirm_password,
        client,
    )
    if isinstance(outcome, PasswordChangeRejected):
        status_code, detail = REJECTION_RESPONSES[outcome.reason]
        if outcome.errors:
            detail = f"{detail}: {', '.join(outcome.errors)}"
        raise HTTPException(status_code=status_code, detail=detail)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
):
    try:
        service.forgot_password(body.email, client)
    except Exception as e:
        log.exception(e, "forgot password endpoint")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process password reset request",
        )
    return MessageResponse(message=GENERIC_RESET_MESSAGE)
