import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.config.settings import settings
from app.utils.clock import utcnow


class TokenError(Exception):
    """Access token could not be accepted."""


class TokenExpiredError(TokenError):
    pass


class InvalidTokenError(TokenError):
    pass


@dataclass(frozen=True)
class AccessClaims:
    account_id: int
    email: str
    role: str
    profile_completed: bool
    requires_face_verification: bool = False

    def to_payload(self) -> dict:
        payload = {
            "sub": str(self.account_id),
            "email": self.email,
            "role": self.role,
            "profile_completed": self.profile_completed,
        }
        if self.requires_face_verification:
            payload["requires_face_verification"] = True
        return payload


class TokenIssuer:
    """Mints signed access tokens and opaque refresh tokens."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_ttl_seconds: Optional[int] = None,
        refresh_lifetime: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.secret = secret or settings.JWT_SECRET
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.access_ttl_seconds = access_ttl_seconds or settings.ACCESS_TOKEN_TTL_SECONDS
        self.refresh_lifetime = refresh_lifetime or settings.refresh_token_lifetime
        self._clock = clock

    def issue_access_token(
        self, claims: AccessClaims, ttl_seconds: Optional[int] = None
    ) -> str:
        now = self._clock()
        ttl = ttl_seconds if ttl_seconds is not None else self.access_ttl_seconds
        payload = claims.to_payload()
        payload.update(
            {
                "type": "access",
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(seconds=ttl)).timestamp()),
            }
        )
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_refresh_token(self) -> str:
        return secrets.token_urlsafe(48)

    def refresh_token_expiry(self, now: Optional[datetime] = None) -> datetime:
        return (now or self._clock()) + self.refresh_lifetime

    def decode_access_token(self, token: str) -> AccessClaims:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token expired") from e
        except JWTError as e:
            raise InvalidTokenError("Invalid token") from e

        if payload.get("type") != "access":
            raise InvalidTokenError("Invalid token")
        try:
            return AccessClaims(
                account_id=int(payload["sub"]),
                email=payload["email"],
                role=payload["role"],
                profile_completed=bool(payload["profile_completed"]),
                requires_face_verification=bool(
                    payload.get("requires_face_verification", False)
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTokenError("Invalid token") from e
