from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schema.account import NAME_PATTERN, AccountPublic
from app.schema.face_descriptor import FaceDescriptorValues
from app.services.outcomes import AuthState


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=254)
    password: str = Field(min_length=1, max_length=100)


class FaceVerificationRequest(BaseModel):
    face_descriptor: FaceDescriptorValues


class CompleteRegistrationRequest(BaseModel):
    first_name: str = Field(min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: str = Field(min_length=2, max_length=50, pattern=NAME_PATTERN)
    phone: Optional[str] = Field(default=None, max_length=20)
    face_descriptor: FaceDescriptorValues

    @field_validator("phone")
    @classmethod
    def blank_phone_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=100)
    new_password: str = Field(min_length=1, max_length=100)
    confirm_password: str = Field(min_length=1, max_length=100)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)


class LoginResponse(BaseModel):
    """Password step result; `refresh_token` stays empty until the face step."""

    state: AuthState
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    requires_face_verification: bool
    refresh_token: Optional[str] = None
    account: AccountPublic


class SessionResponse(BaseModel):
    state: AuthState = AuthState.AUTHENTICATED
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_expires_at: datetime
    account: AccountPublic


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    account: AccountPublic


class MessageResponse(BaseModel):
    message: str
    errors: List[str] = Field(default_factory=list)
