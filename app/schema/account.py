from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models.account import AccountRole, AccountStatus

NAME_PATTERN = r"^[a-zA-ZÀ-ÿ\s'-]+$"


class AccountCreate(BaseModel):
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    role: AccountRole = AccountRole.CLIENT
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    phone: Optional[str] = Field(default=None, max_length=20)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class AccountPublic(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: AccountRole
    status: AccountStatus
    profile_completed: bool

    model_config = {"from_attributes": True}


class ProvisionedAccount(BaseModel):
    account: AccountPublic
    temporary_password: str
    notified: bool


class CurrentAccount(BaseModel):
    account_id: int
    email: str
    role: str
    profile_completed: bool
    last_login_at: Optional[datetime] = None
    active_sessions: int = 0
