import enum

from sqlalchemy import Boolean, Column, Enum, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database.connection import Base
from app.database.types import UTCDateTime


class AccountRole(str, enum.Enum):
    ADMIN = "admin"
    CLIENT = "client"


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    BLOCKED = "blocked"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(254), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(
        Enum(AccountRole, values_callable=lambda e: [m.value for m in e], name="account_role"),
        nullable=False,
        default=AccountRole.CLIENT,
    )
    status = Column(
        Enum(AccountStatus, values_callable=lambda e: [m.value for m in e], name="account_status"),
        nullable=False,
        default=AccountStatus.PENDING,
    )
    profile_completed = Column(Boolean, nullable=False, default=False)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    lock_until = Column(UTCDateTime, nullable=True)
    last_login_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    face_descriptors = relationship(
        "FaceDescriptor", cascade="all, delete-orphan", passive_deletes=True
    )
    sessions = relationship(
        "AuthSession", cascade="all, delete-orphan", passive_deletes=True
    )
