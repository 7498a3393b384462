from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.sql import func

from app.database.connection import Base
from app.database.types import UTCDateTime


class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    refresh_token = Column(String(128), unique=True, index=True, nullable=False)
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)
    expires_at = Column(UTCDateTime, index=True, nullable=False)
    created_at = Column(UTCDateTime, server_default=func.now())
