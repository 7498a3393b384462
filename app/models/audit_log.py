from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from sqlalchemy.sql import func

from app.database.connection import Base
from app.database.types import UTCDateTime


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), index=True, nullable=True
    )
    action = Column(String(64), index=True, nullable=False)
    detail = Column(JSON, nullable=True)
    outcome = Column(String(16), index=True, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), index=True)
