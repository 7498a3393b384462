from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, Integer, text
from sqlalchemy.sql import func

from app.database.connection import Base
from app.database.types import UTCDateTime


class FaceDescriptor(Base):
    __tablename__ = "face_descriptors"
    __table_args__ = (
        # one primary descriptor per account
        Index(
            "uq_face_descriptors_primary_per_account",
            "account_id",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary = 1"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    descriptor = Column(JSON, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())
