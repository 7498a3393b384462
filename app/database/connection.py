from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.settings import settings
from app.utils.logger import log

engine_options = {}
if settings.DATABASE_URL.startswith("sqlite"):
    engine_options = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }

try:
    engine = create_engine(settings.DATABASE_URL, **engine_options)
    log.info(f"Database engine created for dialect {engine.dialect.name}")
except Exception as e:
    log.err(f"Failed to create database engine: {e}")
    raise

if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    """Create any missing tables for the registered models."""
    from app.models import account, audit_log, face_descriptor, session  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        log.err(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()
