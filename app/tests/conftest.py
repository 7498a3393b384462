import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "face_auth_test_logs"))
os.environ.setdefault("LOG_TO_STDOUT", "false")
os.environ.setdefault("SMTP_HOST", "")

from datetime import timedelta
from typing import Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.api.deps import get_face_attempt_limiter, get_login_limiter, get_notifier
from app.crud.account import create_account
from app.database.connection import SessionLocal, init_db
from app.main import app
from app.models.account import Account, AccountRole, AccountStatus
from app.models.audit_log import AuditLog
from app.models.face_descriptor import FaceDescriptor
from app.models.session import AuthSession
from app.services.audit import AuditTrail
from app.services.auth import AuthService
from app.services.credentials import CredentialVerifier
from app.services.face_verification import FaceVerificationGate
from app.services.session_store import SessionStore
from app.services.tokens import TokenIssuer
from app.tests.factories import PASSWORD, FakeClock, RecordingNotifier
from app.utils.passwords import PasswordHasher
from app.utils.rate_limit import SlidingWindowLimiter


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    init_db()


@pytest.fixture(autouse=True)
def reset_limiters():
    get_login_limiter.cache_clear()
    get_face_attempt_limiter.cache_clear()
    yield


@pytest.fixture(scope="function")
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(notifier) -> Iterator[TestClient]:
    app.dependency_overrides = {get_notifier: lambda: notifier}
    with TestClient(app) as c:
        yield c
    app.dependency_overrides = {}


@pytest.fixture(scope="function")
def db_session() -> Session:
    """Provide a database session for each test"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def clean_db(db_session: Session):
    """Clean the database before and after each test"""

    def _wipe():
        db_session.query(AuditLog).delete()
        db_session.query(AuthSession).delete()
        db_session.query(FaceDescriptor).delete()
        db_session.query(Account).delete()
        db_session.commit()

    _wipe()
    yield db_session
    db_session.rollback()
    _wipe()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def make_account(db_session: Session, hasher: PasswordHasher):
    """Factory for accounts in a given state, optionally with a primary descriptor."""

    def _make(
        email: str = "user@example.com",
        password: str = PASSWORD,
        status: AccountStatus = AccountStatus.ACTIVE,
        profile_completed: bool = True,
        role: AccountRole = AccountRole.CLIENT,
        descriptor: Optional[List[float]] = None,
    ) -> Account:
        account = create_account(
            db_session, email=email, password_hash=hasher.hash(password), role=role
        )
        account.status = status
        account.profile_completed = profile_completed
        if profile_completed:
            account.first_name = "Ada"
            account.last_name = "Lovelace"
        if descriptor is not None:
            db_session.add(
                FaceDescriptor(
                    account_id=account.id, descriptor=descriptor, is_primary=True, version=1
                )
            )
        db_session.commit()
        db_session.refresh(account)
        return account

    return _make


@pytest.fixture(scope="function")
def auth_service(db_session: Session, hasher, notifier, clock) -> AuthService:
    audit = AuditTrail(db_session)
    return AuthService(
        db=db_session,
        credentials=CredentialVerifier(
            db_session, hasher, audit, max_failed_attempts=5,
            lockout=timedelta(minutes=15), clock=clock,
        ),
        face_gate=FaceVerificationGate(db_session, audit, threshold=0.45, dimensions=128),
        tokens=TokenIssuer(clock=clock),
        sessions=SessionStore(db_session, clock=clock),
        audit=audit,
        hasher=hasher,
        notifier=notifier,
        face_attempts=SlidingWindowLimiter(5, 300),
        clock=clock,
    )
