from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import case, literal, update
from sqlalchemy.orm import Session

from app.database.types import UTCDateTime
from app.models.account import Account, AccountRole, AccountStatus


def get_account(db: Session, account_id: int) -> Optional[Account]:
    return db.query(Account).filter(Account.id == account_id).first()


def get_account_by_email(db: Session, email: str) -> Optional[Account]:
    return db.query(Account).filter(Account.email == email.strip().lower()).first()


def create_account(
    db: Session,
    email: str,
    password_hash: str,
    role: AccountRole = AccountRole.CLIENT,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
) -> Account:
    account = Account(
        email=email.strip().lower(),
        password_hash=password_hash,
        role=role,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        status=AccountStatus.PENDING,
        profile_completed=False,
        failed_login_attempts=0,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def complete_profile(
    db: Session,
    account: Account,
    first_name: str,
    last_name: str,
    phone: Optional[str],
    commit: bool = True,
) -> Account:
    account.first_name = first_name
    account.last_name = last_name
    account.phone = phone
    account.profile_completed = True
    account.status = AccountStatus.ACTIVE
    db.flush()
    if commit:
        db.commit()
        db.refresh(account)
    return account


def update_password(db: Session, account_id: int, password_hash: str, now: datetime) -> None:
    db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(password_hash=password_hash, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def register_failed_login(
    db: Session,
    account_id: int,
    now: datetime,
    max_attempts: int,
    lockout: timedelta,
) -> Optional[Account]:
    """Increment the failure counter and maybe lock, in one UPDATE statement.

    The SET clause reads the stored counter, so two concurrent failures can
    never both observe the pre-lock value.
    """
    next_count = Account.failed_login_attempts + 1
    db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(
            failed_login_attempts=next_count,
            lock_until=case(
                (next_count >= max_attempts, literal(now + lockout, UTCDateTime())),
                else_=Account.lock_until,
            ),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return get_account(db, account_id)


def register_successful_login(db: Session, account_id: int, now: datetime) -> None:
    db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(
            failed_login_attempts=0,
            lock_until=None,
            last_login_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
