from datetime import timedelta

from app.crud.account import get_account, get_account_by_email
from app.crud.audit_log import get_audit_logs
from app.models.account import AccountStatus
from app.services.credentials import LOGIN_FAILED, CredentialOutcome
from app.tests.factories import PASSWORD


def _check(auth_service, db_session, email, password):
    db_session.expire_all()
    account = get_account_by_email(db_session, email)
    return auth_service.credentials.check(account, email, password)


def test_valid_password_succeeds_and_resets_counter(auth_service, db_session, make_account):
    account = make_account()
    _check(auth_service, db_session, account.email, "wrong")

    check = _check(auth_service, db_session, account.email, PASSWORD)

    assert check.valid
    db_session.expire_all()
    stored = get_account(db_session, account.id)
    assert stored.failed_login_attempts == 0
    assert stored.lock_until is None
    assert stored.last_login_at is not None


def test_unknown_email_is_reported_as_not_found(auth_service, db_session):
    check = _check(auth_service, db_session, "ghost@example.com", PASSWORD)
    assert check.outcome is CredentialOutcome.NOT_FOUND

    logs = get_audit_logs(db_session, action=LOGIN_FAILED)
    assert len(logs) == 1
    assert logs[0].account_id is None
    assert logs[0].detail["reason"] == "not_found"


def test_fifth_failure_locks_the_account(auth_service, db_session, make_account, clock):
    account = make_account()

    for attempt in range(1, 5):
        check = _check(auth_service, db_session, account.email, "wrong")
        assert check.outcome is CredentialOutcome.INVALID_PASSWORD
        db_session.expire_all()
        assert get_account(db_session, account.id).failed_login_attempts == attempt
        assert get_account(db_session, account.id).lock_until is None

    check = _check(auth_service, db_session, account.email, "wrong")
    assert check.outcome is CredentialOutcome.INVALID_PASSWORD
    assert check.lock_until >= clock.now + timedelta(minutes=15)

    # correct password during the lock window is still refused
    check = _check(auth_service, db_session, account.email, PASSWORD)
    assert check.outcome is CredentialOutcome.LOCKED
    db_session.expire_all()
    assert get_account(db_session, account.id).failed_login_attempts == 5


def test_lock_expires_and_success_resets_state(auth_service, db_session, make_account, clock):
    account = make_account()
    for _ in range(5):
        _check(auth_service, db_session, account.email, "wrong")

    clock.advance(minutes=15, seconds=1)
    check = _check(auth_service, db_session, account.email, PASSWORD)

    assert check.valid
    db_session.expire_all()
    stored = get_account(db_session, account.id)
    assert stored.failed_login_attempts == 0
    assert stored.lock_until is None


def test_inactive_and_blocked_accounts_are_refused(auth_service, db_session, make_account):
    inactive = make_account(email="inactive@example.com", status=AccountStatus.INACTIVE)
    blocked = make_account(email="blocked@example.com", status=AccountStatus.BLOCKED)

    assert (
        _check(auth_service, db_session, inactive.email, PASSWORD).outcome
        is CredentialOutcome.NOT_ACTIVE
    )
    assert (
        _check(auth_service, db_session, blocked.email, PASSWORD).outcome
        is CredentialOutcome.NOT_ACTIVE
    )
    db_session.expire_all()
    assert get_account(db_session, inactive.id).failed_login_attempts == 0


def test_pending_account_may_pass_the_password_step(auth_service, db_session, make_account):
    account = make_account(status=AccountStatus.PENDING, profile_completed=False)
    assert _check(auth_service, db_session, account.email, PASSWORD).valid


def test_audit_never_stores_the_password(auth_service, db_session, make_account):
    account = make_account()
    _check(auth_service, db_session, account.email, "super-secret-guess")

    for entry in get_audit_logs(db_session):
        assert "super-secret-guess" not in str(entry.detail)
