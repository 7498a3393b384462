from datetime import timedelta

import pytest

from app.services.session_store import DuplicateRefreshTokenError, SessionStore
from app.tests.factories import FakeClock


@pytest.fixture
def store(db_session, clock):
    return SessionStore(db_session, clock=clock)


def test_created_session_is_found_until_it_expires(store, make_account, clock):
    account = make_account()
    store.create(account.id, "refresh-abc", clock.now + timedelta(days=7))

    found = store.find_by_token("refresh-abc")
    assert found is not None
    assert found.account_id == account.id

    clock.advance(days=7)
    assert store.find_by_token("refresh-abc") is None
    # the expired row was removed on sight
    assert store.delete("refresh-abc") is False


def test_unknown_token_is_not_found(store):
    assert store.find_by_token("does-not-exist") is None


def test_delete_is_idempotent(store, make_account, clock):
    account = make_account()
    store.create(account.id, "refresh-del", clock.now + timedelta(hours=1))

    assert store.delete("refresh-del") is True
    assert store.delete("refresh-del") is False
    assert store.find_by_token("refresh-del") is None


def test_duplicate_refresh_token_is_refused(store, make_account, clock):
    account = make_account()
    store.create(account.id, "refresh-dup", clock.now + timedelta(hours=1))

    with pytest.raises(DuplicateRefreshTokenError):
        store.create(account.id, "refresh-dup", clock.now + timedelta(hours=2))


def test_list_and_delete_by_account(store, make_account, clock):
    first = make_account(email="first@example.com")
    second = make_account(email="second@example.com")
    store.create(first.id, "first-1", clock.now + timedelta(hours=1))
    store.create(first.id, "first-2", clock.now + timedelta(hours=1))
    store.create(first.id, "first-stale", clock.now + timedelta(seconds=1))
    store.create(second.id, "second-1", clock.now + timedelta(hours=1))
    clock.advance(seconds=5)

    assert {s.refresh_token for s in store.list_by_account(first.id)} == {"first-1", "first-2"}
    assert store.delete_by_account(first.id) == 3
    assert store.list_by_account(first.id) == []
    assert store.find_by_token("second-1") is not None


def test_sweep_removes_only_expired_sessions(db_session, make_account):
    clock = FakeClock()
    store = SessionStore(db_session, clock=clock)
    account = make_account()
    store.create(account.id, "old", clock.now + timedelta(minutes=1))
    store.create(account.id, "fresh", clock.now + timedelta(days=1))
    clock.advance(minutes=2)

    assert store.delete_expired() == 1
    assert store.find_by_token("fresh") is not None


def test_deleted_session_leaves_the_identity_map(store, db_session, make_account, clock):
    account = make_account()
    store.create(account.id, "refresh-gone", clock.now + timedelta(hours=1))
    record = store.find_by_token("refresh-gone")

    store.delete("refresh-gone")

    assert record not in db_session
    replacement = store.create(account.id, "refresh-new", clock.now + timedelta(hours=1))
    assert store.find_by_token("refresh-new") is replacement
