import pytest

from app.crud.audit_log import get_audit_logs
from app.crud.face_descriptor import get_face_descriptors_by_account, get_primary_face_descriptor
from app.services.descriptor_matcher import MalformedDescriptorError
from app.services.face_verification import (
    FACE_VERIFICATION_FAILED,
    FACE_VERIFICATION_SUCCESS,
    NoEnrolledDescriptorError,
)
from app.tests.factories import random_descriptor, shifted


@pytest.fixture
def gate(auth_service):
    return auth_service.face_gate


def test_verify_accepts_close_descriptor_and_audits_distance(gate, db_session, make_account):
    enrolled = random_descriptor(10)
    account = make_account(descriptor=enrolled)

    result = gate.verify(account.id, shifted(enrolled, 0.2))

    assert result.match is True
    assert result.distance == 0.2
    entry = get_audit_logs(db_session, action=FACE_VERIFICATION_SUCCESS)[0]
    assert entry.detail == {"distance": 0.2, "threshold": 0.45, "enrolled_version": 1}


def test_verify_rejects_other_face(gate, db_session, make_account):
    account = make_account(descriptor=random_descriptor(11))

    result = gate.verify(account.id, random_descriptor(12))

    assert result.match is False
    assert result.distance > 0.45
    assert get_audit_logs(db_session, action=FACE_VERIFICATION_FAILED)


def test_verify_without_enrollment_is_an_error(gate, make_account):
    account = make_account()
    with pytest.raises(NoEnrolledDescriptorError):
        gate.verify(account.id, random_descriptor(13))


def test_verify_refuses_malformed_descriptor(gate, make_account):
    account = make_account(descriptor=random_descriptor(14))
    with pytest.raises(MalformedDescriptorError):
        gate.verify(account.id, [0.1] * 64)


def test_new_primary_demotes_previous_one(gate, db_session, make_account):
    account = make_account(descriptor=random_descriptor(15))

    second = gate.enroll(account.id, random_descriptor(16))

    descriptors = get_face_descriptors_by_account(db_session, account.id)
    assert [d.version for d in descriptors] == [2, 1]
    assert [d.is_primary for d in descriptors] == [True, False]
    assert get_primary_face_descriptor(db_session, account.id).id == second.id


def test_set_primary_switches_back(gate, db_session, make_account):
    account = make_account(descriptor=random_descriptor(17))
    first = get_primary_face_descriptor(db_session, account.id)
    gate.enroll(account.id, random_descriptor(18))

    gate.set_primary(account.id, first.id)

    db_session.expire_all()
    primaries = [d for d in get_face_descriptors_by_account(db_session, account.id) if d.is_primary]
    assert [d.id for d in primaries] == [first.id]


def test_set_primary_ignores_descriptor_of_other_account(gate, make_account):
    owner = make_account(email="owner@example.com", descriptor=random_descriptor(19))
    other = make_account(email="other@example.com", descriptor=random_descriptor(20))
    foreign = other.face_descriptors[0]

    assert gate.set_primary(owner.id, foreign.id) is None


def test_duplicate_scan_finds_face_of_another_account(gate, make_account):
    enrolled = random_descriptor(21)
    owner = make_account(email="owner@example.com", descriptor=enrolled)

    result = gate.check_if_face_exists(shifted(enrolled, 0.1))

    assert result.exists is True
    assert result.matched_account_id == owner.id
    assert result.distance == 0.1


def test_duplicate_scan_covers_non_primary_descriptors(gate, make_account):
    old_face = random_descriptor(22)
    account = make_account(descriptor=old_face)
    gate.enroll(account.id, random_descriptor(23))

    assert gate.check_if_face_exists(old_face).exists is True


def test_duplicate_scan_can_exclude_an_account(gate, make_account):
    enrolled = random_descriptor(24)
    account = make_account(descriptor=enrolled)

    assert gate.check_if_face_exists(enrolled, exclude_account_id=account.id).exists is False


def test_duplicate_scan_walks_every_batch(db_session, auth_service, make_account):
    auth_service.face_gate.scan_batch_size = 2
    for i in range(5):
        make_account(email=f"user{i}@example.com", descriptor=random_descriptor(100 + i))
    target = random_descriptor(104)

    result = auth_service.face_gate.check_if_face_exists(target)

    assert result.exists is True
    assert result.distance == 0.0


def test_duplicate_scan_on_empty_store(gate):
    assert gate.check_if_face_exists(random_descriptor(25)).exists is False
