from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.carelink.carelink.common.pagination import ListParams
from src.carelink.carelink.core.enums import Role, ShiftRequestStatus, UserStatus
from src.carelink.carelink.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.carelink.carelink.shift_requests.service import NewShiftRequest, ShiftRequestService
from tests.fakes import FakeShiftRequestRepository, FakeUserRepository, InMemoryStore, RecordingNotifier

UTC = timezone.utc
NOW = datetime(2025, 3, 1, 8, 0, tzinfo=UTC)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def svc(store, notifier):
    return ShiftRequestService(FakeShiftRequestRepository(store), FakeUserRepository(store), notifier)


def _payload(participant_id, **overrides):
    data = dict(
        participant_id=participant_id,
        service="PersonalCare",
        start="2025-03-05T09:00:00Z",
        end="2025-03-05T11:00:00Z",
        notes="  bring gloves ",
        preferred_trainer_ids=[3, "3", 4, None],
    )
    data.update(overrides)
    return NewShiftRequest(**data)


def test_participant_creates_own_request(store, svc):
    p = store.add_participant("pat@example.com")
    req = svc.create(current_user_id=p.user_id, current_role=Role.PARTICIPANT, payload=_payload(p.user_id), now=NOW)

    assert req.status == ShiftRequestStatus.PENDING_ADMIN
    assert req.participant_id == p.user_id
    assert req.requested_by == p.user_id
    assert req.notes == "bring gloves"
    assert req.preferred_trainer_ids == (3, 4)
    assert req.start == datetime(2025, 3, 5, 9, tzinfo=UTC)


def test_participant_cannot_create_for_someone_else(store, svc):
    p1 = store.add_participant("a@example.com")
    p2 = store.add_participant("b@example.com")
    with pytest.raises(AuthorizationError):
        svc.create(current_user_id=p1.user_id, current_role=Role.PARTICIPANT, payload=_payload(p2.user_id), now=NOW)


def test_admin_can_create_for_any_participant(store, svc):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    p = store.add_participant("pat@example.com")
    req = svc.create(current_user_id=admin.user_id, current_role=Role.ADMIN, payload=_payload(p.user_id), now=NOW)
    assert req.requested_by == admin.user_id
    assert req.participant_id == p.user_id


def test_missing_fields_are_reported_together(store, svc):
    p = store.add_participant("pat@example.com")
    with pytest.raises(ValidationError) as exc:
        svc.create(
            current_user_id=p.user_id,
            current_role=Role.PARTICIPANT,
            payload=_payload(p.user_id, service="  ", start=None),
            now=NOW,
        )
    assert set(exc.value.errors) == {"service", "start"}


@pytest.mark.parametrize(
    "start,end,message",
    [
        ("2025-03-05T11:00:00Z", "2025-03-05T09:00:00Z", "End time must be after start time"),
        ("2025-02-01T09:00:00Z", "2025-02-01T11:00:00Z", "Cannot request a shift in the past"),
        ("2025-03-05T09:00:00Z", "2025-03-05T09:29:00Z", "Shift must be at least 30 minutes"),
    ],
)
def test_window_rules(store, svc, start, end, message):
    p = store.add_participant("pat@example.com")
    with pytest.raises(ValidationError) as exc:
        svc.create(
            current_user_id=p.user_id,
            current_role=Role.PARTICIPANT,
            payload=_payload(p.user_id, start=start, end=end),
            now=NOW,
        )
    assert exc.value.message == message


def test_unknown_participant_is_not_found(store, svc):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    with pytest.raises(NotFoundError):
        svc.create(current_user_id=admin.user_id, current_role=Role.ADMIN, payload=_payload(999), now=NOW)


@pytest.mark.parametrize("participant_id", ["abc", True, 0, -3])
def test_malformed_participant_id_is_a_validation_error(store, svc, participant_id):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    store.add_participant("pat@example.com")
    with pytest.raises(ValidationError) as exc:
        svc.create(
            current_user_id=admin.user_id, current_role=Role.ADMIN, payload=_payload(participant_id), now=NOW
        )
    assert exc.value.errors == {"participantId": "invalid"}
    assert store.requests == {}


@pytest.mark.parametrize("preferred", ["42", 42, {"id": 4}, [4, "x"], [True]])
def test_malformed_preferred_trainer_ids_are_rejected(store, svc, preferred):
    p = store.add_participant("pat@example.com")
    with pytest.raises(ValidationError) as exc:
        svc.create(
            current_user_id=p.user_id,
            current_role=Role.PARTICIPANT,
            payload=_payload(p.user_id, preferred_trainer_ids=preferred),
            now=NOW,
        )
    assert exc.value.errors == {"preferred_trainer_ids": "invalid"}
    assert store.requests == {}


@pytest.mark.parametrize("service", [{"code": "x"}, 42, ["PersonalCare"]])
def test_non_string_service_is_rejected(store, svc, service):
    p = store.add_participant("pat@example.com")
    with pytest.raises(ValidationError) as exc:
        svc.create(
            current_user_id=p.user_id,
            current_role=Role.PARTICIPANT,
            payload=_payload(p.user_id, service=service),
            now=NOW,
        )
    assert exc.value.errors == {"service": "invalid"}
    assert store.requests == {}


def test_preferred_trainer_ids_may_be_omitted(store, svc):
    p = store.add_participant("pat@example.com")
    req = svc.create(
        current_user_id=p.user_id,
        current_role=Role.PARTICIPANT,
        payload=_payload(p.user_id, preferred_trainer_ids=None),
        now=NOW,
    )
    assert req.preferred_trainer_ids == ()


def _pending_request(store, svc):
    p = store.add_participant("pat@example.com", "Pat Participant")
    return svc.create(current_user_id=p.user_id, current_role=Role.PARTICIPANT, payload=_payload(p.user_id), now=NOW)


def test_approve_assigns_trainer_and_notifies_both_parties(store, svc, notifier):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com", "Terry Trainer")
    req = _pending_request(store, svc)

    updated = svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)

    assert updated.status == ShiftRequestStatus.APPROVED
    assert updated.assigned_trainer_id == trainer.trainer_id
    assert updated.approved_by == admin.user_id
    assert [m["to"] for m in notifier.sent] == ["terry@example.com", "pat@example.com"]
    assert notifier.sent[0]["subject"] == "New Shift Assigned"
    assert "Pat Participant" in notifier.sent[0]["html"]


def test_approve_twice_is_conflict(store, svc):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com")
    req = _pending_request(store, svc)
    svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)

    with pytest.raises(ConflictError):
        svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"status": "Pending"},
        {"user_status": UserStatus.BLOCKED},
        {"role": Role.PARTICIPANT},
    ],
)
def test_ineligible_trainers_are_rejected(store, svc, kwargs):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com", **kwargs)
    req = _pending_request(store, svc)

    with pytest.raises(ValidationError):
        svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)
    assert store.requests[req.request_id].status == ShiftRequestStatus.PENDING_ADMIN


def test_unknown_trainer_is_not_found(store, svc):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    req = _pending_request(store, svc)
    with pytest.raises(NotFoundError):
        svc.approve_and_assign(request_id=req.request_id, trainer_id=4242, admin_user_id=admin.user_id, now=NOW)


def test_missing_participant_profile_only_skips_that_email(store, svc, notifier):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com")
    p = store.add_participant("ghost@example.com", with_profile=False)
    req = svc.create(current_user_id=p.user_id, current_role=Role.PARTICIPANT, payload=_payload(p.user_id), now=NOW)

    svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)

    assert [m["to"] for m in notifier.sent] == ["terry@example.com"]


def test_notification_failure_does_not_undo_approval(store):
    notifier = RecordingNotifier(fail=True)
    svc = ShiftRequestService(FakeShiftRequestRepository(store), FakeUserRepository(store), notifier)
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com")
    req = _pending_request(store, svc)

    updated = svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)
    assert updated.status == ShiftRequestStatus.APPROVED


def test_decline_records_reason_and_blocks_later_approval(store, svc):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com")
    req = _pending_request(store, svc)

    declined = svc.decline(request_id=req.request_id, admin_user_id=admin.user_id, reason=" no staff ", now=NOW)
    assert declined.status == ShiftRequestStatus.DECLINED
    assert declined.declined_reason == "no staff"

    with pytest.raises(ConflictError):
        svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)
    with pytest.raises(ConflictError):
        svc.decline(request_id=req.request_id, admin_user_id=admin.user_id, now=NOW)


def test_admin_listing_filters_by_status_and_search(store, svc):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com")
    a = store.add_participant("alice@example.com", "Alice Able")
    b = store.add_participant("bob@example.com", "Bob Baker")
    ra = svc.create(current_user_id=a.user_id, current_role=Role.PARTICIPANT, payload=_payload(a.user_id), now=NOW)
    svc.create(
        current_user_id=b.user_id,
        current_role=Role.PARTICIPANT,
        payload=_payload(b.user_id, service="Transport"),
        now=NOW,
    )
    svc.approve_and_assign(request_id=ra.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)

    approved = svc.list_for_admin(ListParams(statuses=("APPROVED",)), now=NOW)
    assert [r["id"] for r in approved["data"]] == [ra.request_id]

    by_name = svc.list_for_admin(ListParams(q="bob"), now=NOW)
    assert by_name["pagination"]["total"] == 1

    by_service = svc.list_for_admin(ListParams(q="personal"), now=NOW)
    assert [r["id"] for r in by_service["data"]] == [ra.request_id]


def test_list_mine_routes_by_role(store, svc):
    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com")
    req = _pending_request(store, svc)
    svc.approve_and_assign(request_id=req.request_id, trainer_id=trainer.trainer_id, admin_user_id=admin.user_id, now=NOW)

    mine = svc.list_mine(user_id=trainer.user_id, role=Role.TRAINER, params=ListParams(), now=NOW)
    assert mine["data"][0]["id"] == req.request_id
    assert mine["data"][0]["is_clocked_in"] is False

    theirs = svc.list_mine(user_id=req.participant_id, role=Role.PARTICIPANT, params=ListParams(), now=NOW)
    assert theirs["data"][0]["trainer"]["id"] == trainer.trainer_id


def test_trainer_listing_without_profile_is_not_found(store, svc):
    user = store.add_user("orphan@example.com", Role.TRAINER)
    with pytest.raises(NotFoundError):
        svc.list_for_trainer(user.user_id, ListParams(), now=NOW)


def test_pagination_is_normalized(store, svc):
    p = store.add_participant("pat@example.com")
    for _ in range(3):
        svc.create(current_user_id=p.user_id, current_role=Role.PARTICIPANT, payload=_payload(p.user_id), now=NOW)

    page = svc.list_for_participant(p.user_id, ListParams(page=2, limit=2), now=NOW)
    assert page["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
    assert len(page["data"]) == 1
