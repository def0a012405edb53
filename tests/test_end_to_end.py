from __future__ import annotations

from datetime import datetime, timezone

from src.carelink.carelink.common.pagination import ListParams
from src.carelink.carelink.core.enums import Role, ShiftRequestStatus, ShiftStatus, TimesheetStatus
from src.carelink.carelink.shift_requests.service import NewShiftRequest
from src.carelink.carelink.shifts.service import ClockOutReport
from src.carelink.carelink.users.model import Viewer
from tests.fakes import InMemoryStore, RecordingNotifier, build_fake_container

UTC = timezone.utc


def test_request_to_approved_timesheet():
    store = InMemoryStore()
    notifier = RecordingNotifier()
    c = build_fake_container(store, notifier=notifier)

    admin = store.add_user("admin@example.com", Role.ADMIN)
    trainer = store.add_trainer("terry@example.com", "Terry Trainer")
    participant = store.add_participant("pat@example.com", "Pat Participant")

    req = c.shift_request_service.create(
        current_user_id=participant.user_id,
        current_role=Role.PARTICIPANT,
        payload=NewShiftRequest(
            participant_id=participant.user_id,
            service="PersonalCare",
            start="2025-03-05T09:00:00Z",
            end="2025-03-05T11:00:00Z",
        ),
        now=datetime(2025, 3, 1, tzinfo=UTC),
    )
    c.shift_request_service.approve_and_assign(
        request_id=req.request_id,
        trainer_id=trainer.trainer_id,
        admin_user_id=admin.user_id,
        now=datetime(2025, 3, 2, tzinfo=UTC),
    )
    assert len(notifier.sent) == 2

    c.shift_service.clock_in(
        trainer_user_id=trainer.user_id,
        shift_request_id=req.request_id,
        now=datetime(2025, 3, 5, 9, 15, tzinfo=UTC),
    )
    result = c.shift_service.clock_out(
        trainer_user_id=trainer.user_id,
        shift_request_id=req.request_id,
        report=ClockOutReport(activities="Shopping", progress="Good", km=12),
        now=datetime(2025, 3, 5, 11, 20, tzinfo=UTC),
    )

    shift = result["shift"]
    assert shift.status == ShiftStatus.COMPLETED
    assert shift.billing.billable_minutes == 120
    assert shift.actual_clock_out == datetime(2025, 3, 5, 11, 0, tzinfo=UTC)
    assert store.requests[req.request_id].status == ShiftRequestStatus.COMPLETED

    ts = result["timesheet"]
    assert ts.status == TimesheetStatus.DRAFT
    assert [(i.hours, i.km) for i in ts.items] == [(2.0, 12)]

    trainer_view = Viewer(user_id=trainer.user_id, role=Role.TRAINER)
    c.timesheet_service.submit(ts.timesheet_id, trainer_view)
    approved = c.timesheet_service.approve(ts.timesheet_id, admin.user_id)
    assert approved.status == TimesheetStatus.APPROVED
    assert approved.totals.total_cents == 14020

    past = c.shift_service.list_past_shifts(trainer_view, ListParams(), now=datetime(2025, 3, 6, tzinfo=UTC))
    assert [r["id"] for r in past["data"]] == [shift.shift_id]

    dash = c.dashboard_service.admin_summary(now=datetime(2025, 3, 6, tzinfo=UTC))
    assert dash["shifts"]["by_status"]["completed"] == 1
    assert dash["timesheets"]["by_status"]["approved"] == 1
    assert dash["shift_requests"]["by_status"]["completed"] == 1