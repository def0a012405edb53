from __future__ import annotations

from datetime import datetime, timezone

from src.carelink.carelink.core.enums import TimesheetStatus
from src.carelink.carelink.timesheets.calculator import apply_item, build_item, recompute_totals
from src.carelink.carelink.timesheets.model import Timesheet, TimesheetItem

UTC = timezone.utc
WEEK_START = datetime(2025, 3, 3, tzinfo=UTC)
WEEK_END = datetime(2025, 3, 9, 23, 59, 59, 999000, tzinfo=UTC)


def _item(shift_id, minutes=120, km=0.0, participant_id=7):
    return build_item(
        shift_id=shift_id,
        participant_id=participant_id,
        service="PersonalCare",
        date=datetime(2025, 3, 5, 11, tzinfo=UTC),
        minutes=minutes,
        km=km,
        hourly_rate_cents=6500,
        km_rate_cents=85,
    )


def _empty_sheet():
    return Timesheet(
        timesheet_id=1,
        trainer_id=101,
        week_start=WEEK_START,
        week_end=WEEK_END,
        status=TimesheetStatus.DRAFT,
    )


def test_build_item_amounts():
    item = _item(1, minutes=120, km=12)
    assert item.hours == 2.0
    assert item.amount_cents == 13000
    assert item.mileage_cents == 1020
    assert item.total_cents == 14020


def test_build_item_rounds_half_up():
    item = build_item(
        shift_id=1,
        participant_id=7,
        service="x",
        date=WEEK_START,
        minutes=0,
        km=0.5,
        hourly_rate_cents=6500,
        km_rate_cents=85,
    )
    assert item.mileage_cents == 43

    odd = build_item(
        shift_id=2,
        participant_id=7,
        service="x",
        date=WEEK_START,
        minutes=7,
        hourly_rate_cents=6500,
    )
    assert odd.amount_cents == 758
    assert odd.mileage_cents == 0


def test_apply_item_appends_new_shift_lines():
    ts = apply_item(_empty_sheet(), _item(1), week_end=WEEK_END)
    ts = apply_item(ts, _item(2, minutes=60, km=4), week_end=WEEK_END)

    assert [i.shift_id for i in ts.items] == [1, 2]
    assert ts.totals.hours == 3.0
    assert ts.totals.km == 4
    assert ts.totals.amount_cents == 13000 + 6500
    assert ts.totals.mileage_cents == 340
    assert ts.totals.total_cents == 13000 + 6500 + 340


def test_apply_item_replaces_existing_line_in_place():
    ts = apply_item(_empty_sheet(), _item(1), week_end=WEEK_END)
    ts = apply_item(ts, _item(2), week_end=WEEK_END)
    ts = apply_item(ts, _item(1, minutes=30), week_end=WEEK_END)

    assert [i.shift_id for i in ts.items] == [1, 2]
    assert ts.items[0].minutes == 30
    assert ts.totals.amount_cents == 3250 + 13000


def test_recompute_totals_is_sum_of_items():
    items = [_item(1, km=1), _item(2, minutes=45, km=2.5)]
    totals = recompute_totals(items)
    assert totals.amount_cents == sum(i.amount_cents for i in items)
    assert totals.mileage_cents == sum(i.mileage_cents for i in items)
    assert totals.total_cents == totals.amount_cents + totals.mileage_cents
    assert totals.hours == 2.75


def test_recompute_totals_of_nothing_is_zero():
    totals = recompute_totals([])
    assert totals.total_cents == 0
    assert totals.hours == 0


def test_stored_item_without_hours_is_backfilled_from_minutes():
    item = TimesheetItem.from_dict(
        {
            "shift_id": 9,
            "participant_id": 7,
            "date": "2025-03-05T11:00:00Z",
            "service": "Respite",
            "minutes": 90,
            "km": 0,
            "hourly_rate_cents": 6500,
            "km_rate_cents": 85,
            "amount_cents": 9750,
            "mileage_cents": 0,
            "total_cents": 9750,
        }
    )
    assert item.hours == 1.5
    assert TimesheetItem.from_dict(item.to_dict()) == item
