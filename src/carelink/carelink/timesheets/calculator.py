"""Pure timesheet arithmetic.

Nothing here touches storage; the service runs these inside the locked upsert.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from ..common.datetime_utils import ensure_utc, round_half_up
from .model import Timesheet, TimesheetItem, TimesheetTotals


def build_item(
    *,
    shift_id: int,
    participant_id: int,
    service: str,
    date: datetime,
    minutes: int,
    km: float = 0.0,
    hourly_rate_cents: int,
    km_rate_cents: int = 0,
    notes: Optional[str] = None,
) -> TimesheetItem:
    hours = minutes / 60
    amount_cents = round_half_up(hours * hourly_rate_cents)
    mileage_cents = round_half_up((km or 0) * km_rate_cents)
    return TimesheetItem(
        shift_id=int(shift_id),
        participant_id=int(participant_id),
        date=ensure_utc(date),
        service=service,
        minutes=int(minutes),
        hours=hours,
        km=float(km or 0),
        hourly_rate_cents=int(hourly_rate_cents),
        km_rate_cents=int(km_rate_cents),
        amount_cents=amount_cents,
        mileage_cents=mileage_cents,
        total_cents=amount_cents + mileage_cents,
        notes=notes,
    )


def backfill_hours(item: TimesheetItem) -> TimesheetItem:
    if item.hours is None:
        return replace(item, hours=item.minutes / 60)
    return item


def recompute_totals(items: Iterable[TimesheetItem]) -> TimesheetTotals:
    hours = 0.0
    km = 0.0
    amount = 0
    mileage = 0
    for i in items:
        hours += i.hours if i.hours is not None else i.minutes / 60
        km += i.km or 0
        amount += i.amount_cents or 0
        mileage += i.mileage_cents or 0
    return TimesheetTotals(
        hours=hours,
        km=km,
        amount_cents=amount,
        mileage_cents=mileage,
        total_cents=amount + mileage,
    )


def apply_item(timesheet: Timesheet, item: TimesheetItem, *, week_end: datetime) -> Timesheet:
    """Replace the line for item.shift_id (or append it), then recompute totals."""

    items = list(timesheet.items)
    for idx, existing in enumerate(items):
        if existing.shift_id == item.shift_id:
            items[idx] = item
            break
    else:
        items.append(item)

    items = [backfill_hours(i) for i in items]
    return replace(
        timesheet,
        items=tuple(items),
        totals=recompute_totals(items),
        week_end=ensure_utc(week_end),
    )
