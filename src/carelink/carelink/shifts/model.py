from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import to_iso
from ..core.enums import ShiftStatus


@dataclass(frozen=True)
class ShiftReport:
    """Trainer's notes captured at clock-out."""

    activities: str = ""
    progress: str = ""
    incidents: str = ""
    km: Optional[float] = None

    def to_dict(self) -> dict:
        out: dict = {"activities": self.activities, "progress": self.progress, "incidents": self.incidents}
        if self.km is not None:
            out["km"] = self.km
        return out


@dataclass(frozen=True)
class BillingSnapshot:
    """Rates and minutes frozen on the shift when it is completed."""

    billable_minutes: int
    hourly_rate_cents: int
    km_rate_cents: int
    source: str
    scheduled_start: datetime
    scheduled_end: datetime

    def to_dict(self) -> dict:
        return {
            "billable_minutes": self.billable_minutes,
            "hourly_rate_cents": self.hourly_rate_cents,
            "km_rate_cents": self.km_rate_cents,
            "source": self.source,
            "scheduled_start": to_iso(self.scheduled_start),
            "scheduled_end": to_iso(self.scheduled_end),
        }


@dataclass(frozen=True)
class Shift:
    shift_id: int
    shift_request_id: int
    participant_id: int
    trainer_id: int
    service: str
    scheduled_start: datetime
    scheduled_end: datetime
    scheduled_duration_minutes: int
    actual_clock_in: datetime
    planned_clock_out: datetime
    status: ShiftStatus
    actual_clock_out: Optional[datetime] = None
    report: Optional[ShiftReport] = None
    billing: Optional[BillingSnapshot] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.shift_id,
            "shift_request_id": self.shift_request_id,
            "participant_id": self.participant_id,
            "trainer_id": self.trainer_id,
            "service": self.service,
            "scheduled_start": to_iso(self.scheduled_start),
            "scheduled_end": to_iso(self.scheduled_end),
            "scheduled_duration_minutes": self.scheduled_duration_minutes,
            "actual_clock_in": to_iso(self.actual_clock_in),
            "planned_clock_out": to_iso(self.planned_clock_out),
            "actual_clock_out": to_iso(self.actual_clock_out),
            "status": self.status.value,
            "report": self.report.to_dict() if self.report else None,
            "billing": self.billing.to_dict() if self.billing else None,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }
