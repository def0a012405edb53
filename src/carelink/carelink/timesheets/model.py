from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..common.datetime_utils import parse_iso_datetime, to_iso
from ..core.enums import TimesheetStatus


@dataclass(frozen=True)
class TimesheetItem:
    """One billed shift line; keyed by shift_id within a timesheet."""

    shift_id: int
    participant_id: int
    date: datetime
    service: str
    minutes: int
    hours: float
    km: float
    hourly_rate_cents: int
    km_rate_cents: int
    amount_cents: int
    mileage_cents: int
    total_cents: int
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "participant_id": self.participant_id,
            "date": to_iso(self.date),
            "service": self.service,
            "minutes": self.minutes,
            "hours": self.hours,
            "km": self.km,
            "hourly_rate_cents": self.hourly_rate_cents,
            "km_rate_cents": self.km_rate_cents,
            "amount_cents": self.amount_cents,
            "mileage_cents": self.mileage_cents,
            "total_cents": self.total_cents,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "TimesheetItem":
        minutes = int(raw.get("minutes") or 0)
        hours = raw.get("hours")
        return cls(
            shift_id=int(raw["shift_id"]),
            participant_id=int(raw["participant_id"]),
            date=parse_iso_datetime(raw.get("date"), "date"),
            service=raw.get("service") or "",
            minutes=minutes,
            # Legacy rows may lack hours.
            hours=float(hours) if isinstance(hours, (int, float)) and not isinstance(hours, bool) else minutes / 60,
            km=float(raw.get("km") or 0),
            hourly_rate_cents=int(raw.get("hourly_rate_cents") or 0),
            km_rate_cents=int(raw.get("km_rate_cents") or 0),
            amount_cents=int(raw.get("amount_cents") or 0),
            mileage_cents=int(raw.get("mileage_cents") or 0),
            total_cents=int(raw.get("total_cents") or 0),
            notes=raw.get("notes"),
        )


@dataclass(frozen=True)
class TimesheetTotals:
    hours: float = 0.0
    km: float = 0.0
    amount_cents: int = 0
    mileage_cents: int = 0
    total_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "hours": self.hours,
            "km": self.km,
            "amount_cents": self.amount_cents,
            "mileage_cents": self.mileage_cents,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class AuditEntry:
    by: int
    at: datetime
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {"by": self.by, "at": to_iso(self.at), "reason": self.reason}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AuditEntry":
        return cls(by=int(raw["by"]), at=parse_iso_datetime(raw.get("at"), "at"), reason=raw.get("reason"))


@dataclass(frozen=True)
class Timesheet:
    timesheet_id: int
    trainer_id: int
    week_start: datetime
    week_end: datetime
    status: TimesheetStatus
    items: tuple[TimesheetItem, ...] = field(default_factory=tuple)
    totals: TimesheetTotals = field(default_factory=TimesheetTotals)
    audit: tuple[AuditEntry, ...] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.timesheet_id,
            "trainer_id": self.trainer_id,
            "week_start": to_iso(self.week_start),
            "week_end": to_iso(self.week_end),
            "status": self.status.value,
            "items": [i.to_dict() for i in self.items],
            "totals": self.totals.to_dict(),
            "audit": [a.to_dict() for a in self.audit],
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }
