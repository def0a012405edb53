from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import end_of_week_utc, ensure_utc, parse_optional_datetime, start_of_week_utc, utcnow
from ..common.pagination import normalize_page, paginate
from ..core.enums import Role, TimesheetStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..users.model import Participant, Trainer, Viewer
from ..users.repository import UserRepository
from . import calculator
from .export import CsvTimesheetRenderer, ExportFile, TimesheetRenderer, build_export_payload
from .model import AuditEntry, Timesheet
from .repository import TimesheetRepository

logger = logging.getLogger(__name__)

SUBMITTABLE = (TimesheetStatus.DRAFT, TimesheetStatus.REOPENED)
APPROVABLE = (TimesheetStatus.SUBMITTED, TimesheetStatus.REOPENED)
REOPENABLE = (TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED)


def _sources(statuses) -> str:
    return "/".join(s.value for s in statuses)


class TimesheetService:
    def __init__(
        self,
        timesheets: TimesheetRepository,
        users: UserRepository,
        *,
        renderers: Optional[dict[str, TimesheetRenderer]] = None,
    ):
        self._timesheets = timesheets
        self._users = users
        self._renderers: dict[str, TimesheetRenderer] = {"csv": CsvTimesheetRenderer()}
        self._renderers.update(renderers or {})

    def upsert_item_for_shift(
        self,
        *,
        trainer_id: int,
        participant_id: int,
        shift_id: int,
        service: str,
        date: datetime,
        minutes: int,
        km: float = 0.0,
        hourly_rate_cents: int,
        km_rate_cents: int = 0,
        notes: Optional[str] = None,
    ) -> Timesheet:
        week_start = start_of_week_utc(date)
        week_end = end_of_week_utc(week_start)
        item = calculator.build_item(
            shift_id=shift_id,
            participant_id=participant_id,
            service=service,
            date=date,
            minutes=minutes,
            km=km,
            hourly_rate_cents=hourly_rate_cents,
            km_rate_cents=km_rate_cents,
            notes=notes,
        )

        ts = self._timesheets.upsert_for_week(
            trainer_id=int(trainer_id),
            week_start=week_start,
            week_end=week_end,
            apply=lambda current: calculator.apply_item(current, item, week_end=week_end),
        )
        logger.info(
            "Timesheet %s: shift %s billed (%s min, total %s cents)",
            ts.timesheet_id,
            shift_id,
            minutes,
            ts.totals.total_cents,
        )
        return ts

    def _require(self, timesheet_id: int) -> Timesheet:
        ts = self._timesheets.get_by_id(int(timesheet_id))
        if not ts:
            raise NotFoundError("Timesheet")
        return ts

    def _ensure_can_view(self, ts: Timesheet, viewer: Viewer) -> None:
        if viewer.role == Role.ADMIN:
            return
        if viewer.role != Role.TRAINER:
            raise AuthorizationError("Forbidden")
        me = self._users.get_trainer_by_user_id(viewer.user_id)
        if not me or me.trainer_id != ts.trainer_id:
            raise AuthorizationError("Forbidden")

    def _transition(
        self,
        ts: Timesheet,
        sources: tuple[TimesheetStatus, ...],
        target: TimesheetStatus,
        verb: str,
        audit_entry: Optional[AuditEntry] = None,
    ) -> Timesheet:
        message = f"Only {_sources(sources)} can be {verb}"
        if ts.status not in sources:
            raise ConflictError(message)
        ok = self._timesheets.transition(
            timesheet_id=ts.timesheet_id,
            from_statuses=sources,
            to_status=target,
            audit_entry=audit_entry,
        )
        if not ok:
            raise ConflictError(message)
        logger.info("Timesheet %s %s -> %s", ts.timesheet_id, ts.status.value, target.value)
        return self._require(ts.timesheet_id)

    def get_timesheet(self, timesheet_id: int, viewer: Viewer) -> Timesheet:
        ts = self._require(timesheet_id)
        self._ensure_can_view(ts, viewer)
        return ts

    def submit(self, timesheet_id: int, viewer: Viewer) -> Timesheet:
        ts = self._require(timesheet_id)
        if viewer.role != Role.ADMIN:
            self._ensure_can_view(ts, viewer)
        return self._transition(ts, SUBMITTABLE, TimesheetStatus.SUBMITTED, "submitted")

    def approve(self, timesheet_id: int, admin_user_id: int) -> Timesheet:
        ts = self._require(timesheet_id)
        return self._transition(ts, APPROVABLE, TimesheetStatus.APPROVED, "approved")

    def reopen(
        self,
        timesheet_id: int,
        admin_user_id: int,
        reason: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Timesheet:
        ts = self._require(timesheet_id)
        entry = AuditEntry(by=int(admin_user_id), at=ensure_utc(now or utcnow()), reason=reason)
        return self._transition(ts, REOPENABLE, TimesheetStatus.REOPENED, "reopened", audit_entry=entry)

    def _resolve_trainer(self, raw_id: int) -> Trainer:
        """Admins may pass either a Trainer id or the trainer's User id."""

        trainer = self._users.get_trainer(int(raw_id)) or self._users.get_trainer_by_user_id(int(raw_id))
        if not trainer:
            raise NotFoundError("Trainer")
        return trainer

    def list_timesheets(
        self,
        viewer: Viewer,
        *,
        status: Optional[str] = None,
        week_start: Optional[str] = None,
        trainer_id: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        page, limit = normalize_page(page, limit)

        if status:
            try:
                status = TimesheetStatus(status.strip().upper()).value
            except ValueError:
                raise ValidationError("Invalid status", errors={"status": "invalid"})

        filter_trainer: Optional[int] = None
        if viewer.role == Role.TRAINER:
            me = self._users.get_trainer_by_user_id(viewer.user_id)
            if not me:
                raise NotFoundError("Trainer")
            filter_trainer = me.trainer_id
        elif viewer.role == Role.ADMIN:
            if trainer_id is not None:
                filter_trainer = self._resolve_trainer(trainer_id).trainer_id
        else:
            raise AuthorizationError("Forbidden")

        rows, total = self._timesheets.list_page(
            trainer_id=filter_trainer,
            status=status or None,
            week_start=parse_optional_datetime(week_start, "weekStart"),
            limit=limit,
            offset=(page - 1) * limit,
        )

        participants = self._users.get_participants_by_user_ids(
            [i.participant_id for ts in rows for i in ts.items]
        )
        trainers = self._users.get_trainers_by_ids([ts.trainer_id for ts in rows])

        data = [self._enrich(ts, trainers.get(ts.trainer_id), participants) for ts in rows]
        return paginate(data, total=total, page=page, limit=limit)

    def _enrich(self, ts: Timesheet, trainer: Optional[Trainer], participants: dict[int, Participant]) -> dict:
        out = ts.to_dict()
        for item in out["items"]:
            p = participants.get(item["participant_id"])
            item["participant"] = (
                {
                    "user_id": p.user_id,
                    "participant_id": p.participant_id,
                    "full_name": p.full_name,
                    "email": p.email or "",
                    "phone": p.phone or "",
                    "status": p.status.value if p.status else "",
                }
                if p
                else None
            )

        trainer_user = self._users.get_user(trainer.user_id) if trainer else None
        out["admin_view"] = {
            "trainer_id": ts.trainer_id,
            "trainer_name": (trainer.full_name if trainer else None) or "(No name)",
            "trainer_phone": (trainer.phone if trainer else None) or "",
            "trainer_email": trainer_user.email if trainer_user else "",
            "items_count": len(ts.items),
            "amounts": {
                "hours": ts.totals.hours,
                "km": ts.totals.km,
                "labour_cents": ts.totals.amount_cents,
                "mileage_cents": ts.totals.mileage_cents,
                "total_cents": ts.totals.total_cents,
            },
        }
        return out

    def export(self, timesheet_id: int, viewer: Viewer, fmt: str = "csv") -> ExportFile:
        fmt = (fmt or "csv").strip().lower()
        if fmt not in ("csv", "pdf"):
            raise ValidationError("format must be csv or pdf", errors={"format": "invalid"})
        renderer = self._renderers.get(fmt)
        if renderer is None:
            raise ValidationError(f"{fmt.upper()} export is not available", errors={"format": "unavailable"})

        ts = self.get_timesheet(timesheet_id, viewer)
        trainer = self._users.get_trainer(ts.trainer_id)
        trainer_user = self._users.get_user(trainer.user_id) if trainer else None
        participants = self._users.get_participants_by_user_ids([i.participant_id for i in ts.items])

        payload = build_export_payload(
            ts,
            trainer=trainer,
            trainer_email=trainer_user.email if trainer_user else None,
            participants=participants,
        )
        content = renderer.render(payload)
        name_date = payload["week_start_iso"] or utcnow().strftime("%Y-%m-%d")
        return ExportFile(
            filename=f"timesheet_{ts.timesheet_id}_{name_date}.{renderer.extension}",
            mime=renderer.mime,
            content=content,
        )
