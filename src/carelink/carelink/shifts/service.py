from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from ..common.datetime_utils import ensure_utc, minutes_between, round_half_up, utcnow
from ..common.pagination import ListParams, normalize_page, paginate
from ..common.validators import parse_non_negative_number
from ..core.constants import BILLING_SOURCE_SHIFT_REQUEST
from ..core.enums import Role, ShiftRequestStatus, ShiftStatus
from ..core.exceptions import AuthorizationError, ConflictError, InvariantError, NotFoundError
from ..shift_requests.model import ShiftRequest
from ..shift_requests.repository import ShiftRequestRepository
from ..timesheets.service import TimesheetService
from ..users.model import Trainer, Viewer
from ..users.repository import UserRepository
from .model import BillingSnapshot, Shift, ShiftReport
from .pricing import FixedRatePricingResolver, PricingResolver
from .repository import ShiftRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClockOutReport:
    activities: Optional[str] = None
    progress: Optional[str] = None
    incidents: Optional[str] = None
    km: Any = None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class ShiftExecutionService:
    """Trainer clock-in/clock-out.

    Billing always comes from the request's scheduled window; clock times are kept for audit only.
    """

    def __init__(
        self,
        shifts: ShiftRepository,
        requests: ShiftRequestRepository,
        users: UserRepository,
        timesheets: TimesheetService,
        *,
        pricing: Optional[PricingResolver] = None,
    ):
        self._shifts = shifts
        self._requests = requests
        self._users = users
        self._timesheets = timesheets
        self._pricing = pricing or FixedRatePricingResolver()

    def _owned_request(self, trainer_user_id: int, shift_request_id: int) -> tuple[Trainer, ShiftRequest]:
        trainer = self._users.get_trainer_by_user_id(int(trainer_user_id))
        if not trainer:
            raise NotFoundError("Trainer", "Trainer profile not found for this user")
        req = self._requests.get_by_id(int(shift_request_id))
        if not req:
            raise NotFoundError("ShiftRequest")
        if req.assigned_trainer_id is None or int(req.assigned_trainer_id) != trainer.trainer_id:
            raise AuthorizationError("This shift request is not assigned to you")
        return trainer, req

    def clock_in(self, *, trainer_user_id: int, shift_request_id: int, now: Optional[datetime] = None) -> Shift:
        trainer, req = self._owned_request(trainer_user_id, shift_request_id)
        if req.status != ShiftRequestStatus.APPROVED:
            raise ConflictError("Only approved shift requests can be started")
        if self._shifts.get_active_for_request(req.request_id):
            raise ConflictError("This shift is already in progress")

        if req.end <= req.start:
            raise InvariantError("Shift request has invalid time window")
        duration = req.end - req.start
        now = ensure_utc(now or utcnow())

        shift_id = self._shifts.create_in_progress(
            shift_request_id=req.request_id,
            participant_id=req.participant_id,
            trainer_id=trainer.trainer_id,
            service=req.service,
            scheduled_start=req.start,
            scheduled_end=req.end,
            scheduled_duration_minutes=round_half_up(duration.total_seconds() / 60),
            actual_clock_in=now,
            planned_clock_out=now + duration,
        )
        self._requests.link_shift(request_id=req.request_id, shift_id=shift_id)
        logger.info("Trainer %s clocked in on request %s (shift %s)", trainer.trainer_id, req.request_id, shift_id)

        shift = self._shifts.get_by_id(shift_id)
        if not shift:
            raise NotFoundError("Shift")
        return shift

    def clock_out(
        self,
        *,
        trainer_user_id: int,
        shift_request_id: int,
        report: Optional[ClockOutReport] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        trainer, req = self._owned_request(trainer_user_id, shift_request_id)
        if req.linked_shift_id is None:
            raise NotFoundError("Shift")
        shift = self._shifts.get_by_id(req.linked_shift_id)
        if not shift:
            raise NotFoundError("Shift")
        if shift.status == ShiftStatus.CANCELLED:
            raise ConflictError("Cancelled shifts cannot be clocked out")

        report = report or ClockOutReport()
        km = parse_non_negative_number(report.km, "km")
        shift_report = ShiftReport(
            activities=_text(report.activities),
            progress=_text(report.progress),
            incidents=_text(report.incidents),
            km=km,
        )

        now = ensure_utc(now or utcnow())
        actual_out = min(now, shift.scheduled_end)

        billable_minutes = minutes_between(req.start, req.end)
        rates = self._pricing.resolve(shift)
        billing = BillingSnapshot(
            billable_minutes=billable_minutes,
            hourly_rate_cents=rates.hourly_rate_cents,
            km_rate_cents=rates.km_rate_cents,
            source=BILLING_SOURCE_SHIFT_REQUEST,
            scheduled_start=req.start,
            scheduled_end=req.end,
        )

        ok = self._shifts.complete(
            shift_id=shift.shift_id,
            actual_clock_out=actual_out,
            report=shift_report,
            billing=billing,
        )
        if not ok:
            raise ConflictError("Cancelled shifts cannot be clocked out")
        self._requests.mark_completed(request_id=req.request_id)

        timesheet = self._timesheets.upsert_item_for_shift(
            trainer_id=shift.trainer_id,
            participant_id=shift.participant_id,
            shift_id=shift.shift_id,
            service=shift.service,
            date=req.end,
            minutes=billable_minutes,
            km=km or 0.0,
            hourly_rate_cents=rates.hourly_rate_cents,
            km_rate_cents=rates.km_rate_cents,
        )
        logger.info(
            "Trainer %s clocked out of shift %s: %s billable minutes",
            trainer.trainer_id,
            shift.shift_id,
            billable_minutes,
        )

        completed = self._shifts.get_by_id(shift.shift_id) or shift
        return {"shift": completed, "timesheet": timesheet}

    def list_past_shifts(self, viewer: Viewer, params: ListParams, *, now: Optional[datetime] = None) -> dict:
        page, limit = normalize_page(params.page, params.limit)
        now = ensure_utc(now or utcnow())
        window_from = ensure_utc(params.date_from) if params.date_from else datetime(1970, 1, 1, tzinfo=now.tzinfo)
        window_to = min(ensure_utc(params.date_to), now) if params.date_to else now

        trainer_filter: Optional[int] = None
        participant_filter: Optional[int] = None
        if viewer.role == Role.TRAINER:
            me = self._users.get_trainer_by_user_id(viewer.user_id)
            if not me:
                raise NotFoundError("Trainer")
            trainer_filter = me.trainer_id
        elif viewer.role == Role.PARTICIPANT:
            participant_filter = viewer.user_id
        else:
            if params.trainer_id is not None:
                t = self._users.get_trainer(params.trainer_id) or self._users.get_trainer_by_user_id(params.trainer_id)
                if not t:
                    raise NotFoundError("Trainer")
                trainer_filter = t.trainer_id
            if params.participant_id is not None:
                participant_filter = self._resolve_participant_user_id(params.participant_id)

        rows, total = self._shifts.list_past(
            window_from=window_from,
            window_to=window_to,
            trainer_id=trainer_filter,
            participant_id=participant_filter,
            limit=limit,
            offset=(page - 1) * limit,
        )

        participants = self._users.get_participants_by_user_ids([r["participant_id"] for r in rows])
        trainers = self._users.get_trainers_by_ids([r["trainer_id"] for r in rows]) if viewer.is_admin else {}

        data = []
        for r in rows:
            row = dict(r)
            if viewer.role in (Role.TRAINER, Role.ADMIN):
                p = participants.get(r["participant_id"])
                row["participant_name"] = p.full_name if p else None
            if viewer.is_admin:
                t = trainers.get(r["trainer_id"])
                row["trainer_name"] = t.full_name if t else None
            data.append(row)
        return paginate(data, total=total, page=page, limit=limit)

    def _resolve_participant_user_id(self, raw_id: int) -> int:
        """Shifts store the participant's User id; accept that directly."""

        user = self._users.get_user(int(raw_id))
        if not user:
            raise NotFoundError("Participant")
        return user.user_id
