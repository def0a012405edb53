from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..common.datetime_utils import day_bounds_utc, ensure_utc, to_iso, utcnow
from ..core.constants import RECENT_ITEMS_LIMIT
from ..core.enums import Role, ShiftRequestStatus, ShiftStatus, TimesheetStatus, UserStatus
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..users.model import Trainer, Viewer
from ..users.repository import UserRepository
from .repository import DashboardRepository

_ROLE_KEYS = {Role.ADMIN.value: "admins", Role.TRAINER.value: "trainers", Role.PARTICIPANT.value: "participants"}


def _zero_filled(counts: dict[str, int], statuses: Iterable[str]) -> dict[str, int]:
    """Every known status appears, lower-cased, even with no rows."""

    return {s.lower(): int(counts.get(s, 0)) for s in statuses}


def _iso_row(row: dict) -> dict:
    return {k: to_iso(v) if isinstance(v, datetime) else v for k, v in row.items()}


class DashboardService:
    def __init__(self, dashboard: DashboardRepository, users: UserRepository):
        self._dashboard = dashboard
        self._users = users

    def _resolve_trainer(self, viewer: Viewer, trainer_id: Optional[int]) -> Trainer:
        if viewer.role == Role.TRAINER:
            me = self._users.get_trainer_by_user_id(viewer.user_id)
            if not me:
                raise NotFoundError("Trainer")
            return me
        if viewer.role == Role.ADMIN:
            if trainer_id is None:
                raise ValidationError("trainerId is required for admins", errors={"trainerId": "required"})
            # Either id space is accepted: Trainer id first, then the trainer's User id.
            t = self._users.get_trainer(int(trainer_id)) or self._users.get_trainer_by_user_id(int(trainer_id))
            if not t:
                raise NotFoundError("Trainer")
            return t
        raise AuthorizationError("Forbidden")

    def _participant_name(self, participant_user_id: Optional[int]) -> Optional[str]:
        if participant_user_id is None:
            return None
        p = self._users.get_participant_by_user_id(int(participant_user_id))
        return p.full_name if p else None

    def trainer_summary(self, viewer: Viewer, trainer_id: Optional[int] = None, now: Optional[datetime] = None) -> dict:
        trainer = self._resolve_trainer(viewer, trainer_id)
        now = ensure_utc(now or utcnow())

        total_shifts = self._dashboard.count_trainer_shifts(trainer.trainer_id)
        total_upcoming, next_req = self._dashboard.upcoming_trainer_requests(trainer.trainer_id, now=now)

        next_shift = None
        if next_req:
            next_shift = {
                "shift_id": None,
                "service": next_req.get("service"),
                "status": next_req.get("status"),
                "start": to_iso(next_req.get("start")),
                "end": to_iso(next_req.get("end")),
                "participant_id": next_req.get("participant_id"),
                "participant_name": self._participant_name(next_req.get("participant_id")),
                "source": "REQUEST",
            }
        else:
            live = self._dashboard.earliest_live_trainer_shift(trainer.trainer_id)
            if live:
                next_shift = {
                    "shift_id": live.get("id"),
                    "service": live.get("service"),
                    "status": live.get("status"),
                    "start": to_iso(live.get("start")),
                    "end": to_iso(live.get("end")),
                    "participant_id": live.get("participant_id"),
                    "participant_name": self._participant_name(live.get("participant_id")),
                    "source": "SHIFT",
                }

        return {
            "total_shifts": total_shifts,
            "total_upcoming": total_upcoming,
            "next_shift": next_shift,
            "generated_at": to_iso(now),
        }

    def admin_summary(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        now = ensure_utc(now or utcnow())
        today = day_bounds_utc(now)
        d = self._dashboard

        user_statuses = [s.value for s in UserStatus]
        by_role = d.count_users_by_role()

        return {
            "generated_at": to_iso(now),
            "users": {
                "total": d.count("users"),
                "by_role": {key: int(by_role.get(role, 0)) for role, key in _ROLE_KEYS.items()},
                "by_status": _zero_filled(d.count_by_status("users"), user_statuses),
                "created_in_window": d.count(
                    "users",
                    created_from=ensure_utc(date_from) if date_from else None,
                    created_to=ensure_utc(date_to) if date_to else None,
                ),
                "recent": [_iso_row(r) for r in d.recent("users", limit=RECENT_ITEMS_LIMIT)],
            },
            "trainers": {
                "total": d.count("trainers"),
                "active": d.count_trainers_with_status("active"),
                "pending": d.count_trainers_with_status("pending"),
            },
            "participants": {
                "total": d.count("participants"),
                "by_status": _zero_filled(d.count_by_status("participants"), user_statuses),
            },
            "shift_requests": {
                "total": d.count("shift_requests"),
                "by_status": _zero_filled(d.count_by_status("shift_requests"), [s.value for s in ShiftRequestStatus]),
                "upcoming": d.count_requests_starting(
                    statuses=[ShiftRequestStatus.APPROVED.value, ShiftRequestStatus.IN_PROGRESS.value],
                    after=now,
                ),
                "today": d.count_requests_starting(
                    statuses=[
                        ShiftRequestStatus.APPROVED.value,
                        ShiftRequestStatus.IN_PROGRESS.value,
                        ShiftRequestStatus.COMPLETED.value,
                    ],
                    window=today,
                ),
                "recent": [_iso_row(r) for r in d.recent("shift_requests", limit=RECENT_ITEMS_LIMIT)],
            },
            "shifts": {
                "total": d.count("shifts"),
                "by_status": _zero_filled(d.count_by_status("shifts"), [s.value for s in ShiftStatus]),
                "upcoming": d.count_live_shifts_starting(after=now),
                "today": d.count_live_shifts_starting(window=today),
                "recent": [_iso_row(r) for r in d.recent("shifts", limit=RECENT_ITEMS_LIMIT)],
            },
            "timesheets": {
                "total": d.count("timesheets"),
                "by_status": _zero_filled(d.count_by_status("timesheets"), [s.value for s in TimesheetStatus]),
            },
        }
