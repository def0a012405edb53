from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence, Union

from ..common.datetime_utils import ensure_utc, parse_iso_datetime, utcnow
from ..common.pagination import ListParams, normalize_page, paginate, parse_sort
from ..common.validators import optional_text, parse_int_id, require_fields
from ..core.constants import MIN_REQUEST_MINUTES
from ..core.enums import Role, ShiftRequestStatus, UserStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..notifications.notifier import Notifier
from ..users.model import Participant, Trainer, User
from ..users.repository import UserRepository
from .model import ShiftRequest
from .repository import ShiftRequestRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewShiftRequest:
    participant_id: Any
    service: str
    start: Union[str, datetime, None]
    end: Union[str, datetime, None]
    notes: Optional[str] = None
    preferred_trainer_ids: Sequence[Any] = field(default_factory=tuple)


def _validate_window(start: datetime, end: datetime, now: datetime) -> None:
    if start >= end:
        raise ValidationError("End time must be after start time")
    if end < now:
        raise ValidationError("Cannot request a shift in the past")
    if (end - start).total_seconds() / 60 < MIN_REQUEST_MINUTES:
        raise ValidationError(f"Shift must be at least {MIN_REQUEST_MINUTES} minutes")


def _clean_trainer_ids(values: Sequence[Any]) -> tuple[int, ...]:
    if values is None:
        return ()
    if not isinstance(values, (list, tuple)):
        raise ValidationError("Invalid preferred trainer ids", errors={"preferred_trainer_ids": "invalid"})
    seen: list[int] = []
    for v in values:
        if v in (None, ""):
            continue
        tid = parse_int_id(v, "preferred_trainer_ids")
        if tid not in seen:
            seen.append(tid)
    return tuple(seen)


def _shift_info_html(req: ShiftRequest) -> str:
    start = ensure_utc(req.start)
    end = ensure_utc(req.end)
    return (
        f"<p><b>Service:</b> {req.service or 'N/A'}</p>"
        f"<p><b>Date:</b> {start.strftime('%A, %b %d %Y')}</p>"
        f"<p><b>Time:</b> {start.strftime('%I:%M %p')} - {end.strftime('%I:%M %p')} UTC</p>"
    )


class ShiftRequestService:
    def __init__(self, requests: ShiftRequestRepository, users: UserRepository, notifier: Notifier):
        self._requests = requests
        self._users = users
        self._notifier = notifier

    def create(
        self,
        *,
        current_user_id: int,
        current_role: Role,
        payload: NewShiftRequest,
        now: Optional[datetime] = None,
    ) -> ShiftRequest:
        require_fields(
            {
                "participant_id": payload.participant_id,
                "service": (payload.service or "").strip() if isinstance(payload.service, str) else payload.service,
                "start": payload.start,
                "end": payload.end,
            },
            ("participant_id", "service", "start", "end"),
        )

        if not isinstance(payload.service, str):
            raise ValidationError("service must be a string", errors={"service": "invalid"})
        participant_id = parse_int_id(payload.participant_id, "participantId")

        start = parse_iso_datetime(payload.start, "start")
        end = parse_iso_datetime(payload.end, "end")
        _validate_window(start, end, ensure_utc(now or utcnow()))

        participant_user = self._users.get_user(participant_id)
        if not participant_user:
            raise NotFoundError("Participant")
        if current_role != Role.ADMIN and participant_user.user_id != int(current_user_id):
            raise AuthorizationError("You are not allowed to create requests for this participant")

        request_id = self._requests.create(
            participant_id=participant_user.user_id,
            requested_by=int(current_user_id),
            service=payload.service.strip(),
            start=start,
            end=end,
            notes=optional_text(payload.notes),
            preferred_trainer_ids=_clean_trainer_ids(payload.preferred_trainer_ids),
        )
        created = self._requests.get_by_id(request_id)
        if not created:
            raise NotFoundError("ShiftRequest")
        logger.info("Shift request %s created for participant %s", request_id, participant_user.user_id)
        return created

    def approve_and_assign(
        self,
        *,
        request_id: int,
        trainer_id: int,
        admin_user_id: int,
        now: Optional[datetime] = None,
    ) -> ShiftRequest:
        req = self._requests.get_by_id(int(request_id))
        if not req:
            raise NotFoundError("ShiftRequest")
        if req.status != ShiftRequestStatus.PENDING_ADMIN:
            raise ConflictError("Only PENDING_ADMIN requests can be approved")

        trainer = self._users.get_trainer(int(trainer_id))
        if not trainer:
            raise NotFoundError("Trainer")
        trainer_user = self._users.get_user(trainer.user_id)
        if (
            not trainer_user
            or trainer_user.role != Role.TRAINER
            or trainer_user.status == UserStatus.BLOCKED
            or trainer.is_onboarding_pending
        ):
            raise ValidationError("Trainer is not eligible for assignment")

        ok = self._requests.approve(
            request_id=req.request_id,
            trainer_id=trainer.trainer_id,
            approved_by=int(admin_user_id),
            approved_at=ensure_utc(now or utcnow()),
        )
        if not ok:
            raise ConflictError("Only PENDING_ADMIN requests can be approved")

        updated = self._requests.get_by_id(req.request_id) or req
        logger.info("Shift request %s approved, trainer %s assigned", req.request_id, trainer.trainer_id)
        self._notify_assignment(updated, trainer, trainer_user)
        return updated

    def _notify_assignment(self, req: ShiftRequest, trainer: Trainer, trainer_user: User) -> None:
        try:
            participant: Optional[Participant] = self._users.get_participant_by_user_id(req.participant_id)
            info = _shift_info_html(req)
            trainer_name = trainer.full_name or "Trainer"

            self._notifier.send(
                to=trainer_user.email,
                subject="New Shift Assigned",
                html=(
                    f"<p>Hello {trainer_name},</p>"
                    "<p>You've been <b>assigned</b> to a new participant shift!</p>"
                    f"{info}"
                    f"<p>Participant: <b>{participant.full_name if participant else 'N/A'}</b></p>"
                    "<p>Please review full details in your CareLink dashboard.</p>"
                    "<p>Best regards,<br/>CareLink Team</p>"
                ),
            )

            if not participant or not participant.email:
                logger.warning("No participant profile email for user %s; skipping approval email", req.participant_id)
                return
            self._notifier.send(
                to=participant.email,
                subject="Your Shift Request Has Been Approved",
                html=(
                    f"<p>Hello {participant.full_name or 'Participant'},</p>"
                    "<p>Your shift request has been <b>approved</b> and assigned to trainer "
                    f"<b>{trainer.full_name or 'your trainer'}</b>.</p>"
                    f"{info}"
                    "<p>Thank you for using CareLink!</p>"
                    "<p>Best regards,<br/>CareLink Team</p>"
                ),
            )
        except Exception:
            logger.exception("Failed to send notification emails for shift request %s", req.request_id)

    def decline(
        self,
        *,
        request_id: int,
        admin_user_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShiftRequest:
        req = self._requests.get_by_id(int(request_id))
        if not req:
            raise NotFoundError("ShiftRequest")
        if req.status != ShiftRequestStatus.PENDING_ADMIN:
            raise ConflictError("Only PENDING_ADMIN requests can be declined")

        ok = self._requests.decline(
            request_id=req.request_id,
            declined_by=int(admin_user_id),
            declined_at=ensure_utc(now or utcnow()),
            reason=optional_text(reason),
        )
        if not ok:
            raise ConflictError("Only PENDING_ADMIN requests can be declined")
        logger.info("Shift request %s declined by %s", req.request_id, admin_user_id)
        return self._requests.get_by_id(req.request_id) or req

    @staticmethod
    def _normalized(params: ListParams) -> ListParams:
        page, limit = normalize_page(params.page, params.limit)
        return ListParams(
            page=page,
            limit=limit,
            statuses=tuple(params.statuses or ()),
            q=params.q,
            date_from=params.date_from,
            date_to=params.date_to,
            only_upcoming=params.only_upcoming,
            only_past=params.only_past,
            sort=params.sort,
            trainer_id=params.trainer_id,
            participant_id=params.participant_id,
        )

    def list_for_admin(self, params: ListParams, *, now: Optional[datetime] = None) -> dict:
        p = self._normalized(params)
        rows, total = self._requests.list_for_admin(p, sort=parse_sort(p.sort), now=ensure_utc(now or utcnow()))
        return paginate(rows, total=total, page=p.page, limit=p.limit)

    def list_for_participant(
        self, participant_user_id: int, params: ListParams, *, now: Optional[datetime] = None
    ) -> dict:
        p = self._normalized(params)
        rows, total = self._requests.list_for_participant(
            int(participant_user_id), p, sort=parse_sort(p.sort), now=ensure_utc(now or utcnow())
        )
        return paginate(rows, total=total, page=p.page, limit=p.limit)

    def list_for_trainer(self, trainer_user_id: int, params: ListParams, *, now: Optional[datetime] = None) -> dict:
        trainer = self._users.get_trainer_by_user_id(int(trainer_user_id))
        if not trainer:
            raise NotFoundError("Trainer")
        p = self._normalized(params)
        rows, total = self._requests.list_for_trainer(
            trainer.trainer_id, p, sort=parse_sort(p.sort), now=ensure_utc(now or utcnow())
        )
        return paginate(rows, total=total, page=p.page, limit=p.limit)

    def list_mine(self, *, user_id: int, role: Role, params: ListParams, now: Optional[datetime] = None) -> dict:
        if role == Role.TRAINER:
            return self.list_for_trainer(user_id, params, now=now)
        return self.list_for_participant(user_id, params, now=now)
