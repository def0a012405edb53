from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..common.pagination import ListParams, SortSpec
from .model import ShiftRequest


class ShiftRequestRepository(Protocol):
    def create(
        self,
        *,
        participant_id: int,
        requested_by: int,
        service: str,
        start: datetime,
        end: datetime,
        notes: Optional[str],
        preferred_trainer_ids: Sequence[int],
    ) -> int:
        raise NotImplementedError

    def get_by_id(self, request_id: int) -> Optional[ShiftRequest]:
        raise NotImplementedError

    def approve(self, *, request_id: int, trainer_id: int, approved_by: int, approved_at: datetime) -> bool:
        """PENDING_ADMIN -> APPROVED. False when the request is no longer pending."""

        raise NotImplementedError

    def decline(self, *, request_id: int, declined_by: int, declined_at: datetime, reason: Optional[str]) -> bool:
        """PENDING_ADMIN -> DECLINED. False when the request is no longer pending."""

        raise NotImplementedError

    def link_shift(self, *, request_id: int, shift_id: int) -> bool:
        raise NotImplementedError

    def mark_completed(self, *, request_id: int) -> bool:
        raise NotImplementedError

    def list_for_admin(self, params: ListParams, *, sort: SortSpec, now: datetime) -> tuple[Sequence[dict], int]:
        """Return (UI rows joined with participant user/profile, total)."""

        raise NotImplementedError

    def list_for_participant(
        self, participant_user_id: int, params: ListParams, *, sort: SortSpec, now: datetime
    ) -> tuple[Sequence[dict], int]:
        """Return (UI rows joined with the assigned trainer, total)."""

        raise NotImplementedError

    def list_for_trainer(
        self, trainer_id: int, params: ListParams, *, sort: SortSpec, now: datetime
    ) -> tuple[Sequence[dict], int]:
        """Return (UI rows joined with participant and latest shift, total)."""

        raise NotImplementedError
