from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import BillingSnapshot, Shift, ShiftReport


class ShiftRepository(Protocol):
    def create_in_progress(
        self,
        *,
        shift_request_id: int,
        participant_id: int,
        trainer_id: int,
        service: str,
        scheduled_start: datetime,
        scheduled_end: datetime,
        scheduled_duration_minutes: int,
        actual_clock_in: datetime,
        planned_clock_out: datetime,
    ) -> int:
        """Insert an IN_PROGRESS shift.

        Raises ConflictError when the request already has a live shift.
        """

        raise NotImplementedError

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        raise NotImplementedError

    def get_active_for_request(self, shift_request_id: int) -> Optional[Shift]:
        raise NotImplementedError

    def complete(
        self,
        *,
        shift_id: int,
        actual_clock_out: datetime,
        report: ShiftReport,
        billing: BillingSnapshot,
    ) -> bool:
        """Set COMPLETED with report/billing. False when the shift is CANCELLED or missing."""

        raise NotImplementedError

    def list_past(
        self,
        *,
        window_from: datetime,
        window_to: datetime,
        trainer_id: Optional[int],
        participant_id: Optional[int],
        limit: int,
        offset: int,
    ) -> tuple[Sequence[dict], int]:
        """Return (rows with request start/end, total) ordered by scheduled_end desc."""

        raise NotImplementedError
