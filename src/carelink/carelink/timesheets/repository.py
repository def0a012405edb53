from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional, Protocol, Sequence

from ..core.enums import TimesheetStatus
from .model import AuditEntry, Timesheet


class TimesheetRepository(Protocol):
    def upsert_for_week(
        self,
        *,
        trainer_id: int,
        week_start: datetime,
        week_end: datetime,
        apply: Callable[[Timesheet], Timesheet],
    ) -> Timesheet:
        """Get-or-create the DRAFT sheet for (trainer, week), run `apply` on it and persist the result.

        The whole read-modify-write runs in one transaction holding the row lock.
        """

        raise NotImplementedError

    def get_by_id(self, timesheet_id: int) -> Optional[Timesheet]:
        raise NotImplementedError

    def transition(
        self,
        *,
        timesheet_id: int,
        from_statuses: Iterable[TimesheetStatus],
        to_status: TimesheetStatus,
        audit_entry: Optional[AuditEntry] = None,
    ) -> bool:
        """Conditional status change; False when the current status is not in from_statuses."""

        raise NotImplementedError

    def list_page(
        self,
        *,
        trainer_id: Optional[int],
        status: Optional[str],
        week_start: Optional[datetime],
        limit: int,
        offset: int,
    ) -> tuple[Sequence[Timesheet], int]:
        """Newest week first."""

        raise NotImplementedError
