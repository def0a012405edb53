from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

# Entities the aggregate counters may address.
ENTITIES = ("users", "trainers", "participants", "shift_requests", "shifts", "timesheets")


class DashboardRepository(Protocol):
    """Read-only counters behind the dashboards.

    Rows returned here are plain dicts carrying aware UTC datetimes.
    """

    def count(
        self,
        entity: str,
        *,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> int:
        raise NotImplementedError

    def count_by_status(self, entity: str) -> dict[str, int]:
        raise NotImplementedError

    def count_users_by_role(self) -> dict[str, int]:
        raise NotImplementedError

    def count_trainers_with_status(self, status_text: str) -> int:
        """Trainer profiles whose free-text status contains `status_text`, case-insensitively."""

        raise NotImplementedError

    def count_requests_starting(
        self,
        *,
        statuses: Sequence[str],
        after: Optional[datetime] = None,
        window: Optional[tuple[datetime, datetime]] = None,
    ) -> int:
        raise NotImplementedError

    def count_live_shifts_starting(
        self,
        *,
        after: Optional[datetime] = None,
        window: Optional[tuple[datetime, datetime]] = None,
    ) -> int:
        """Shifts not CANCELLED whose scheduled start is after `after` or inside `window`."""

        raise NotImplementedError

    def recent(self, entity: str, *, limit: int) -> list[dict]:
        raise NotImplementedError

    def count_trainer_shifts(self, trainer_id: int) -> int:
        raise NotImplementedError

    def upcoming_trainer_requests(self, trainer_id: int, *, now: datetime) -> tuple[int, Optional[dict]]:
        """(count of APPROVED requests starting after now, soonest of them)."""

        raise NotImplementedError

    def earliest_live_trainer_shift(self, trainer_id: int) -> Optional[dict]:
        raise NotImplementedError
