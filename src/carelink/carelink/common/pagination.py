from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

# Only these fields may reach ORDER BY.
SORT_FIELDS = ("createdAt", "start")


@dataclass(frozen=True)
class ListParams:
    """Filters/pagination shared by the shift request and shift listings."""

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    statuses: tuple[str, ...] = ()
    q: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    only_upcoming: bool = False
    only_past: bool = False
    sort: str = "createdAt:desc"
    trainer_id: Optional[int] = None
    participant_id: Optional[int] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class SortSpec:
    field: str = "createdAt"
    descending: bool = True


def normalize_page(page: Any, limit: Any) -> tuple[int, int]:
    try:
        p = int(page) if page not in (None, "") else 1
    except (TypeError, ValueError):
        p = 1
    try:
        lim = int(limit) if limit not in (None, "") else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        lim = DEFAULT_PAGE_SIZE
    return max(p, 1), min(max(lim, 1), MAX_PAGE_SIZE)


def parse_sort(sort: Optional[str]) -> SortSpec:
    """Parse 'field:dir'; unknown fields fall back to createdAt, unknown dirs to desc."""
    raw_field, _, raw_dir = (sort or "createdAt:desc").partition(":")
    sort_field = raw_field if raw_field in SORT_FIELDS else "createdAt"
    return SortSpec(field=sort_field, descending=raw_dir != "asc")


def paginate(data: Sequence[Any], *, total: int, page: int, limit: int) -> dict:
    return {
        "data": list(data),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": int(total),
            "pages": math.ceil(int(total) / max(1, limit)),
        },
    }
