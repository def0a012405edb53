from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import ShiftRequestStatus, ShiftStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, in_clause, to_db_datetime
from .repository import ENTITIES, DashboardRepository

_STATUS_TABLES = ("users", "participants", "shift_requests", "shifts", "timesheets")

_RECENT_QUERIES = {
    "users": (
        "SELECT user_id AS id, email, role, status, created_at FROM users "
        "ORDER BY created_at DESC, user_id DESC LIMIT %s"
    ),
    "shift_requests": (
        "SELECT request_id AS id, participant_id, assigned_trainer_id, status, start_at AS `start`, end_at AS `end`, "
        "created_at FROM shift_requests ORDER BY created_at DESC, request_id DESC LIMIT %s"
    ),
    "shifts": (
        "SELECT shift_id AS id, trainer_id, participant_id, status, scheduled_start, scheduled_end, created_at "
        "FROM shifts ORDER BY created_at DESC, shift_id DESC LIMIT %s"
    ),
}

_DATETIME_KEYS = ("created_at", "start", "end", "scheduled_start", "scheduled_end")


def _check_entity(entity: str, allowed: Sequence[str] = ENTITIES) -> str:
    if entity not in allowed:
        raise ValueError(f"Unsupported entity: {entity}")
    return entity


def _with_utc(row: dict) -> dict:
    out = dict(row)
    for key in _DATETIME_KEYS:
        if key in out:
            out[key] = from_db_datetime(out[key])
    return out


def _window_clause(column: str, after: Optional[datetime], window: Optional[tuple[datetime, datetime]]):
    clauses: list[str] = []
    values: list[object] = []
    if after is not None:
        clauses.append(f"{column} > %s")
        values.append(to_db_datetime(after))
    if window is not None:
        clauses.append(f"{column} BETWEEN %s AND %s")
        values.extend([to_db_datetime(window[0]), to_db_datetime(window[1])])
    return clauses, values


class MySQLDashboardRepository(DashboardRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _scalar(self, sql: str, params: tuple = ()) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            r = fetchone(cur) or {}
            return int(r.get("total") or 0)

    def count(
        self,
        entity: str,
        *,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> int:
        table = _check_entity(entity)
        clauses = ["1=1"]
        values: list[object] = []
        if created_from is not None:
            clauses.append("created_at >= %s")
            values.append(to_db_datetime(created_from))
        if created_to is not None:
            clauses.append("created_at <= %s")
            values.append(to_db_datetime(created_to))
        return self._scalar(f"SELECT COUNT(*) AS total FROM {table} WHERE {' AND '.join(clauses)}", tuple(values))

    def count_by_status(self, entity: str) -> dict[str, int]:
        table = _check_entity(entity, _STATUS_TABLES)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT status, COUNT(*) AS total FROM {table} GROUP BY status")
            return {str(r["status"]): int(r["total"]) for r in fetchall(cur)}

    def count_users_by_role(self) -> dict[str, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT role, COUNT(*) AS total FROM users GROUP BY role")
            return {str(r["role"]): int(r["total"]) for r in fetchall(cur)}

    def count_trainers_with_status(self, status_text: str) -> int:
        return self._scalar(
            "SELECT COUNT(*) AS total FROM trainers WHERE LOWER(status) LIKE %s",
            (f"%{status_text.lower()}%",),
        )

    def count_requests_starting(
        self,
        *,
        statuses: Sequence[str],
        after: Optional[datetime] = None,
        window: Optional[tuple[datetime, datetime]] = None,
    ) -> int:
        if not statuses:
            return 0
        clauses, values = _window_clause("start_at", after, window)
        clauses.append(f"status IN ({in_clause(list(statuses))})")
        values.extend(statuses)
        return self._scalar(
            f"SELECT COUNT(*) AS total FROM shift_requests WHERE {' AND '.join(clauses)}", tuple(values)
        )

    def count_live_shifts_starting(
        self,
        *,
        after: Optional[datetime] = None,
        window: Optional[tuple[datetime, datetime]] = None,
    ) -> int:
        clauses, values = _window_clause("scheduled_start", after, window)
        clauses.append("status <> %s")
        values.append(ShiftStatus.CANCELLED.value)
        return self._scalar(f"SELECT COUNT(*) AS total FROM shifts WHERE {' AND '.join(clauses)}", tuple(values))

    def recent(self, entity: str, *, limit: int) -> list[dict]:
        sql = _RECENT_QUERIES.get(_check_entity(entity))
        if sql is None:
            raise ValueError(f"No recent listing for {entity}")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (int(limit),))
            return [_with_utc(r) for r in fetchall(cur)]

    def count_trainer_shifts(self, trainer_id: int) -> int:
        return self._scalar("SELECT COUNT(*) AS total FROM shifts WHERE trainer_id=%s", (int(trainer_id),))

    def upcoming_trainer_requests(self, trainer_id: int, *, now: datetime) -> tuple[int, Optional[dict]]:
        params = (int(trainer_id), ShiftRequestStatus.APPROVED.value, to_db_datetime(now))
        where = "assigned_trainer_id=%s AND status=%s AND start_at > %s"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM shift_requests WHERE {where}", params)
            total = int((fetchone(cur) or {}).get("total") or 0)
            cur.execute(
                f"""
                SELECT request_id AS id, participant_id, service, status, start_at AS `start`, end_at AS `end`
                FROM shift_requests
                WHERE {where}
                ORDER BY start_at ASC, request_id ASC
                LIMIT 1
                """,
                params,
            )
            r = fetchone(cur)
            return total, (_with_utc(r) if r else None)

    def earliest_live_trainer_shift(self, trainer_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT shift_id AS id, participant_id, service, status,
                       scheduled_start AS `start`, scheduled_end AS `end`
                FROM shifts
                WHERE trainer_id=%s AND status=%s
                ORDER BY scheduled_start ASC, shift_id ASC
                LIMIT 1
                """,
                (int(trainer_id), ShiftStatus.IN_PROGRESS.value),
            )
            r = fetchone(cur)
            return _with_utc(r) if r else None
