from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from ..core.enums import TimesheetStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    db_cursor,
    dump_json,
    fetchall,
    fetchone,
    from_db_datetime,
    in_clause,
    load_json,
    to_db_datetime,
)
from .model import AuditEntry, Timesheet, TimesheetItem, TimesheetTotals
from .repository import TimesheetRepository

_SELECT_TIMESHEET = """
    SELECT timesheet_id, trainer_id, week_start, week_end, status, items,
           total_hours, total_km, total_amount_cents, total_mileage_cents, total_cents,
           audit, created_at, updated_at
    FROM timesheets
"""


def _timesheet_from_row(r: dict) -> Timesheet:
    return Timesheet(
        timesheet_id=int(r["timesheet_id"]),
        trainer_id=int(r["trainer_id"]),
        week_start=from_db_datetime(r["week_start"]),
        week_end=from_db_datetime(r["week_end"]),
        status=TimesheetStatus(r["status"]),
        items=tuple(TimesheetItem.from_dict(i) for i in load_json(r.get("items"), [])),
        totals=TimesheetTotals(
            hours=float(r.get("total_hours") or 0),
            km=float(r.get("total_km") or 0),
            amount_cents=int(r.get("total_amount_cents") or 0),
            mileage_cents=int(r.get("total_mileage_cents") or 0),
            total_cents=int(r.get("total_cents") or 0),
        ),
        audit=tuple(AuditEntry.from_dict(a) for a in load_json(r.get("audit"), [])),
        created_at=from_db_datetime(r.get("created_at")),
        updated_at=from_db_datetime(r.get("updated_at")),
    )


class MySQLTimesheetRepository(TimesheetRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def upsert_for_week(
        self,
        *,
        trainer_id: int,
        week_start: datetime,
        week_end: datetime,
        apply: Callable[[Timesheet], Timesheet],
    ) -> Timesheet:
        with db_cursor(self._conn_factory) as (_, cur):
            # No-op update on duplicate keeps the existing row untouched.
            cur.execute(
                """
                INSERT INTO timesheets(trainer_id, week_start, week_end, status, items, audit)
                VALUES(%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE timesheet_id=timesheet_id
                """,
                (
                    int(trainer_id),
                    to_db_datetime(week_start),
                    to_db_datetime(week_end),
                    TimesheetStatus.DRAFT.value,
                    dump_json([]),
                    dump_json([]),
                ),
            )
            cur.execute(
                _SELECT_TIMESHEET + " WHERE trainer_id=%s AND week_start=%s FOR UPDATE",
                (int(trainer_id), to_db_datetime(week_start)),
            )
            current = _timesheet_from_row(fetchone(cur))

            updated = apply(current)
            totals = updated.totals
            cur.execute(
                """
                UPDATE timesheets
                SET week_end=%s, items=%s,
                    total_hours=%s, total_km=%s, total_amount_cents=%s, total_mileage_cents=%s, total_cents=%s
                WHERE timesheet_id=%s
                """,
                (
                    to_db_datetime(updated.week_end),
                    dump_json([i.to_dict() for i in updated.items]),
                    float(totals.hours),
                    float(totals.km),
                    int(totals.amount_cents),
                    int(totals.mileage_cents),
                    int(totals.total_cents),
                    current.timesheet_id,
                ),
            )
            cur.execute(_SELECT_TIMESHEET + " WHERE timesheet_id=%s", (current.timesheet_id,))
            return _timesheet_from_row(fetchone(cur))

    def get_by_id(self, timesheet_id: int) -> Optional[Timesheet]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_TIMESHEET + " WHERE timesheet_id=%s", (int(timesheet_id),))
            r = fetchone(cur)
            return _timesheet_from_row(r) if r else None

    def transition(
        self,
        *,
        timesheet_id: int,
        from_statuses: Iterable[TimesheetStatus],
        to_status: TimesheetStatus,
        audit_entry: Optional[AuditEntry] = None,
    ) -> bool:
        sources = [s.value for s in from_statuses]
        if not sources:
            return False

        with db_cursor(self._conn_factory) as (_, cur):
            if audit_entry is None:
                cur.execute(
                    f"UPDATE timesheets SET status=%s WHERE timesheet_id=%s AND status IN ({in_clause(sources)})",
                    tuple([to_status.value, int(timesheet_id)] + sources),
                )
            else:
                cur.execute(
                    f"""
                    UPDATE timesheets
                    SET status=%s, audit=JSON_ARRAY_APPEND(COALESCE(audit, JSON_ARRAY()), '$', CAST(%s AS JSON))
                    WHERE timesheet_id=%s AND status IN ({in_clause(sources)})
                    """,
                    tuple([to_status.value, dump_json(audit_entry.to_dict()), int(timesheet_id)] + sources),
                )
            return cur.rowcount > 0

    def list_page(
        self,
        *,
        trainer_id: Optional[int],
        status: Optional[str],
        week_start: Optional[datetime],
        limit: int,
        offset: int,
    ) -> tuple[Sequence[Timesheet], int]:
        clauses = ["1=1"]
        values: list[object] = []
        if trainer_id is not None:
            clauses.append("trainer_id=%s")
            values.append(int(trainer_id))
        if status:
            clauses.append("status=%s")
            values.append(status)
        if week_start is not None:
            clauses.append("week_start=%s")
            values.append(to_db_datetime(week_start))
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM timesheets WHERE {where}", tuple(values))
            total = int((fetchone(cur) or {}).get("total") or 0)

            cur.execute(
                _SELECT_TIMESHEET + f" WHERE {where} ORDER BY week_start DESC, timesheet_id DESC LIMIT %s OFFSET %s",
                tuple(values + [int(limit), int(offset)]),
            )
            return [_timesheet_from_row(r) for r in fetchall(cur)], total
