from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from mysql.connector import errors as mysql_errors

from ..common.datetime_utils import to_iso
from ..core.enums import ShiftStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, to_db_datetime
from .model import BillingSnapshot, Shift, ShiftReport
from .repository import ShiftRepository

_SELECT_SHIFT = """
    SELECT shift_id, shift_request_id, participant_id, trainer_id, service,
           scheduled_start, scheduled_end, scheduled_duration_minutes,
           actual_clock_in, planned_clock_out, actual_clock_out, status,
           report_activities, report_progress, report_incidents, report_km,
           billable_minutes, hourly_rate_cents, km_rate_cents, billing_source,
           created_at, updated_at
    FROM shifts
"""


def _shift_from_row(r: dict) -> Shift:
    report = None
    if r.get("report_activities") is not None or r.get("report_km") is not None:
        report = ShiftReport(
            activities=r.get("report_activities") or "",
            progress=r.get("report_progress") or "",
            incidents=r.get("report_incidents") or "",
            km=float(r["report_km"]) if r.get("report_km") is not None else None,
        )

    billing = None
    if r.get("billable_minutes") is not None:
        billing = BillingSnapshot(
            billable_minutes=int(r["billable_minutes"]),
            hourly_rate_cents=int(r.get("hourly_rate_cents") or 0),
            km_rate_cents=int(r.get("km_rate_cents") or 0),
            source=r.get("billing_source") or "",
            scheduled_start=from_db_datetime(r["scheduled_start"]),
            scheduled_end=from_db_datetime(r["scheduled_end"]),
        )

    return Shift(
        shift_id=int(r["shift_id"]),
        shift_request_id=int(r["shift_request_id"]),
        participant_id=int(r["participant_id"]),
        trainer_id=int(r["trainer_id"]),
        service=r["service"],
        scheduled_start=from_db_datetime(r["scheduled_start"]),
        scheduled_end=from_db_datetime(r["scheduled_end"]),
        scheduled_duration_minutes=int(r["scheduled_duration_minutes"]),
        actual_clock_in=from_db_datetime(r["actual_clock_in"]),
        planned_clock_out=from_db_datetime(r["planned_clock_out"]),
        actual_clock_out=from_db_datetime(r.get("actual_clock_out")),
        status=ShiftStatus(r["status"]),
        report=report,
        billing=billing,
        created_at=from_db_datetime(r.get("created_at")),
        updated_at=from_db_datetime(r.get("updated_at")),
    )


class MySQLShiftRepository(ShiftRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO shifts(
                        shift_request_id, participant_id, trainer_id, service,
                        scheduled_start, scheduled_end, scheduled_duration_minutes,
                        actual_clock_in, planned_clock_out, status
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(shift_request_id),
                        int(participant_id),
                        int(trainer_id),
                        service,
                        to_db_datetime(scheduled_start),
                        to_db_datetime(scheduled_end),
                        int(scheduled_duration_minutes),
                        to_db_datetime(actual_clock_in),
                        to_db_datetime(planned_clock_out),
                        ShiftStatus.IN_PROGRESS.value,
                    ),
                )
                return int(cur.lastrowid)
        except mysql_errors.IntegrityError as e:
            raise ConflictError("This shift is already in progress") from e

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_SHIFT + " WHERE shift_id=%s", (int(shift_id),))
            r = fetchone(cur)
            return _shift_from_row(r) if r else None

    def get_active_for_request(self, shift_request_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT_SHIFT + " WHERE shift_request_id=%s AND status=%s LIMIT 1",
                (int(shift_request_id), ShiftStatus.IN_PROGRESS.value),
            )
            r = fetchone(cur)
            return _shift_from_row(r) if r else None

    def complete(
        self,
        *,
        shift_id: int,
        actual_clock_out: datetime,
        report: ShiftReport,
        billing: BillingSnapshot,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE shifts
                SET status=%s, actual_clock_out=%s,
                    report_activities=%s, report_progress=%s, report_incidents=%s, report_km=%s,
                    billable_minutes=%s, hourly_rate_cents=%s, km_rate_cents=%s, billing_source=%s
                WHERE shift_id=%s AND status IN (%s, %s)
                """,
                (
                    ShiftStatus.COMPLETED.value,
                    to_db_datetime(actual_clock_out),
                    report.activities,
                    report.progress,
                    report.incidents,
                    report.km,
                    int(billing.billable_minutes),
                    int(billing.hourly_rate_cents),
                    int(billing.km_rate_cents),
                    billing.source,
                    int(shift_id),
                    ShiftStatus.IN_PROGRESS.value,
                    ShiftStatus.COMPLETED.value,
                ),
            )
            # Re-completing with identical values changes no rows; the shift still matched.
            if cur.rowcount > 0:
                return True
            cur.execute("SELECT status FROM shifts WHERE shift_id=%s", (int(shift_id),))
            r = fetchone(cur)
            return bool(r) and r["status"] == ShiftStatus.COMPLETED.value

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
        clauses = [
            "((s.scheduled_end BETWEEN %s AND %s) OR (s.planned_clock_out BETWEEN %s AND %s) OR s.status=%s)"
        ]
        values: list[object] = [
            to_db_datetime(window_from),
            to_db_datetime(window_to),
            to_db_datetime(window_from),
            to_db_datetime(window_to),
            ShiftStatus.COMPLETED.value,
        ]
        if trainer_id is not None:
            clauses.append("s.trainer_id=%s")
            values.append(int(trainer_id))
        if participant_id is not None:
            clauses.append("s.participant_id=%s")
            values.append(int(participant_id))
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM shifts s WHERE {where}", tuple(values))
            total = int((fetchone(cur) or {}).get("total") or 0)

            cur.execute(
                f"""
                SELECT s.shift_id, s.shift_request_id, s.participant_id, s.trainer_id, s.service,
                       s.scheduled_start, s.scheduled_end, s.scheduled_duration_minutes, s.status,
                       s.report_activities, s.report_progress, s.report_incidents, s.report_km,
                       s.created_at, s.updated_at,
                       r.start_at AS request_start, r.end_at AS request_end
                FROM shifts s
                LEFT JOIN shift_requests r ON r.request_id = s.shift_request_id
                WHERE {where}
                ORDER BY s.scheduled_end DESC, s.shift_id DESC
                LIMIT %s OFFSET %s
                """,
                tuple(values + [int(limit), int(offset)]),
            )
            out: list[dict] = []
            for r in fetchall(cur):
                report = None
                if r.get("report_activities") is not None or r.get("report_km") is not None:
                    report = {
                        "activities": r.get("report_activities") or "",
                        "progress": r.get("report_progress") or "",
                        "incidents": r.get("report_incidents") or "",
                        "km": float(r["report_km"]) if r.get("report_km") is not None else None,
                    }
                out.append(
                    {
                        "id": int(r["shift_id"]),
                        "shift_request_id": int(r["shift_request_id"]),
                        "participant_id": int(r["participant_id"]),
                        "trainer_id": int(r["trainer_id"]),
                        "service": r["service"],
                        "scheduled_start": to_iso(from_db_datetime(r["scheduled_start"])),
                        "scheduled_end": to_iso(from_db_datetime(r["scheduled_end"])),
                        "scheduled_duration_minutes": int(r["scheduled_duration_minutes"]),
                        "status": r["status"],
                        "report": report,
                        "created_at": to_iso(from_db_datetime(r.get("created_at"))),
                        "updated_at": to_iso(from_db_datetime(r.get("updated_at"))),
                        "start": to_iso(from_db_datetime(r.get("request_start"))),
                        "end": to_iso(from_db_datetime(r.get("request_end"))),
                    }
                )
            return out, total
