from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import to_iso
from ..common.pagination import ListParams, SortSpec
from ..core.enums import ShiftRequestStatus
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
from .model import ShiftRequest
from .repository import ShiftRequestRepository

_SORT_COLUMNS = {"createdAt": "r.created_at", "start": "r.start_at"}

_SELECT_REQUEST = """
    SELECT request_id, participant_id, requested_by, service, start_at, end_at, notes,
           preferred_trainer_ids, status, assigned_trainer_id, linked_shift_id, admin_comment,
           approved_by, approved_at, declined_reason, created_at, updated_at
    FROM shift_requests
"""


def _request_from_row(r: dict) -> ShiftRequest:
    return ShiftRequest(
        request_id=int(r["request_id"]),
        participant_id=int(r["participant_id"]),
        requested_by=int(r["requested_by"]),
        service=r["service"],
        start=from_db_datetime(r["start_at"]),
        end=from_db_datetime(r["end_at"]),
        status=ShiftRequestStatus(r["status"]),
        created_at=from_db_datetime(r["created_at"]),
        notes=r.get("notes"),
        preferred_trainer_ids=tuple(int(t) for t in load_json(r.get("preferred_trainer_ids"), [])),
        assigned_trainer_id=r.get("assigned_trainer_id"),
        linked_shift_id=r.get("linked_shift_id"),
        admin_comment=r.get("admin_comment"),
        approved_by=r.get("approved_by"),
        approved_at=from_db_datetime(r.get("approved_at")),
        declined_reason=r.get("declined_reason"),
        updated_at=from_db_datetime(r.get("updated_at")),
    )


def _like(q: str) -> str:
    escaped = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _common_clauses(params: ListParams, now: datetime) -> tuple[list[str], list[object]]:
    clauses = ["1=1"]
    values: list[object] = []

    if params.statuses:
        clauses.append(f"r.status IN ({in_clause(list(params.statuses))})")
        values.extend(params.statuses)
    if params.date_from is not None:
        clauses.append("r.start_at >= %s")
        values.append(to_db_datetime(params.date_from))
    if params.date_to is not None:
        clauses.append("r.start_at < %s")
        values.append(to_db_datetime(params.date_to))
    if params.only_upcoming:
        clauses.append("r.start_at >= %s")
        values.append(to_db_datetime(now))
    if params.only_past:
        clauses.append("r.end_at < %s")
        values.append(to_db_datetime(now))
    return clauses, values


def _order_by(sort: SortSpec) -> str:
    column = _SORT_COLUMNS.get(sort.field, "r.created_at")
    direction = "DESC" if sort.descending else "ASC"
    return f"{column} {direction}, r.request_id {direction}"


def _base_row(r: dict) -> dict:
    return {
        "id": int(r["request_id"]),
        "status": r["status"],
        "service": r["service"],
        "start": to_iso(from_db_datetime(r["start_at"])),
        "end": to_iso(from_db_datetime(r["end_at"])),
        "notes": r.get("notes"),
        "created_at": to_iso(from_db_datetime(r["created_at"])),
    }


class MySQLShiftRequestRepository(ShiftRequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO shift_requests(
                    participant_id, requested_by, service, start_at, end_at, notes,
                    preferred_trainer_ids, status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(participant_id),
                    int(requested_by),
                    service,
                    to_db_datetime(start),
                    to_db_datetime(end),
                    notes,
                    dump_json([int(t) for t in preferred_trainer_ids]),
                    ShiftRequestStatus.PENDING_ADMIN.value,
                ),
            )
            return int(cur.lastrowid)

    def get_by_id(self, request_id: int) -> Optional[ShiftRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT_REQUEST + " WHERE request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _request_from_row(r) if r else None

    def approve(self, *, request_id: int, trainer_id: int, approved_by: int, approved_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE shift_requests
                SET status=%s, assigned_trainer_id=%s, approved_by=%s, approved_at=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    ShiftRequestStatus.APPROVED.value,
                    int(trainer_id),
                    int(approved_by),
                    to_db_datetime(approved_at),
                    int(request_id),
                    ShiftRequestStatus.PENDING_ADMIN.value,
                ),
            )
            return cur.rowcount > 0

    def decline(self, *, request_id: int, declined_by: int, declined_at: datetime, reason: Optional[str]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE shift_requests
                SET status=%s, approved_by=%s, approved_at=%s, declined_reason=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    ShiftRequestStatus.DECLINED.value,
                    int(declined_by),
                    to_db_datetime(declined_at),
                    reason,
                    int(request_id),
                    ShiftRequestStatus.PENDING_ADMIN.value,
                ),
            )
            return cur.rowcount > 0

    def link_shift(self, *, request_id: int, shift_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE shift_requests SET linked_shift_id=%s WHERE request_id=%s",
                (int(shift_id), int(request_id)),
            )
            return cur.rowcount > 0

    def mark_completed(self, *, request_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE shift_requests SET status=%s WHERE request_id=%s",
                (ShiftRequestStatus.COMPLETED.value, int(request_id)),
            )
            return cur.rowcount >= 0

    def list_for_admin(self, params: ListParams, *, sort: SortSpec, now: datetime) -> tuple[Sequence[dict], int]:
        clauses, values = _common_clauses(params, now)
        q = (params.q or "").strip()
        if q:
            clauses.append("(p.full_name LIKE %s OR u.email LIKE %s OR r.service LIKE %s)")
            values.extend([_like(q)] * 3)
        where = " AND ".join(clauses)
        joins = """
            FROM shift_requests r
            LEFT JOIN users u ON u.user_id = r.participant_id
            LEFT JOIN participants p ON p.user_id = r.participant_id
        """

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total {joins} WHERE {where}", tuple(values))
            total = int((fetchone(cur) or {}).get("total") or 0)

            cur.execute(
                f"""
                SELECT r.request_id, r.status, r.service, r.start_at, r.end_at, r.notes,
                       r.preferred_trainer_ids, r.created_at, r.assigned_trainer_id,
                       r.approved_by, r.approved_at,
                       u.user_id AS p_user_id, u.email AS p_email,
                       p.participant_id, p.full_name AS p_full_name, p.phone AS p_phone
                {joins}
                WHERE {where}
                ORDER BY {_order_by(sort)}
                LIMIT %s OFFSET %s
                """,
                tuple(values + [int(params.limit), int(params.offset)]),
            )
            out: list[dict] = []
            for r in fetchall(cur):
                row = _base_row(r)
                row.update(
                    {
                        "preferred_trainer_ids": [int(t) for t in load_json(r.get("preferred_trainer_ids"), [])],
                        "assigned_trainer_id": r.get("assigned_trainer_id"),
                        "approved_by": r.get("approved_by"),
                        "approved_at": to_iso(from_db_datetime(r.get("approved_at"))),
                        "participant_user": {"id": r.get("p_user_id"), "email": r.get("p_email")},
                        "participant": {
                            "id": r.get("participant_id"),
                            "full_name": r.get("p_full_name"),
                            "phone": r.get("p_phone"),
                        },
                    }
                )
                out.append(row)
            return out, total

    def list_for_participant(
        self, participant_user_id: int, params: ListParams, *, sort: SortSpec, now: datetime
    ) -> tuple[Sequence[dict], int]:
        clauses, values = _common_clauses(params, now)
        clauses.append("r.participant_id=%s")
        values.append(int(participant_user_id))
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM shift_requests r WHERE {where}", tuple(values))
            total = int((fetchone(cur) or {}).get("total") or 0)

            cur.execute(
                f"""
                SELECT r.request_id, r.status, r.service, r.start_at, r.end_at, r.notes,
                       r.preferred_trainer_ids, r.created_at, r.assigned_trainer_id,
                       t.trainer_id, t.user_id AS t_user_id, t.full_name AS t_full_name,
                       tu.email AS t_email
                FROM shift_requests r
                LEFT JOIN trainers t ON t.trainer_id = r.assigned_trainer_id
                LEFT JOIN users tu ON tu.user_id = t.user_id
                WHERE {where}
                ORDER BY {_order_by(sort)}
                LIMIT %s OFFSET %s
                """,
                tuple(values + [int(params.limit), int(params.offset)]),
            )
            out: list[dict] = []
            for r in fetchall(cur):
                row = _base_row(r)
                row.update(
                    {
                        "preferred_trainer_ids": [int(t) for t in load_json(r.get("preferred_trainer_ids"), [])],
                        "assigned_trainer_id": r.get("assigned_trainer_id"),
                        "trainer": {
                            "id": r.get("trainer_id"),
                            "user_id": r.get("t_user_id"),
                            "full_name": r.get("t_full_name"),
                            "user_email": r.get("t_email"),
                        },
                    }
                )
                out.append(row)
            return out, total

    def list_for_trainer(
        self, trainer_id: int, params: ListParams, *, sort: SortSpec, now: datetime
    ) -> tuple[Sequence[dict], int]:
        clauses, values = _common_clauses(params, now)
        clauses.append("r.assigned_trainer_id=%s")
        values.append(int(trainer_id))
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM shift_requests r WHERE {where}", tuple(values))
            total = int((fetchone(cur) or {}).get("total") or 0)

            # Latest shift per request: highest shift_id for that request.
            cur.execute(
                f"""
                SELECT r.request_id, r.status, r.service, r.start_at, r.end_at, r.notes, r.created_at,
                       p.participant_id, p.full_name AS p_full_name, p.phone AS p_phone,
                       u.email AS p_email,
                       s.shift_id, s.status AS s_status, s.actual_clock_in, s.planned_clock_out,
                       s.actual_clock_out, s.scheduled_start, s.scheduled_end, s.scheduled_duration_minutes
                FROM shift_requests r
                LEFT JOIN users u ON u.user_id = r.participant_id
                LEFT JOIN participants p ON p.user_id = r.participant_id
                LEFT JOIN shifts s ON s.shift_id = (
                    SELECT MAX(s2.shift_id) FROM shifts s2 WHERE s2.shift_request_id = r.request_id
                )
                WHERE {where}
                ORDER BY {_order_by(sort)}
                LIMIT %s OFFSET %s
                """,
                tuple(values + [int(params.limit), int(params.offset)]),
            )
            out: list[dict] = []
            for r in fetchall(cur):
                row = _base_row(r)
                shift = None
                if r.get("shift_id") is not None:
                    shift = {
                        "id": int(r["shift_id"]),
                        "status": r.get("s_status"),
                        "actual_clock_in": to_iso(from_db_datetime(r.get("actual_clock_in"))),
                        "planned_clock_out": to_iso(from_db_datetime(r.get("planned_clock_out"))),
                        "actual_clock_out": to_iso(from_db_datetime(r.get("actual_clock_out"))),
                        "scheduled_start": to_iso(from_db_datetime(r.get("scheduled_start"))),
                        "scheduled_end": to_iso(from_db_datetime(r.get("scheduled_end"))),
                        "scheduled_duration_minutes": r.get("scheduled_duration_minutes"),
                    }
                row.update(
                    {
                        "participant": {
                            "id": r.get("participant_id"),
                            "full_name": r.get("p_full_name"),
                            "phone": r.get("p_phone"),
                            "email": r.get("p_email"),
                        },
                        "shift": shift,
                        "is_clocked_in": bool(shift and shift["status"] == "IN_PROGRESS"),
                    }
                )
                out.append(row)
            return out, total
