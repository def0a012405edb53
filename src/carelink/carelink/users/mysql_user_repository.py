from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role, UserStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, in_clause
from .model import Participant, Trainer, User
from .repository import UserRepository


def _trainer_from_row(r: dict) -> Trainer:
    return Trainer(
        trainer_id=int(r["trainer_id"]),
        user_id=int(r["user_id"]),
        full_name=r.get("full_name"),
        phone=r.get("phone"),
        status=r.get("status") or "pending",
    )


def _participant_from_row(r: dict) -> Participant:
    return Participant(
        participant_id=int(r["participant_id"]),
        user_id=int(r["user_id"]),
        full_name=r["full_name"],
        email=r.get("email"),
        phone=r.get("phone"),
        status=UserStatus(r["status"]),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_user(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT user_id, email, role, status, created_at
                FROM users
                WHERE user_id=%s
                """,
                (int(user_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return User(
                user_id=int(r["user_id"]),
                email=r["email"],
                role=Role(r["role"]),
                status=UserStatus(r["status"]),
                created_at=from_db_datetime(r.get("created_at")),
            )

    def get_trainer(self, trainer_id: int) -> Optional[Trainer]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT trainer_id, user_id, full_name, phone, status
                FROM trainers
                WHERE trainer_id=%s
                """,
                (int(trainer_id),),
            )
            r = fetchone(cur)
            return _trainer_from_row(r) if r else None

    def get_trainer_by_user_id(self, user_id: int) -> Optional[Trainer]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT trainer_id, user_id, full_name, phone, status
                FROM trainers
                WHERE user_id=%s
                """,
                (int(user_id),),
            )
            r = fetchone(cur)
            return _trainer_from_row(r) if r else None

    def get_participant_by_user_id(self, user_id: int) -> Optional[Participant]:
        found = self.get_participants_by_user_ids([user_id])
        return found.get(int(user_id))

    def get_participants_by_user_ids(self, user_ids: Sequence[int]) -> dict[int, Participant]:
        ids = sorted({int(u) for u in user_ids})
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT participant_id, user_id, full_name, email, phone, status
                FROM participants
                WHERE user_id IN ({in_clause(ids)})
                """,
                tuple(ids),
            )
            return {int(r["user_id"]): _participant_from_row(r) for r in fetchall(cur)}

    def get_trainers_by_ids(self, trainer_ids: Sequence[int]) -> dict[int, Trainer]:
        ids = sorted({int(t) for t in trainer_ids})
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT trainer_id, user_id, full_name, phone, status
                FROM trainers
                WHERE trainer_id IN ({in_clause(ids)})
                """,
                tuple(ids),
            )
            return {int(r["trainer_id"]): _trainer_from_row(r) for r in fetchall(cur)}
