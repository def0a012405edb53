from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role, UserStatus


@dataclass(frozen=True)
class User:
    """Domain entity: login identity.

    Note: Plain data object (no DB access code).
    """

    user_id: int
    email: str
    role: Role
    status: UserStatus
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Trainer:
    """Care worker profile attached to a TRAINER user."""

    trainer_id: int
    user_id: int
    full_name: Optional[str] = None
    phone: Optional[str] = None
    status: str = "pending"

    @property
    def is_onboarding_pending(self) -> bool:
        return (self.status or "").strip().upper() == "PENDING"


@dataclass(frozen=True)
class Participant:
    """Care recipient profile attached to a PARTICIPANT user."""

    participant_id: int
    user_id: int
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: UserStatus = UserStatus.PENDING


@dataclass(frozen=True)
class Viewer:
    """Caller identity handed over by the authenticated HTTP layer."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
