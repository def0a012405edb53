from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role used for authorization."""

    PARTICIPANT = "PARTICIPANT"
    TRAINER = "TRAINER"
    ADMIN = "ADMIN"


class UserStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    DELETED = "DELETED"


class ShiftRequestStatus(str, Enum):
    """Admin approval workflow for a participant's request.

    CANCELLED and IN_PROGRESS are reserved: no transition in this package produces them.
    """

    PENDING_ADMIN = "PENDING_ADMIN"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ShiftStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TimesheetStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    PAID = "PAID"
    REOPENED = "REOPENED"
