from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import to_iso
from ..core.enums import ShiftRequestStatus


@dataclass(frozen=True)
class ShiftRequest:
    """Domain entity: a participant's ask for care during a time window."""

    request_id: int
    participant_id: int
    requested_by: int
    service: str
    start: datetime
    end: datetime
    status: ShiftRequestStatus
    created_at: datetime
    notes: Optional[str] = None
    preferred_trainer_ids: tuple[int, ...] = field(default_factory=tuple)
    assigned_trainer_id: Optional[int] = None
    linked_shift_id: Optional[int] = None
    admin_comment: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    declined_reason: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def to_dict(self) -> dict:
        return {
            "id": self.request_id,
            "participant_id": self.participant_id,
            "requested_by": self.requested_by,
            "service": self.service,
            "start": to_iso(self.start),
            "end": to_iso(self.end),
            "notes": self.notes,
            "preferred_trainer_ids": list(self.preferred_trainer_ids),
            "status": self.status.value,
            "assigned_trainer_id": self.assigned_trainer_id,
            "linked_shift_id": self.linked_shift_id,
            "admin_comment": self.admin_comment,
            "approved_by": self.approved_by,
            "approved_at": to_iso(self.approved_at),
            "declined_reason": self.declined_reason,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }
