from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Participant, Trainer, User


class UserRepository(Protocol):
    """Read access to users and their trainer/participant profiles.

    Note (DIP): services depend on this interface, not on a concrete DB.
    """

    def get_user(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_trainer(self, trainer_id: int) -> Optional[Trainer]:
        raise NotImplementedError

    def get_trainer_by_user_id(self, user_id: int) -> Optional[Trainer]:
        raise NotImplementedError

    def get_participant_by_user_id(self, user_id: int) -> Optional[Participant]:
        raise NotImplementedError

    def get_participants_by_user_ids(self, user_ids: Sequence[int]) -> dict[int, Participant]:
        raise NotImplementedError

    def get_trainers_by_ids(self, trainer_ids: Sequence[int]) -> dict[int, Trainer]:
        raise NotImplementedError
