from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import SkillHistoryAction, SkillLevel
from .model import Endorsement, Skill, SkillHistory


class SkillRepository(Protocol):
    def get_by_id(self, skill_id: int) -> Optional[Skill]:
        raise NotImplementedError

    def get_for_update(self, skill_id: int) -> Optional[Skill]:
        raise NotImplementedError

    def list_for_user(self, user_id: int) -> Sequence[Skill]:
        raise NotImplementedError

    def create(
        self,
        *,
        user_id: int,
        name: str,
        category: str,
        level: SkillLevel,
        certification: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def update(
        self,
        *,
        skill_id: int,
        name: str,
        category: str,
        level: SkillLevel,
        certification: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def increment_endorsements(self, skill_id: int) -> bool:
        raise NotImplementedError

    def delete(self, skill_id: int) -> bool:
        """Delete the skill; its history and endorsements go with it."""

        raise NotImplementedError


class SkillHistoryRepository(Protocol):
    def append(
        self,
        *,
        skill_id: int,
        user_id: int,
        action: SkillHistoryAction,
        previous_value: Optional[str] = None,
        new_value: Optional[str] = None,
        performed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def list_for_skill(self, skill_id: int) -> Sequence[SkillHistory]:
        raise NotImplementedError

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[SkillHistory]:
        raise NotImplementedError


class EndorsementRepository(Protocol):
    def exists(self, *, skill_id: int, endorser_id: int) -> bool:
        raise NotImplementedError

    def create(self, *, skill_id: int, endorser_id: int, endorsee_id: int, comment: Optional[str]) -> int:
        raise NotImplementedError

    def list_for_skill(self, skill_id: int) -> Sequence[Endorsement]:
        raise NotImplementedError
