from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import SkillLevel, UpdateStatus
from .model import PendingSkillUpdate


class PendingSkillUpdateRepository(Protocol):
    def create(
        self,
        *,
        user_id: int,
        skill_id: Optional[int],
        current_name: Optional[str],
        current_category: Optional[str],
        current_level: Optional[SkillLevel],
        proposed_name: str,
        proposed_category: str,
        proposed_level: SkillLevel,
        proposed_certification: Optional[str],
        justification: Optional[str],
    ) -> int:
        """Insert a PENDING row. Raises DuplicatePendingRequest if one already exists."""

        raise NotImplementedError

    def get_by_id(self, update_id: int) -> Optional[PendingSkillUpdate]:
        raise NotImplementedError

    def get_for_update(self, update_id: int) -> Optional[PendingSkillUpdate]:
        raise NotImplementedError

    def find_pending(
        self,
        *,
        user_id: int,
        skill_id: Optional[int],
        proposed_name: Optional[str] = None,
    ) -> Optional[PendingSkillUpdate]:
        """PENDING row for (user, skill); new-skill proposals match on the proposed name."""

        raise NotImplementedError

    def list_updates(
        self,
        *,
        status: Optional[UpdateStatus] = None,
        user_id: Optional[int] = None,
        skill_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[PendingSkillUpdate]:
        raise NotImplementedError

    def set_reviewer(self, *, update_id: int, reviewer_id: int) -> bool:
        """Only succeeds while the row is PENDING."""

        raise NotImplementedError

    def decide(
        self,
        *,
        update_id: int,
        status: UpdateStatus,
        reviewer_id: int,
        comments: Optional[str],
        decided_at: datetime,
    ) -> bool:
        """Move a PENDING row to a terminal status. False if it was not PENDING."""

        raise NotImplementedError

    def delete(self, update_id: int) -> bool:
        raise NotImplementedError

    def lock_for_skill(self, skill_id: int) -> Sequence[PendingSkillUpdate]:
        """Row-lock every update that targets the skill."""

        raise NotImplementedError

    def delete_for_skill(self, skill_id: int) -> int:
        raise NotImplementedError
