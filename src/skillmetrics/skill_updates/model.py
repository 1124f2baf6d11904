from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import SkillLevel, UpdateStatus


@dataclass(frozen=True)
class PendingSkillUpdate:
    """Proposed change to a skill, or a proposal for a new skill when ``skill_id`` is None.

    ``current_*`` hold the skill's values at submission time.
    """

    update_id: int
    user_id: int
    skill_id: Optional[int]
    current_name: Optional[str]
    current_category: Optional[str]
    current_level: Optional[SkillLevel]
    proposed_name: str
    proposed_category: str
    proposed_level: SkillLevel
    proposed_certification: Optional[str]
    justification: Optional[str]
    status: UpdateStatus
    created_at: datetime
    reviewer_id: Optional[int] = None
    reviewer_comments: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    @property
    def is_new_skill(self) -> bool:
        return self.skill_id is None
