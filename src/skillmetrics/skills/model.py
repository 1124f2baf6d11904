from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import SkillHistoryAction, SkillLevel


@dataclass(frozen=True)
class Skill:
    skill_id: int
    user_id: int
    name: str
    category: str
    level: SkillLevel
    certification: Optional[str] = None
    notes: Optional[str] = None
    endorsement_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class SkillHistory:
    """Immutable audit record of one skill mutation."""

    history_id: int
    skill_id: int
    user_id: int
    action: SkillHistoryAction
    previous_value: Optional[str]
    new_value: Optional[str]
    performed_by: Optional[int]
    reason: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class Endorsement:
    endorsement_id: int
    skill_id: int
    endorser_id: int
    endorsee_id: int
    comment: Optional[str]
    created_at: datetime
