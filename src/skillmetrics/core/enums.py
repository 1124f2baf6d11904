from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for permission checks."""

    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"

    @property
    def can_review(self) -> bool:
        return self in REVIEWER_ROLES


REVIEWER_ROLES = frozenset({Role.ADMIN, Role.MANAGER})


class SkillLevel(str, Enum):
    """Proficiency level of a skill, ordered from lowest to highest."""

    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, SkillLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, SkillLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, SkillLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, SkillLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value) -> "SkillLevel":
        if isinstance(value, SkillLevel):
            return value
        return cls(str(value or "").strip().upper())


_LEVEL_ORDER = (SkillLevel.BEGINNER, SkillLevel.INTERMEDIATE, SkillLevel.ADVANCED, SkillLevel.EXPERT)


class UpdateStatus(str, Enum):
    """Approval state of a pending skill update."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not UpdateStatus.PENDING


class ResourceAction(str, Enum):
    """Kind of event recorded in resource history."""

    ADDED = "added"
    REMOVED = "removed"
    ROLE_CHANGED = "role_changed"
    ALLOCATION_CHANGED = "allocation_changed"
    ROLE_AND_ALLOCATION_CHANGED = "role_and_allocation_changed"


class SkillHistoryAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    LEVEL_CHANGED = "level_changed"
    ENDORSED = "endorsed"


class ContextKind(str, Enum):
    """Entity a notification refers to; drives the deep link."""

    SKILL = "skill"
    SKILL_UPDATE = "skill_update"
    PROJECT = "project"
    USER = "user"
    CLIENT = "client"
