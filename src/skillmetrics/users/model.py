from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Note: plain data object (no DB access code). Accounts are managed by the
    surrounding application; the core only reads and locks them.
    """

    user_id: int
    full_name: str
    email: Optional[str]
    role: Role
    is_active: bool = True

    @property
    def can_review(self) -> bool:
        return self.is_active and self.role.can_review
