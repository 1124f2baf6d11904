from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import ResourceAction


@dataclass(frozen=True)
class Project:
    project_id: int
    name: str
    client_id: Optional[int] = None
    status: str = "active"


@dataclass(frozen=True)
class ProjectResource:
    """Assignment of a user to a project.

    A missing start or end date means the assignment is open-ended on that side.
    """

    resource_id: int
    project_id: int
    user_id: int
    role: str
    allocation: int
    start_date: Optional[date]
    end_date: Optional[date]
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_active_on(self, day: date) -> bool:
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True


@dataclass(frozen=True)
class ResourceHistory:
    """Immutable audit record of one assignment event."""

    history_id: int
    resource_id: Optional[int]
    project_id: int
    user_id: int
    action: ResourceAction
    previous_role: Optional[str]
    new_role: Optional[str]
    previous_allocation: Optional[int]
    new_allocation: Optional[int]
    performed_by: Optional[int]
    note: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class AllocationSummary:
    user_id: int
    as_of: date
    total_allocation: int
    remaining_capacity: int
    assignments: tuple[ProjectResource, ...]
