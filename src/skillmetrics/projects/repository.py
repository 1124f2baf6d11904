from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import ResourceAction
from .model import Project, ProjectResource, ResourceHistory


class ProjectRepository(Protocol):
    def get_by_id(self, project_id: int) -> Optional[Project]:
        raise NotImplementedError


class ProjectResourceRepository(Protocol):
    def get_by_id(self, resource_id: int) -> Optional[ProjectResource]:
        raise NotImplementedError

    def get_for_update(self, resource_id: int) -> Optional[ProjectResource]:
        raise NotImplementedError

    def find_by_project_and_user(self, *, project_id: int, user_id: int) -> Optional[ProjectResource]:
        raise NotImplementedError

    def list_for_project(self, project_id: int) -> Sequence[ProjectResource]:
        raise NotImplementedError

    def list_for_user(self, user_id: int) -> Sequence[ProjectResource]:
        raise NotImplementedError

    def list_active_for_user(self, user_id: int, as_of: date) -> Sequence[ProjectResource]:
        """Assignments whose date range contains ``as_of`` (null bounds are open)."""

        raise NotImplementedError

    def create(
        self,
        *,
        project_id: int,
        user_id: int,
        role: str,
        allocation: int,
        start_date: Optional[date],
        end_date: Optional[date],
        notes: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def update(
        self,
        *,
        resource_id: int,
        role: str,
        allocation: int,
        start_date: Optional[date],
        end_date: Optional[date],
        notes: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def delete(self, resource_id: int) -> bool:
        raise NotImplementedError


class ResourceHistoryRepository(Protocol):
    """Append-only store: rows are never updated or deleted."""

    def append(
        self,
        *,
        resource_id: Optional[int],
        project_id: int,
        user_id: int,
        action: ResourceAction,
        previous_role: Optional[str] = None,
        new_role: Optional[str] = None,
        previous_allocation: Optional[int] = None,
        new_allocation: Optional[int] = None,
        performed_by: Optional[int] = None,
        note: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def list_for_resource(self, resource_id: int) -> Sequence[ResourceHistory]:
        raise NotImplementedError

    def list_for_project(self, project_id: int, *, limit: int = 200) -> Sequence[ResourceHistory]:
        raise NotImplementedError

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[ResourceHistory]:
        raise NotImplementedError
