from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from ..common.datetime_utils import today_local
from ..common.unset import UNSET
from ..common.validators import optional_text, require_allocation, require_date_range, require_non_empty
from ..core.enums import ResourceAction
from ..core.exceptions import DuplicateAssignment, NotFoundError
from ..database.connection import TransactionManager
from ..notifications.dispatcher import Notifier, dispatch_all
from ..notifications.model import NotificationContext, OutgoingNotification
from ..users.repository import UserRepository
from .allocation import AllocationEngine
from .model import AllocationSummary, Project, ProjectResource, ResourceHistory
from .repository import ProjectRepository, ProjectResourceRepository, ResourceHistoryRepository

logger = logging.getLogger(__name__)


def _project_label(project: Optional[Project], project_id: int) -> str:
    return project.name if project else f"project {project_id}"


class ResourceAssignmentWorkflow:
    """Use case: add, change and remove a user's assignment to a project.

    Every call runs in one transaction holding the assigned user's row lock,
    so the allocation check and the write after it cannot interleave with
    another call for the same user. History rows are written in the same
    transaction; notifications go out after commit.
    """

    def __init__(
        self,
        tx: TransactionManager,
        users: UserRepository,
        projects: ProjectRepository,
        resources: ProjectResourceRepository,
        history: ResourceHistoryRepository,
        allocation: AllocationEngine,
        notifier: Notifier,
    ):
        self._tx = tx
        self._users = users
        self._projects = projects
        self._resources = resources
        self._history = history
        self._allocation = allocation
        self._notifier = notifier

    def _lock_resource(self, resource_id: int) -> ProjectResource:
        current = self._resources.get_by_id(int(resource_id))
        if not current:
            raise NotFoundError("ProjectResource", resource_id)
        if not self._users.lock(current.user_id):
            raise NotFoundError("User", current.user_id)
        # Re-read under the user's lock: a concurrent call may have changed or removed it.
        locked = self._resources.get_for_update(int(resource_id))
        if not locked:
            raise NotFoundError("ProjectResource", resource_id)
        return locked

    def assign(
        self,
        *,
        project_id: int,
        user_id: int,
        role: str,
        allocation: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        performed_by: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> ProjectResource:
        role = require_non_empty(role, "Role")
        allocation = require_allocation(allocation)
        require_date_range(start_date, end_date)
        notes = optional_text(notes, "Notes")

        with self._tx.atomic():
            if not self._users.lock(int(user_id)):
                raise NotFoundError("User", user_id)
            project = self._projects.get_by_id(int(project_id))
            if not project:
                raise NotFoundError("Project", project_id)
            if self._resources.find_by_project_and_user(project_id=int(project_id), user_id=int(user_id)):
                raise DuplicateAssignment(f"User {user_id} is already assigned to project {project_id}")

            total = self._allocation.validate_window(int(user_id), start_date, end_date, allocation)

            resource_id = self._resources.create(
                project_id=int(project_id),
                user_id=int(user_id),
                role=role,
                allocation=allocation,
                start_date=start_date,
                end_date=end_date,
                notes=notes,
            )
            self._history.append(
                resource_id=resource_id,
                project_id=int(project_id),
                user_id=int(user_id),
                action=ResourceAction.ADDED,
                new_role=role,
                new_allocation=allocation,
                performed_by=performed_by,
                note=notes,
            )
            resource = self._resources.get_by_id(resource_id)

        logger.info(
            "User %s assigned to project %s as %s (%s%%, peak total %s%%) by %s",
            user_id, project_id, role, allocation, total, performed_by,
        )
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=int(user_id),
                    title="Added to project",
                    message=f"You have been added to {project.name} as {role} ({allocation}% allocation).",
                    context=NotificationContext.project(project.project_id),
                )
            ],
        )
        return resource

    def update(
        self,
        resource_id: int,
        *,
        role=UNSET,
        allocation=UNSET,
        start_date=UNSET,
        end_date=UNSET,
        notes=UNSET,
        performed_by: Optional[int] = None,
        note: Optional[str] = None,
    ) -> ProjectResource:
        """Change role, allocation, dates or notes. Arguments left UNSET keep their value."""
        if role is not UNSET:
            role = require_non_empty(role, "Role")
        if allocation is not UNSET:
            allocation = require_allocation(allocation)

        with self._tx.atomic():
            current = self._lock_resource(resource_id)

            new_role = current.role if role is UNSET else role
            new_allocation = current.allocation if allocation is UNSET else allocation
            new_start = current.start_date if start_date is UNSET else start_date
            new_end = current.end_date if end_date is UNSET else end_date
            new_notes = current.notes if notes is UNSET else optional_text(notes)
            require_date_range(new_start, new_end)

            role_changed = new_role != current.role
            allocation_changed = new_allocation != current.allocation
            dates_changed = (new_start, new_end) != (current.start_date, current.end_date)

            if allocation_changed or dates_changed:
                self._allocation.validate_window(
                    current.user_id,
                    new_start,
                    new_end,
                    new_allocation,
                    excluding_resource_id=current.resource_id,
                )

            self._resources.update(
                resource_id=current.resource_id,
                role=new_role,
                allocation=new_allocation,
                start_date=new_start,
                end_date=new_end,
                notes=new_notes,
            )

            action = None
            if role_changed and allocation_changed:
                action = ResourceAction.ROLE_AND_ALLOCATION_CHANGED
            elif role_changed:
                action = ResourceAction.ROLE_CHANGED
            elif allocation_changed:
                action = ResourceAction.ALLOCATION_CHANGED

            if action is not None:
                self._history.append(
                    resource_id=current.resource_id,
                    project_id=current.project_id,
                    user_id=current.user_id,
                    action=action,
                    previous_role=current.role if role_changed else None,
                    new_role=new_role if role_changed else None,
                    previous_allocation=current.allocation if allocation_changed else None,
                    new_allocation=new_allocation if allocation_changed else None,
                    performed_by=performed_by,
                    note=optional_text(note),
                )
            project = self._projects.get_by_id(current.project_id)
            updated = self._resources.get_by_id(current.resource_id)

        if action is None:
            return updated

        logger.info("Resource %s updated (%s) by %s", current.resource_id, action.value, performed_by)
        changes = []
        if role_changed:
            changes.append(f"role {current.role} -> {new_role}")
        if allocation_changed:
            changes.append(f"allocation {current.allocation}% -> {new_allocation}%")
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=current.user_id,
                    title="Project assignment updated",
                    message=f"Your assignment on {_project_label(project, current.project_id)} changed: {', '.join(changes)}.",
                    context=NotificationContext.project(current.project_id),
                )
            ],
        )
        return updated

    def remove(self, resource_id: int, *, performed_by: Optional[int] = None, note: Optional[str] = None) -> None:
        with self._tx.atomic():
            current = self._lock_resource(resource_id)
            self._history.append(
                resource_id=current.resource_id,
                project_id=current.project_id,
                user_id=current.user_id,
                action=ResourceAction.REMOVED,
                previous_role=current.role,
                previous_allocation=current.allocation,
                performed_by=performed_by,
                note=optional_text(note),
            )
            self._resources.delete(current.resource_id)
            project = self._projects.get_by_id(current.project_id)

        logger.info(
            "User %s removed from project %s by %s", current.user_id, current.project_id, performed_by
        )
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=current.user_id,
                    title="Removed from project",
                    message=f"You have been removed from {_project_label(project, current.project_id)}.",
                    context=NotificationContext.project(current.project_id),
                )
            ],
        )

    # ---- reads ----
    def get_resource(self, resource_id: int) -> ProjectResource:
        resource = self._resources.get_by_id(int(resource_id))
        if not resource:
            raise NotFoundError("ProjectResource", resource_id)
        return resource

    def list_for_project(self, project_id: int) -> Sequence[ProjectResource]:
        if not self._projects.get_by_id(int(project_id)):
            raise NotFoundError("Project", project_id)
        return self._resources.list_for_project(int(project_id))

    def list_for_user(self, user_id: int) -> Sequence[ProjectResource]:
        if not self._users.get_by_id(int(user_id)):
            raise NotFoundError("User", user_id)
        return self._resources.list_for_user(int(user_id))

    def allocation_summary(self, user_id: int, as_of: Optional[date] = None) -> AllocationSummary:
        if not self._users.get_by_id(int(user_id)):
            raise NotFoundError("User", user_id)
        day = as_of or today_local()
        active = tuple(self._resources.list_active_for_user(int(user_id), day))
        total = sum(r.allocation for r in active)
        return AllocationSummary(
            user_id=int(user_id),
            as_of=day,
            total_allocation=total,
            remaining_capacity=max(0, self._allocation.limit - total),
            assignments=active,
        )

    def history_for_resource(self, resource_id: int) -> Sequence[ResourceHistory]:
        return self._history.list_for_resource(int(resource_id))

    def history_for_project(self, project_id: int, *, limit: int = 200) -> Sequence[ResourceHistory]:
        if not self._projects.get_by_id(int(project_id)):
            raise NotFoundError("Project", project_id)
        return self._history.list_for_project(int(project_id), limit=limit)

    def history_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[ResourceHistory]:
        return self._history.list_for_user(int(user_id), limit=limit)
