from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .core.constants import DEFAULT_NOTIFICATION_WORKERS
from .database.connection import DBConfig, DatabaseConnection
from .notifications.dispatcher import AsyncNotificationDispatcher
from .notifications.email import SmtpEmailSender, SmtpSettings
from .notifications.mysql_notification_repository import MySQLNotificationRepository
from .notifications.service import NotificationService
from .projects.allocation import AllocationEngine
from .projects.mysql_project_repository import MySQLProjectRepository, MySQLProjectResourceRepository
from .projects.mysql_resource_history_repository import MySQLResourceHistoryRepository
from .projects.service import ResourceAssignmentWorkflow
from .skill_updates.mysql_pending_update_repository import MySQLPendingSkillUpdateRepository
from .skill_updates.service import SkillUpdateWorkflow
from .skills.mysql_skill_repository import (
    MySQLEndorsementRepository,
    MySQLSkillHistoryRepository,
    MySQLSkillRepository,
)
from .skills.service import SkillService
from .users.mysql_user_repository import MySQLUserRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    users_repo: MySQLUserRepository
    projects_repo: MySQLProjectRepository
    resources_repo: MySQLProjectResourceRepository
    resource_history_repo: MySQLResourceHistoryRepository
    skills_repo: MySQLSkillRepository
    skill_history_repo: MySQLSkillHistoryRepository
    endorsements_repo: MySQLEndorsementRepository
    pending_updates_repo: MySQLPendingSkillUpdateRepository
    notifications_repo: MySQLNotificationRepository

    notifier: AsyncNotificationDispatcher
    allocation_engine: AllocationEngine
    skill_update_workflow: SkillUpdateWorkflow
    resource_workflow: ResourceAssignmentWorkflow
    skill_service: SkillService
    notification_service: NotificationService


def build_container(
    *,
    db_config: dict,
    smtp_config: Optional[dict] = None,
    notification_workers: int = DEFAULT_NOTIFICATION_WORKERS,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    users_repo = MySQLUserRepository(conn)
    projects_repo = MySQLProjectRepository(conn)
    resources_repo = MySQLProjectResourceRepository(conn)
    resource_history_repo = MySQLResourceHistoryRepository(conn)
    skills_repo = MySQLSkillRepository(conn)
    skill_history_repo = MySQLSkillHistoryRepository(conn)
    endorsements_repo = MySQLEndorsementRepository(conn)
    pending_updates_repo = MySQLPendingSkillUpdateRepository(conn)
    notifications_repo = MySQLNotificationRepository(conn)

    email_sender = SmtpEmailSender(SmtpSettings.from_config(smtp_config))
    notifier = AsyncNotificationDispatcher(
        notifications_repo,
        users_repo,
        email_sender=email_sender,
        base_url=email_sender.base_url,
        max_workers=notification_workers,
    )
    allocation_engine = AllocationEngine(resources_repo)

    skill_update_workflow = SkillUpdateWorkflow(
        conn,
        users_repo,
        skills_repo,
        skill_history_repo,
        pending_updates_repo,
        notifier,
    )
    resource_workflow = ResourceAssignmentWorkflow(
        conn,
        users_repo,
        projects_repo,
        resources_repo,
        resource_history_repo,
        allocation_engine,
        notifier,
    )
    skill_service = SkillService(
        conn,
        users_repo,
        skills_repo,
        skill_history_repo,
        endorsements_repo,
        pending_updates_repo,
        notifier,
    )
    notification_service = NotificationService(notifications_repo)

    return Container(
        conn=conn,
        users_repo=users_repo,
        projects_repo=projects_repo,
        resources_repo=resources_repo,
        resource_history_repo=resource_history_repo,
        skills_repo=skills_repo,
        skill_history_repo=skill_history_repo,
        endorsements_repo=endorsements_repo,
        pending_updates_repo=pending_updates_repo,
        notifications_repo=notifications_repo,
        notifier=notifier,
        allocation_engine=allocation_engine,
        skill_update_workflow=skill_update_workflow,
        resource_workflow=resource_workflow,
        skill_service=skill_service,
        notification_service=notification_service,
    )
