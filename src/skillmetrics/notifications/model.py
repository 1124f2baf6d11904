from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from ..core.enums import ContextKind


@dataclass(frozen=True)
class Notification:
    notification_id: int
    user_id: int
    title: str
    message: str
    link: Optional[str]
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None


@dataclass(frozen=True)
class NotificationContext:
    """What a notification is about: a closed kind plus the entity id."""

    kind: ContextKind
    entity_id: int

    @classmethod
    def skill(cls, skill_id: int) -> "NotificationContext":
        return cls(ContextKind.SKILL, int(skill_id))

    @classmethod
    def skill_update(cls, update_id: int) -> "NotificationContext":
        return cls(ContextKind.SKILL_UPDATE, int(update_id))

    @classmethod
    def project(cls, project_id: int) -> "NotificationContext":
        return cls(ContextKind.PROJECT, int(project_id))

    @classmethod
    def user(cls, user_id: int) -> "NotificationContext":
        return cls(ContextKind.USER, int(user_id))

    @classmethod
    def client(cls, client_id: int) -> "NotificationContext":
        return cls(ContextKind.CLIENT, int(client_id))


_LINK_BUILDERS: Dict[ContextKind, Callable[[int], str]] = {
    ContextKind.SKILL: lambda entity_id: f"/skills/{entity_id}",
    ContextKind.SKILL_UPDATE: lambda entity_id: f"/pending-updates/{entity_id}",
    ContextKind.PROJECT: lambda entity_id: f"/projects/{entity_id}",
    ContextKind.USER: lambda entity_id: f"/users/{entity_id}",
    ContextKind.CLIENT: lambda entity_id: f"/clients/{entity_id}",
}


def link_for(context: NotificationContext) -> str:
    return _LINK_BUILDERS[context.kind](context.entity_id)


@dataclass(frozen=True)
class OutgoingNotification:
    """Message queued by a workflow and handed to the dispatcher after commit."""

    recipient_id: int
    title: str
    message: str
    context: NotificationContext

    @property
    def link(self) -> str:
        return link_for(self.context)
