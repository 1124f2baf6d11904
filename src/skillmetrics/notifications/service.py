from __future__ import annotations

from typing import Sequence

from ..core.exceptions import NotFoundError
from .model import Notification
from .repository import NotificationRepository


class NotificationService:
    """Use case: read and acknowledge in-app notifications."""

    def __init__(self, notifications: NotificationRepository):
        self._notifications = notifications

    def list_for_user(self, *, user_id: int, unread_only: bool = False, limit: int = 200) -> Sequence[Notification]:
        return self._notifications.list_for_user(int(user_id), unread_only=unread_only, limit=limit)

    def mark_read(self, *, notification_id: int, user_id: int) -> None:
        if not self._notifications.mark_read(notification_id=int(notification_id), user_id=int(user_id)):
            raise NotFoundError("Notification", notification_id)

    def mark_all_read(self, *, user_id: int) -> int:
        return self._notifications.mark_all_read(int(user_id))
