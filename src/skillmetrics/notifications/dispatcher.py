from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Iterable, Optional, Protocol

from ..core.constants import DEFAULT_NOTIFICATION_WORKERS
from ..core.exceptions import NotificationDispatchFailure
from ..users.repository import UserRepository
from .email import EmailSender
from .model import OutgoingNotification
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Fire-and-forget notification sink. Must never raise into the caller."""

    def notify(self, recipient_id: int, title: str, message: str, link: Optional[str] = None) -> None:
        raise NotImplementedError


class AsyncNotificationDispatcher(Notifier):
    """Delivers notifications (in-app + email) on a worker pool.

    ``notify`` only enqueues; the caller never waits for delivery and never
    sees a delivery error. Failures are logged and dropped.
    """

    def __init__(
        self,
        notifications: NotificationRepository,
        users: UserRepository,
        *,
        email_sender: Optional[EmailSender] = None,
        base_url: str = "",
        max_workers: int = DEFAULT_NOTIFICATION_WORKERS,
        executor: Optional[Executor] = None,
    ):
        self._notifications = notifications
        self._users = users
        self._email_sender = email_sender
        self._base_url = base_url.rstrip("/")
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)),
            thread_name_prefix="notify",
        )

    def notify(self, recipient_id: int, title: str, message: str, link: Optional[str] = None) -> None:
        try:
            self._executor.submit(self._deliver, int(recipient_id), title, message, link)
        except RuntimeError:
            # Executor already shut down (application exiting).
            logger.exception("%s: could not enqueue notification for user %s", NotificationDispatchFailure.__name__, recipient_id)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _deliver(self, recipient_id: int, title: str, message: str, link: Optional[str]) -> None:
        try:
            self._notifications.create(user_id=recipient_id, title=title, message=message, link=link)
        except Exception:
            logger.exception(
                "%s: in-app notification for user %s failed (%s)",
                NotificationDispatchFailure.__name__,
                recipient_id,
                title,
            )

        if self._email_sender is None or not self._email_sender.is_configured():
            return

        try:
            user = self._users.get_by_id(recipient_id)
            if not user or not user.email or not user.is_active:
                return
            body = message
            if link:
                body = f"{message}\n\n{self._base_url}{link}"
            self._email_sender.send(to_email=user.email, subject=title, body=body)
        except Exception:
            logger.exception(
                "%s: email notification for user %s failed (%s)",
                NotificationDispatchFailure.__name__,
                recipient_id,
                title,
            )


def dispatch_all(notifier: Notifier, outgoing: Iterable[OutgoingNotification]) -> None:
    """Hand queued messages to the notifier; a misbehaving notifier is logged, not propagated."""
    for item in outgoing:
        try:
            notifier.notify(item.recipient_id, item.title, item.message, item.link)
        except Exception:
            logger.exception(
                "%s: notifier raised for user %s (%s)",
                NotificationDispatchFailure.__name__,
                item.recipient_id,
                item.title,
            )
