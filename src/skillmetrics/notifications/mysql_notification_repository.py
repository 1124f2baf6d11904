from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import Notification
from .repository import NotificationRepository


class MySQLNotificationRepository(NotificationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, *, user_id: int, title: str, message: str, link: Optional[str]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO notifications(user_id, title, message, link) VALUES(%s,%s,%s,%s)",
                (int(user_id), title, message, link),
            )
            return int(cur.lastrowid)

    def list_for_user(self, user_id: int, *, unread_only: bool = False, limit: int = 200) -> Sequence[Notification]:
        where = "user_id=%s AND is_read=0" if unread_only else "user_id=%s"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT notification_id, user_id, title, message, link, is_read, created_at, read_at
                FROM notifications
                WHERE {where}
                ORDER BY created_at DESC, notification_id DESC
                LIMIT %s
                """,
                (int(user_id), int(limit)),
            )
            return [
                Notification(
                    notification_id=int(r["notification_id"]),
                    user_id=int(r["user_id"]),
                    title=r["title"],
                    message=r["message"],
                    link=r.get("link"),
                    is_read=bool(r["is_read"]),
                    created_at=r["created_at"],
                    read_at=r.get("read_at"),
                )
                for r in fetchall(cur)
            ]

    def mark_read(self, *, notification_id: int, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE notifications
                SET is_read=1, read_at=COALESCE(read_at, NOW())
                WHERE notification_id=%s AND user_id=%s
                """,
                (int(notification_id), int(user_id)),
            )
            return cur.rowcount > 0

    def mark_all_read(self, user_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE notifications SET is_read=1, read_at=NOW() WHERE user_id=%s AND is_read=0",
                (int(user_id),),
            )
            return int(cur.rowcount)
