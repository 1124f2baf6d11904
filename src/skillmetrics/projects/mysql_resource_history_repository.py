from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import ResourceAction
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import ResourceHistory
from .repository import ResourceHistoryRepository

_COLUMNS = """
    history_id, resource_id, project_id, user_id, action,
    previous_role, new_role, previous_allocation, new_allocation,
    performed_by, note, created_at
"""


def _opt_int(value) -> Optional[int]:
    return int(value) if value is not None else None


def _to_history(r: dict) -> ResourceHistory:
    return ResourceHistory(
        history_id=int(r["history_id"]),
        resource_id=_opt_int(r.get("resource_id")),
        project_id=int(r["project_id"]),
        user_id=int(r["user_id"]),
        action=ResourceAction(r["action"]),
        previous_role=r.get("previous_role"),
        new_role=r.get("new_role"),
        previous_allocation=_opt_int(r.get("previous_allocation")),
        new_allocation=_opt_int(r.get("new_allocation")),
        performed_by=_opt_int(r.get("performed_by")),
        note=r.get("note"),
        created_at=r["created_at"],
    )


class MySQLResourceHistoryRepository(ResourceHistoryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO resource_history(
                    resource_id, project_id, user_id, action,
                    previous_role, new_role, previous_allocation, new_allocation,
                    performed_by, note
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    resource_id,
                    int(project_id),
                    int(user_id),
                    action.value,
                    previous_role,
                    new_role,
                    previous_allocation,
                    new_allocation,
                    performed_by,
                    note,
                ),
            )
            return int(cur.lastrowid)

    def _list(self, where: str, params: tuple, limit: Optional[int] = None) -> Sequence[ResourceHistory]:
        sql = f"SELECT {_COLUMNS} FROM resource_history WHERE {where} ORDER BY created_at DESC, history_id DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params = params + (int(limit),)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_to_history(r) for r in fetchall(cur)]

    def list_for_resource(self, resource_id: int) -> Sequence[ResourceHistory]:
        return self._list("resource_id=%s", (int(resource_id),))

    def list_for_project(self, project_id: int, *, limit: int = 200) -> Sequence[ResourceHistory]:
        return self._list("project_id=%s", (int(project_id),), limit)

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[ResourceHistory]:
        return self._list("user_id=%s", (int(user_id),), limit)
