from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Project, ProjectResource
from .repository import ProjectRepository, ProjectResourceRepository

_RESOURCE_COLUMNS = """
    resource_id, project_id, user_id, role, allocation,
    start_date, end_date, notes, created_at, updated_at
"""


def _to_resource(row: dict) -> ProjectResource:
    return ProjectResource(
        resource_id=int(row["resource_id"]),
        project_id=int(row["project_id"]),
        user_id=int(row["user_id"]),
        role=row["role"],
        allocation=int(row["allocation"]),
        start_date=row.get("start_date"),
        end_date=row.get("end_date"),
        notes=row.get("notes"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class MySQLProjectRepository(ProjectRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, project_id: int) -> Optional[Project]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT project_id, name, client_id, status FROM projects WHERE project_id=%s",
                (int(project_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Project(
                project_id=int(r["project_id"]),
                name=r["name"],
                client_id=r.get("client_id"),
                status=r.get("status") or "active",
            )


class MySQLProjectResourceRepository(ProjectResourceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _select_one(self, where: str, params: tuple, *, for_update: bool = False) -> Optional[ProjectResource]:
        lock = " FOR UPDATE" if for_update else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_RESOURCE_COLUMNS} FROM project_resources WHERE {where}{lock}", params)
            r = fetchone(cur)
            return _to_resource(r) if r else None

    def _select_many(self, where: str, params: tuple) -> Sequence[ProjectResource]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RESOURCE_COLUMNS}
                FROM project_resources
                WHERE {where}
                ORDER BY start_date IS NULL DESC, start_date, resource_id
                """,
                params,
            )
            return [_to_resource(r) for r in fetchall(cur)]

    def get_by_id(self, resource_id: int) -> Optional[ProjectResource]:
        return self._select_one("resource_id=%s", (int(resource_id),))

    def get_for_update(self, resource_id: int) -> Optional[ProjectResource]:
        return self._select_one("resource_id=%s", (int(resource_id),), for_update=True)

    def find_by_project_and_user(self, *, project_id: int, user_id: int) -> Optional[ProjectResource]:
        return self._select_one("project_id=%s AND user_id=%s", (int(project_id), int(user_id)))

    def list_for_project(self, project_id: int) -> Sequence[ProjectResource]:
        return self._select_many("project_id=%s", (int(project_id),))

    def list_for_user(self, user_id: int) -> Sequence[ProjectResource]:
        return self._select_many("user_id=%s", (int(user_id),))

    def list_active_for_user(self, user_id: int, as_of: date) -> Sequence[ProjectResource]:
        return self._select_many(
            """
            user_id=%s
            AND (start_date IS NULL OR start_date<=%s)
            AND (end_date IS NULL OR end_date>=%s)
            """,
            (int(user_id), as_of, as_of),
        )

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO project_resources(project_id, user_id, role, allocation, start_date, end_date, notes)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (int(project_id), int(user_id), role, int(allocation), start_date, end_date, notes),
            )
            return int(cur.lastrowid)

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE project_resources
                SET role=%s, allocation=%s, start_date=%s, end_date=%s, notes=%s
                WHERE resource_id=%s
                """,
                (role, int(allocation), start_date, end_date, notes, int(resource_id)),
            )
            return cur.rowcount > 0

    def delete(self, resource_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM project_resources WHERE resource_id=%s", (int(resource_id),))
            return cur.rowcount > 0
