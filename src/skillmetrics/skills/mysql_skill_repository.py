from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import SkillHistoryAction, SkillLevel
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Endorsement, Skill, SkillHistory
from .repository import EndorsementRepository, SkillHistoryRepository, SkillRepository

_SKILL_COLUMNS = """
    skill_id, user_id, name, category, level, certification, notes,
    endorsement_count, created_at, updated_at
"""


def _to_skill(r: dict) -> Skill:
    return Skill(
        skill_id=int(r["skill_id"]),
        user_id=int(r["user_id"]),
        name=r["name"],
        category=r["category"],
        level=SkillLevel(r["level"]),
        certification=r.get("certification"),
        notes=r.get("notes"),
        endorsement_count=int(r.get("endorsement_count") or 0),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLSkillRepository(SkillRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, skill_id: int) -> Optional[Skill]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_SKILL_COLUMNS} FROM skills WHERE skill_id=%s", (int(skill_id),))
            r = fetchone(cur)
            return _to_skill(r) if r else None

    def get_for_update(self, skill_id: int) -> Optional[Skill]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_SKILL_COLUMNS} FROM skills WHERE skill_id=%s FOR UPDATE", (int(skill_id),))
            r = fetchone(cur)
            return _to_skill(r) if r else None

    def list_for_user(self, user_id: int) -> Sequence[Skill]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_SKILL_COLUMNS} FROM skills WHERE user_id=%s ORDER BY category, name",
                (int(user_id),),
            )
            return [_to_skill(r) for r in fetchall(cur)]

    def create(
        self,
        *,
        user_id: int,
        name: str,
        category: str,
        level: SkillLevel,
        certification: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO skills(user_id, name, category, level, certification, notes)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (int(user_id), name, category, level.value, certification, notes),
            )
            return int(cur.lastrowid)

    def update(
        self,
        *,
        skill_id: int,
        name: str,
        category: str,
        level: SkillLevel,
        certification: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE skills
                SET name=%s, category=%s, level=%s, certification=%s, notes=%s
                WHERE skill_id=%s
                """,
                (name, category, level.value, certification, notes, int(skill_id)),
            )
            return cur.rowcount > 0

    def increment_endorsements(self, skill_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE skills SET endorsement_count=endorsement_count+1 WHERE skill_id=%s",
                (int(skill_id),),
            )
            return cur.rowcount > 0

    def delete(self, skill_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM skills WHERE skill_id=%s", (int(skill_id),))
            return cur.rowcount > 0


class MySQLSkillHistoryRepository(SkillHistoryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append(
        self,
        *,
        skill_id: int,
        user_id: int,
        action: SkillHistoryAction,
        previous_value: Optional[str] = None,
        new_value: Optional[str] = None,
        performed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO skill_histories(skill_id, user_id, action, previous_value, new_value, performed_by, reason)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (int(skill_id), int(user_id), action.value, previous_value, new_value, performed_by, reason),
            )
            return int(cur.lastrowid)

    def _list(self, where: str, params: tuple, limit: Optional[int] = None) -> Sequence[SkillHistory]:
        sql = f"""
            SELECT history_id, skill_id, user_id, action, previous_value, new_value,
                   performed_by, reason, created_at
            FROM skill_histories
            WHERE {where}
            ORDER BY created_at DESC, history_id DESC
        """
        if limit is not None:
            sql += " LIMIT %s"
            params = params + (int(limit),)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [
                SkillHistory(
                    history_id=int(r["history_id"]),
                    skill_id=int(r["skill_id"]),
                    user_id=int(r["user_id"]),
                    action=SkillHistoryAction(r["action"]),
                    previous_value=r.get("previous_value"),
                    new_value=r.get("new_value"),
                    performed_by=r.get("performed_by"),
                    reason=r.get("reason"),
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]

    def list_for_skill(self, skill_id: int) -> Sequence[SkillHistory]:
        return self._list("skill_id=%s", (int(skill_id),))

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[SkillHistory]:
        return self._list("user_id=%s", (int(user_id),), limit)


class MySQLEndorsementRepository(EndorsementRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def exists(self, *, skill_id: int, endorser_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS found FROM endorsements WHERE skill_id=%s AND endorser_id=%s",
                (int(skill_id), int(endorser_id)),
            )
            return fetchone(cur) is not None

    def create(self, *, skill_id: int, endorser_id: int, endorsee_id: int, comment: Optional[str]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO endorsements(skill_id, endorser_id, endorsee_id, comment) VALUES(%s,%s,%s,%s)",
                (int(skill_id), int(endorser_id), int(endorsee_id), comment),
            )
            return int(cur.lastrowid)

    def list_for_skill(self, skill_id: int) -> Sequence[Endorsement]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT endorsement_id, skill_id, endorser_id, endorsee_id, comment, created_at
                FROM endorsements
                WHERE skill_id=%s
                ORDER BY created_at DESC
                """,
                (int(skill_id),),
            )
            return [
                Endorsement(
                    endorsement_id=int(r["endorsement_id"]),
                    skill_id=int(r["skill_id"]),
                    endorser_id=int(r["endorser_id"]),
                    endorsee_id=int(r["endorsee_id"]),
                    comment=r.get("comment"),
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]
