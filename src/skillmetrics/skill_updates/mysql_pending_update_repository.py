from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

import mysql.connector
from mysql.connector import errorcode

from ..core.enums import SkillLevel, UpdateStatus
from ..core.exceptions import DuplicatePendingRequest
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import PendingSkillUpdate
from .repository import PendingSkillUpdateRepository

_COLUMNS = """
    update_id, user_id, skill_id,
    current_name, current_category, current_level,
    proposed_name, proposed_category, proposed_level, proposed_certification,
    justification, status, reviewer_id, reviewer_comments,
    created_at, approved_at, rejected_at
"""


def _to_update(r: dict) -> PendingSkillUpdate:
    return PendingSkillUpdate(
        update_id=int(r["update_id"]),
        user_id=int(r["user_id"]),
        skill_id=int(r["skill_id"]) if r.get("skill_id") is not None else None,
        current_name=r.get("current_name"),
        current_category=r.get("current_category"),
        current_level=SkillLevel(r["current_level"]) if r.get("current_level") else None,
        proposed_name=r["proposed_name"],
        proposed_category=r["proposed_category"],
        proposed_level=SkillLevel(r["proposed_level"]),
        proposed_certification=r.get("proposed_certification"),
        justification=r.get("justification"),
        status=UpdateStatus(r["status"]),
        created_at=r["created_at"],
        reviewer_id=int(r["reviewer_id"]) if r.get("reviewer_id") is not None else None,
        reviewer_comments=r.get("reviewer_comments"),
        approved_at=r.get("approved_at"),
        rejected_at=r.get("rejected_at"),
    )


class MySQLPendingSkillUpdateRepository(PendingSkillUpdateRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(
        self,
        *,
        user_id: int,
        skill_id: Optional[int],
        current_name: Optional[str],
        current_category: Optional[str],
        current_level: Optional[SkillLevel],
        proposed_name: str,
        proposed_category: str,
        proposed_level: SkillLevel,
        proposed_certification: Optional[str],
        justification: Optional[str],
    ) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO pending_skill_updates(
                        user_id, skill_id, current_name, current_category, current_level,
                        proposed_name, proposed_category, proposed_level, proposed_certification,
                        justification, status
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(user_id),
                        skill_id,
                        current_name,
                        current_category,
                        current_level.value if current_level else None,
                        proposed_name,
                        proposed_category,
                        proposed_level.value,
                        proposed_certification,
                        justification,
                        UpdateStatus.PENDING.value,
                    ),
                )
                return int(cur.lastrowid)
        except mysql.connector.IntegrityError as e:
            # uq_pending_skill_updates_key: one PENDING row per (user, skill).
            if e.errno == errorcode.ER_DUP_ENTRY:
                raise DuplicatePendingRequest(
                    f"User {user_id} already has a pending update for this skill"
                ) from e
            raise

    def _select_one(self, where: str, params: tuple, *, for_update: bool = False) -> Optional[PendingSkillUpdate]:
        lock = " FOR UPDATE" if for_update else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM pending_skill_updates WHERE {where} LIMIT 1{lock}", params)
            r = fetchone(cur)
            return _to_update(r) if r else None

    def get_by_id(self, update_id: int) -> Optional[PendingSkillUpdate]:
        return self._select_one("update_id=%s", (int(update_id),))

    def get_for_update(self, update_id: int) -> Optional[PendingSkillUpdate]:
        return self._select_one("update_id=%s", (int(update_id),), for_update=True)

    def find_pending(
        self,
        *,
        user_id: int,
        skill_id: Optional[int],
        proposed_name: Optional[str] = None,
    ) -> Optional[PendingSkillUpdate]:
        if skill_id is not None:
            return self._select_one(
                "user_id=%s AND skill_id=%s AND status=%s",
                (int(user_id), int(skill_id), UpdateStatus.PENDING.value),
            )
        return self._select_one(
            "user_id=%s AND skill_id IS NULL AND LOWER(proposed_name)=LOWER(%s) AND status=%s",
            (int(user_id), proposed_name or "", UpdateStatus.PENDING.value),
        )

    def list_updates(
        self,
        *,
        status: Optional[UpdateStatus] = None,
        user_id: Optional[int] = None,
        skill_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[PendingSkillUpdate]:
        clauses = ["1=1"]
        params: list[object] = []

        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        if user_id is not None:
            clauses.append("user_id=%s")
            params.append(int(user_id))
        if skill_id is not None:
            clauses.append("skill_id=%s")
            params.append(int(skill_id))

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM pending_skill_updates
                WHERE {where}
                ORDER BY created_at DESC, update_id DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_to_update(r) for r in fetchall(cur)]

    def set_reviewer(self, *, update_id: int, reviewer_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE pending_skill_updates SET reviewer_id=%s WHERE update_id=%s AND status=%s",
                (int(reviewer_id), int(update_id), UpdateStatus.PENDING.value),
            )
            return cur.rowcount > 0

    def decide(
        self,
        *,
        update_id: int,
        status: UpdateStatus,
        reviewer_id: int,
        comments: Optional[str],
        decided_at: datetime,
    ) -> bool:
        stamp_column = "approved_at" if status == UpdateStatus.APPROVED else "rejected_at"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE pending_skill_updates
                SET status=%s, reviewer_id=COALESCE(reviewer_id, %s), reviewer_comments=%s, {stamp_column}=%s
                WHERE update_id=%s AND status=%s
                """,
                (
                    status.value,
                    int(reviewer_id),
                    comments,
                    decided_at,
                    int(update_id),
                    UpdateStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def delete(self, update_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM pending_skill_updates WHERE update_id=%s", (int(update_id),))
            return cur.rowcount > 0

    def lock_for_skill(self, skill_id: int) -> Sequence[PendingSkillUpdate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM pending_skill_updates WHERE skill_id=%s ORDER BY update_id FOR UPDATE",
                (int(skill_id),),
            )
            return [_to_update(r) for r in fetchall(cur)]

    def delete_for_skill(self, skill_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM pending_skill_updates WHERE skill_id=%s", (int(skill_id),))
            return int(cur.rowcount)
