from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from itertools import count

import pytest

from skillmetrics.core.enums import Role, UpdateStatus
from skillmetrics.core.exceptions import DuplicatePendingRequest
from skillmetrics.notifications.model import Notification
from skillmetrics.projects.allocation import AllocationEngine
from skillmetrics.projects.model import Project, ProjectResource, ResourceHistory
from skillmetrics.projects.service import ResourceAssignmentWorkflow
from skillmetrics.skill_updates.model import PendingSkillUpdate
from skillmetrics.skill_updates.service import SkillUpdateWorkflow
from skillmetrics.skills.model import Endorsement, Skill, SkillHistory
from skillmetrics.skills.service import SkillService
from skillmetrics.users.model import User

FIXED_NOW = datetime(2026, 3, 2, 9, 30, 0)

_TABLES = (
    "users",
    "projects",
    "resources",
    "resource_history",
    "skills",
    "skill_history",
    "endorsements",
    "pending",
    "notifications",
)


class FakeDB:
    """In-memory tables shared by the fake repositories."""

    def __init__(self):
        for name in _TABLES:
            setattr(self, name, {})
        self._ids = count(1000)
        self.row_locks: list[tuple[str, int]] = []

    def next_id(self) -> int:
        return next(self._ids)

    def snapshot(self) -> dict:
        return {name: dict(getattr(self, name)) for name in _TABLES}

    def restore(self, snap: dict) -> None:
        for name, rows in snap.items():
            setattr(self, name, rows)


class FakeTransactions:
    """One global re-entrant lock stands in for row locks; rollback restores a snapshot."""

    def __init__(self, db: FakeDB):
        self._db = db
        self._lock = threading.RLock()
        self._local = threading.local()
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def atomic(self):
        with self._lock:
            depth = getattr(self._local, "depth", 0)
            if depth == 0:
                self._local.snap = self._db.snapshot()
            self._local.depth = depth + 1
            try:
                yield
            except Exception:
                if depth == 0:
                    self._db.restore(self._local.snap)
                    self.rollbacks += 1
                raise
            else:
                if depth == 0:
                    self.commits += 1
            finally:
                self._local.depth = depth


class FakeUserRepo:
    def __init__(self, db: FakeDB):
        self._db = db
        self.locked: list[int] = []

    def add(self, user_id, full_name, role=Role.USER, email=None, is_active=True) -> User:
        user = User(user_id=user_id, full_name=full_name, email=email, role=role, is_active=is_active)
        self._db.users[user_id] = user
        return user

    def get_by_id(self, user_id):
        return self._db.users.get(int(user_id))

    def lock(self, user_id):
        self.locked.append(int(user_id))
        return self._db.users.get(int(user_id))

    def list_by_roles(self, roles):
        roles = set(roles)
        return [u for _, u in sorted(self._db.users.items()) if u.is_active and u.role in roles]


class FakeProjectRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    def add(self, project_id, name) -> Project:
        project = Project(project_id=project_id, name=name)
        self._db.projects[project_id] = project
        return project

    def get_by_id(self, project_id):
        return self._db.projects.get(int(project_id))


class FakeResourceRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    def get_by_id(self, resource_id):
        return self._db.resources.get(int(resource_id))

    def get_for_update(self, resource_id):
        return self._db.resources.get(int(resource_id))

    def find_by_project_and_user(self, *, project_id, user_id):
        for r in self._db.resources.values():
            if r.project_id == project_id and r.user_id == user_id:
                return r
        return None

    def list_for_project(self, project_id):
        return [r for r in self._db.resources.values() if r.project_id == project_id]

    def list_for_user(self, user_id):
        return [r for r in self._db.resources.values() if r.user_id == user_id]

    def list_active_for_user(self, user_id, as_of):
        return [r for r in self.list_for_user(user_id) if r.is_active_on(as_of)]

    def create(self, *, project_id, user_id, role, allocation, start_date, end_date, notes=None):
        rid = self._db.next_id()
        self._db.resources[rid] = ProjectResource(
            resource_id=rid,
            project_id=project_id,
            user_id=user_id,
            role=role,
            allocation=allocation,
            start_date=start_date,
            end_date=end_date,
            notes=notes,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
        return rid

    def update(self, *, resource_id, role, allocation, start_date, end_date, notes):
        current = self._db.resources.get(int(resource_id))
        if not current:
            return False
        self._db.resources[int(resource_id)] = replace(
            current, role=role, allocation=allocation, start_date=start_date, end_date=end_date, notes=notes
        )
        return True

    def delete(self, resource_id):
        return self._db.resources.pop(int(resource_id), None) is not None


class FakeResourceHistoryRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    def append(
        self,
        *,
        resource_id,
        project_id,
        user_id,
        action,
        previous_role=None,
        new_role=None,
        previous_allocation=None,
        new_allocation=None,
        performed_by=None,
        note=None,
    ):
        hid = self._db.next_id()
        self._db.resource_history[hid] = ResourceHistory(
            history_id=hid,
            resource_id=resource_id,
            project_id=project_id,
            user_id=user_id,
            action=action,
            previous_role=previous_role,
            new_role=new_role,
            previous_allocation=previous_allocation,
            new_allocation=new_allocation,
            performed_by=performed_by,
            note=note,
            created_at=FIXED_NOW,
        )
        return hid

    def _rows(self):
        return sorted(self._db.resource_history.values(), key=lambda h: h.history_id)

    def list_for_resource(self, resource_id):
        return [h for h in self._rows() if h.resource_id == resource_id]

    def list_for_project(self, project_id, *, limit=200):
        return [h for h in self._rows() if h.project_id == project_id][:limit]

    def list_for_user(self, user_id, *, limit=200):
        return [h for h in self._rows() if h.user_id == user_id][:limit]


class FakeSkillRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    def add(self, skill: Skill) -> Skill:
        self._db.skills[skill.skill_id] = skill
        return skill

    def get_by_id(self, skill_id):
        return self._db.skills.get(int(skill_id))

    def get_for_update(self, skill_id):
        self._db.row_locks.append(("skill", int(skill_id)))
        return self._db.skills.get(int(skill_id))

    def list_for_user(self, user_id):
        return [s for s in self._db.skills.values() if s.user_id == user_id]

    def create(self, *, user_id, name, category, level, certification=None, notes=None):
        sid = self._db.next_id()
        self._db.skills[sid] = Skill(
            skill_id=sid,
            user_id=user_id,
            name=name,
            category=category,
            level=level,
            certification=certification,
            notes=notes,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
        return sid

    def update(self, *, skill_id, name, category, level, certification=None, notes=None):
        current = self._db.skills.get(int(skill_id))
        if not current:
            return False
        self._db.skills[int(skill_id)] = replace(
            current, name=name, category=category, level=level, certification=certification, notes=notes
        )
        return True

    def increment_endorsements(self, skill_id):
        current = self._db.skills.get(int(skill_id))
        if not current:
            return False
        self._db.skills[int(skill_id)] = replace(current, endorsement_count=current.endorsement_count + 1)
        return True

    def delete(self, skill_id):
        if self._db.skills.pop(int(skill_id), None) is None:
            return False
        self._db.skill_history = {k: h for k, h in self._db.skill_history.items() if h.skill_id != skill_id}
        self._db.endorsements = {k: e for k, e in self._db.endorsements.items() if e.skill_id != skill_id}
        return True


class FakeSkillHistoryRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    def append(self, *, skill_id, user_id, action, previous_value=None, new_value=None, performed_by=None, reason=None):
        hid = self._db.next_id()
        self._db.skill_history[hid] = SkillHistory(
            history_id=hid,
            skill_id=skill_id,
            user_id=user_id,
            action=action,
            previous_value=previous_value,
            new_value=new_value,
            performed_by=performed_by,
            reason=reason,
            created_at=FIXED_NOW,
        )
        return hid

    def list_for_skill(self, skill_id):
        return [h for _, h in sorted(self._db.skill_history.items()) if h.skill_id == skill_id]

    def list_for_user(self, user_id, *, limit=200):
        return [h for _, h in sorted(self._db.skill_history.items()) if h.user_id == user_id][:limit]


class FakeEndorsementRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    def exists(self, *, skill_id, endorser_id):
        return any(e.skill_id == skill_id and e.endorser_id == endorser_id for e in self._db.endorsements.values())

    def create(self, *, skill_id, endorser_id, endorsee_id, comment):
        eid = self._db.next_id()
        self._db.endorsements[eid] = Endorsement(
            endorsement_id=eid,
            skill_id=skill_id,
            endorser_id=endorser_id,
            endorsee_id=endorsee_id,
            comment=comment,
            created_at=FIXED_NOW,
        )
        return eid

    def list_for_skill(self, skill_id):
        return [e for _, e in sorted(self._db.endorsements.items()) if e.skill_id == skill_id]


class FakePendingRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    @staticmethod
    def _key(user_id, skill_id, proposed_name):
        return (user_id, skill_id) if skill_id is not None else (user_id, None, (proposed_name or "").lower())

    def create(
        self,
        *,
        user_id,
        skill_id,
        current_name,
        current_category,
        current_level,
        proposed_name,
        proposed_category,
        proposed_level,
        proposed_certification,
        justification,
    ):
        key = self._key(user_id, skill_id, proposed_name)
        for u in self._db.pending.values():
            if u.status == UpdateStatus.PENDING and self._key(u.user_id, u.skill_id, u.proposed_name) == key:
                raise DuplicatePendingRequest("duplicate pending key")
        uid = self._db.next_id()
        self._db.pending[uid] = PendingSkillUpdate(
            update_id=uid,
            user_id=user_id,
            skill_id=skill_id,
            current_name=current_name,
            current_category=current_category,
            current_level=current_level,
            proposed_name=proposed_name,
            proposed_category=proposed_category,
            proposed_level=proposed_level,
            proposed_certification=proposed_certification,
            justification=justification,
            status=UpdateStatus.PENDING,
            created_at=FIXED_NOW,
        )
        return uid

    def get_by_id(self, update_id):
        return self._db.pending.get(int(update_id))

    def get_for_update(self, update_id):
        self._db.row_locks.append(("pending", int(update_id)))
        return self._db.pending.get(int(update_id))

    def find_pending(self, *, user_id, skill_id, proposed_name=None):
        key = self._key(user_id, skill_id, proposed_name)
        for u in self._db.pending.values():
            if u.status == UpdateStatus.PENDING and self._key(u.user_id, u.skill_id, u.proposed_name) == key:
                return u
        return None

    def list_updates(self, *, status=None, user_id=None, skill_id=None, limit=200):
        rows = sorted(self._db.pending.values(), key=lambda u: u.update_id, reverse=True)
        if status is not None:
            rows = [u for u in rows if u.status == status]
        if user_id is not None:
            rows = [u for u in rows if u.user_id == user_id]
        if skill_id is not None:
            rows = [u for u in rows if u.skill_id == skill_id]
        return rows[:limit]

    def set_reviewer(self, *, update_id, reviewer_id):
        current = self._db.pending.get(int(update_id))
        if not current or current.status != UpdateStatus.PENDING:
            return False
        self._db.pending[int(update_id)] = replace(current, reviewer_id=reviewer_id)
        return True

    def decide(self, *, update_id, status, reviewer_id, comments, decided_at):
        current = self._db.pending.get(int(update_id))
        if not current or current.status != UpdateStatus.PENDING:
            return False
        stamps = {"approved_at": decided_at} if status == UpdateStatus.APPROVED else {"rejected_at": decided_at}
        self._db.pending[int(update_id)] = replace(
            current,
            status=status,
            reviewer_id=current.reviewer_id or reviewer_id,
            reviewer_comments=comments,
            **stamps,
        )
        return True

    def delete(self, update_id):
        return self._db.pending.pop(int(update_id), None) is not None

    def lock_for_skill(self, skill_id):
        rows = sorted((u for u in self._db.pending.values() if u.skill_id == skill_id), key=lambda u: u.update_id)
        self._db.row_locks.extend(("pending", u.update_id) for u in rows)
        return rows

    def delete_for_skill(self, skill_id):
        doomed = [k for k, u in self._db.pending.items() if u.skill_id == skill_id]
        for k in doomed:
            del self._db.pending[k]
        return len(doomed)


class FakeNotificationRepo:
    def __init__(self, db: FakeDB):
        self._db = db

    def create(self, *, user_id, title, message, link):
        nid = self._db.next_id()
        self._db.notifications[nid] = Notification(
            notification_id=nid,
            user_id=user_id,
            title=title,
            message=message,
            link=link,
            is_read=False,
            created_at=FIXED_NOW,
        )
        return nid

    def list_for_user(self, user_id, *, unread_only=False, limit=200):
        rows = [n for _, n in sorted(self._db.notifications.items()) if n.user_id == user_id]
        if unread_only:
            rows = [n for n in rows if not n.is_read]
        return rows[:limit]

    def mark_read(self, *, notification_id, user_id):
        current = self._db.notifications.get(int(notification_id))
        if not current or current.user_id != user_id:
            return False
        self._db.notifications[int(notification_id)] = replace(current, is_read=True, read_at=FIXED_NOW)
        return True

    def mark_all_read(self, user_id):
        changed = 0
        for nid, n in list(self._db.notifications.items()):
            if n.user_id == user_id and not n.is_read:
                self._db.notifications[nid] = replace(n, is_read=True, read_at=FIXED_NOW)
                changed += 1
        return changed


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple] = []
        self._lock = threading.Lock()

    def notify(self, recipient_id, title, message, link=None):
        with self._lock:
            self.sent.append((recipient_id, title, message, link))

    def recipients(self) -> list[int]:
        return [s[0] for s in self.sent]


class Env:
    """Fake repositories plus the workflows wired on top of them."""

    def __init__(self):
        self.db = FakeDB()
        self.tx = FakeTransactions(self.db)
        self.notifier = RecordingNotifier()

        self.users = FakeUserRepo(self.db)
        self.projects = FakeProjectRepo(self.db)
        self.resources = FakeResourceRepo(self.db)
        self.resource_history = FakeResourceHistoryRepo(self.db)
        self.skills = FakeSkillRepo(self.db)
        self.skill_history = FakeSkillHistoryRepo(self.db)
        self.endorsements = FakeEndorsementRepo(self.db)
        self.pending = FakePendingRepo(self.db)
        self.notifications = FakeNotificationRepo(self.db)

        self.allocation = AllocationEngine(self.resources)
        self.resource_workflow = ResourceAssignmentWorkflow(
            self.tx,
            self.users,
            self.projects,
            self.resources,
            self.resource_history,
            self.allocation,
            self.notifier,
        )
        self.skill_update_workflow = SkillUpdateWorkflow(
            self.tx,
            self.users,
            self.skills,
            self.skill_history,
            self.pending,
            self.notifier,
        )
        self.skill_service = SkillService(
            self.tx,
            self.users,
            self.skills,
            self.skill_history,
            self.endorsements,
            self.pending,
            self.notifier,
        )


@pytest.fixture
def env() -> Env:
    e = Env()
    e.users.add(1, "Ada Admin", Role.ADMIN, email="admin@example.com")
    e.users.add(2, "Mona Manager", Role.MANAGER, email="mona@example.com")
    e.users.add(5, "Uma User", Role.USER, email="uma@example.com")
    e.users.add(6, "Pete Peer", Role.USER)
    e.projects.add(101, "Apollo")
    e.projects.add(102, "Borealis")
    e.projects.add(103, "Cygnus")
    return e
