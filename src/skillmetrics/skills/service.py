from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..common.unset import UNSET
from ..common.validators import optional_text, require_non_empty
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import SkillHistoryAction, SkillLevel
from ..core.exceptions import NotFoundError, ValidationError
from ..database.connection import TransactionManager
from ..notifications.dispatcher import Notifier, dispatch_all
from ..notifications.model import NotificationContext, OutgoingNotification
from ..skill_updates.repository import PendingSkillUpdateRepository
from ..users.repository import UserRepository
from .model import Endorsement, Skill, SkillHistory
from .repository import EndorsementRepository, SkillHistoryRepository, SkillRepository

logger = logging.getLogger(__name__)


def _parse_level(value) -> SkillLevel:
    try:
        return SkillLevel.parse(value)
    except ValueError:
        raise ValidationError(f"Unknown skill level: {value}")


class SkillService:
    """Direct skill edits and endorsements. Every mutation appends to skill history."""

    def __init__(
        self,
        tx: TransactionManager,
        users: UserRepository,
        skills: SkillRepository,
        history: SkillHistoryRepository,
        endorsements: EndorsementRepository,
        pending: PendingSkillUpdateRepository,
        notifier: Notifier,
    ):
        self._tx = tx
        self._users = users
        self._skills = skills
        self._history = history
        self._endorsements = endorsements
        self._pending = pending
        self._notifier = notifier

    def create_skill(
        self,
        *,
        user_id: int,
        name: str,
        category: str,
        level,
        certification: Optional[str] = None,
        notes: Optional[str] = None,
        performed_by: Optional[int] = None,
    ) -> Skill:
        name = require_non_empty(name, "Skill name")
        category = require_non_empty(category, "Skill category")
        level = _parse_level(level)

        with self._tx.atomic():
            if not self._users.get_by_id(int(user_id)):
                raise NotFoundError("User", user_id)
            skill_id = self._skills.create(
                user_id=int(user_id),
                name=name,
                category=category,
                level=level,
                certification=optional_text(certification),
                notes=optional_text(notes),
            )
            self._history.append(
                skill_id=skill_id,
                user_id=int(user_id),
                action=SkillHistoryAction.CREATED,
                new_value=level.value,
                performed_by=performed_by,
            )
            skill = self._skills.get_by_id(skill_id)

        logger.info("Skill %s (%s) created for user %s by %s", skill_id, name, user_id, performed_by)
        return skill

    def update_skill(
        self,
        skill_id: int,
        *,
        name=UNSET,
        category=UNSET,
        level=UNSET,
        certification=UNSET,
        notes=UNSET,
        performed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Skill:
        """Edit a skill in place. Arguments left UNSET keep their value."""
        with self._tx.atomic():
            current = self._skills.get_for_update(int(skill_id))
            if not current:
                raise NotFoundError("Skill", skill_id)

            new_name = current.name if name is UNSET else require_non_empty(name, "Skill name")
            new_category = current.category if category is UNSET else require_non_empty(category, "Skill category")
            new_level = current.level if level is UNSET else _parse_level(level)
            new_certification = current.certification if certification is UNSET else optional_text(certification)
            new_notes = current.notes if notes is UNSET else optional_text(notes)

            self._skills.update(
                skill_id=current.skill_id,
                name=new_name,
                category=new_category,
                level=new_level,
                certification=new_certification,
                notes=new_notes,
            )

            if new_level != current.level:
                self._history.append(
                    skill_id=current.skill_id,
                    user_id=current.user_id,
                    action=SkillHistoryAction.LEVEL_CHANGED,
                    previous_value=current.level.value,
                    new_value=new_level.value,
                    performed_by=performed_by,
                    reason=optional_text(reason),
                )
            elif (new_name, new_category, new_certification, new_notes) != (
                current.name,
                current.category,
                current.certification,
                current.notes,
            ):
                self._history.append(
                    skill_id=current.skill_id,
                    user_id=current.user_id,
                    action=SkillHistoryAction.UPDATED,
                    previous_value=current.name,
                    new_value=new_name,
                    performed_by=performed_by,
                    reason=optional_text(reason),
                )
            updated = self._skills.get_by_id(current.skill_id)

        logger.info("Skill %s updated by %s", current.skill_id, performed_by)
        return updated

    def delete_skill(self, skill_id: int) -> None:
        with self._tx.atomic():
            # Same order as SkillUpdateWorkflow.approve: pending rows, then the skill.
            self._pending.lock_for_skill(int(skill_id))
            if not self._skills.get_for_update(int(skill_id)):
                raise NotFoundError("Skill", skill_id)
            removed = self._pending.delete_for_skill(int(skill_id))
            self._skills.delete(int(skill_id))
        logger.info("Skill %s deleted (%s pending updates removed)", skill_id, removed)

    def endorse(self, skill_id: int, *, endorser_id: int, comment: Optional[str] = None) -> Endorsement:
        with self._tx.atomic():
            skill = self._skills.get_for_update(int(skill_id))
            if not skill:
                raise NotFoundError("Skill", skill_id)
            endorser = self._users.get_by_id(int(endorser_id))
            if not endorser:
                raise NotFoundError("User", endorser_id)
            if endorser.user_id == skill.user_id:
                raise ValidationError("You cannot endorse your own skill")
            if self._endorsements.exists(skill_id=skill.skill_id, endorser_id=endorser.user_id):
                raise ValidationError("You have already endorsed this skill")

            endorsement_id = self._endorsements.create(
                skill_id=skill.skill_id,
                endorser_id=endorser.user_id,
                endorsee_id=skill.user_id,
                comment=optional_text(comment),
            )
            self._skills.increment_endorsements(skill.skill_id)
            self._history.append(
                skill_id=skill.skill_id,
                user_id=skill.user_id,
                action=SkillHistoryAction.ENDORSED,
                new_value=str(skill.endorsement_count + 1),
                performed_by=endorser.user_id,
                reason=optional_text(comment),
            )
            endorsement = next(
                e for e in self._endorsements.list_for_skill(skill.skill_id) if e.endorsement_id == endorsement_id
            )

        logger.info("Skill %s endorsed by %s", skill.skill_id, endorser.user_id)
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=skill.user_id,
                    title="Skill endorsed",
                    message=f"{endorser.full_name} endorsed your {skill.name} skill.",
                    context=NotificationContext.skill(skill.skill_id),
                )
            ],
        )
        return endorsement

    # ---- reads ----
    def get_skill(self, skill_id: int) -> Skill:
        skill = self._skills.get_by_id(int(skill_id))
        if not skill:
            raise NotFoundError("Skill", skill_id)
        return skill

    def list_for_user(self, user_id: int) -> Sequence[Skill]:
        return self._skills.list_for_user(int(user_id))

    def endorsements_for_skill(self, skill_id: int) -> Sequence[Endorsement]:
        return self._endorsements.list_for_skill(int(skill_id))

    def history_for_skill(self, skill_id: int) -> Sequence[SkillHistory]:
        return self._history.list_for_skill(int(skill_id))

    def history_for_user(self, user_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[SkillHistory]:
        return self._history.list_for_user(int(user_id), limit=limit)
