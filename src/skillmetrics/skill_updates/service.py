from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import optional_text, require_non_empty
from ..core.constants import APPROVED_UPDATE_REASON, DEFAULT_LIST_LIMIT
from ..core.enums import REVIEWER_ROLES, SkillHistoryAction, SkillLevel, UpdateStatus
from ..core.exceptions import (
    AuthorizationError,
    DuplicatePendingRequest,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from ..database.connection import TransactionManager
from ..notifications.dispatcher import Notifier, dispatch_all
from ..notifications.model import NotificationContext, OutgoingNotification
from ..skills.model import Skill
from ..skills.repository import SkillHistoryRepository, SkillRepository
from ..users.model import User
from ..users.repository import UserRepository
from .model import PendingSkillUpdate
from .repository import PendingSkillUpdateRepository

logger = logging.getLogger(__name__)


def _with_comments(message: str, comments: Optional[str]) -> str:
    return f"{message} Reviewer comments: {comments}" if comments else message


class SkillUpdateWorkflow:
    """Use case: propose a skill change, review it, and apply it on approval.

    A pending update moves exactly once from PENDING to APPROVED or REJECTED.
    The record is locked before its state is checked, and the status write is
    conditional on PENDING, so of two concurrent decisions only one applies.

    Lock order is the pending row first, then its target skill.
    SkillService.delete_skill takes them in the same order.
    """

    def __init__(
        self,
        tx: TransactionManager,
        users: UserRepository,
        skills: SkillRepository,
        skill_history: SkillHistoryRepository,
        pending: PendingSkillUpdateRepository,
        notifier: Notifier,
    ):
        self._tx = tx
        self._users = users
        self._skills = skills
        self._skill_history = skill_history
        self._pending = pending
        self._notifier = notifier

    def _require_reviewer(self, reviewer_id: int) -> User:
        reviewer = self._users.get_by_id(int(reviewer_id))
        if not reviewer:
            raise NotFoundError("User", reviewer_id)
        if not reviewer.can_review:
            raise AuthorizationError(
                f"User {reviewer_id} cannot review skill updates (requires one of: "
                f"{', '.join(sorted(r.value for r in REVIEWER_ROLES))})"
            )
        return reviewer

    def _lock_pending(self, update_id: int, action: str) -> PendingSkillUpdate:
        update = self._pending.get_for_update(int(update_id))
        if not update:
            raise NotFoundError("PendingSkillUpdate", update_id)
        if update.status.is_terminal:
            raise InvalidStateTransition(update.update_id, update.status, action)
        return update

    def submit(
        self,
        *,
        requester_id: int,
        target_skill_id: Optional[int] = None,
        proposed_name: Optional[str] = None,
        proposed_category: Optional[str] = None,
        proposed_level,
        justification: Optional[str] = None,
        proposed_certification: Optional[str] = None,
    ) -> PendingSkillUpdate:
        try:
            level = SkillLevel.parse(proposed_level)
        except ValueError:
            raise ValidationError(f"Unknown skill level: {proposed_level}")

        with self._tx.atomic():
            requester = self._users.lock(int(requester_id))
            if not requester:
                raise NotFoundError("User", requester_id)

            skill: Optional[Skill] = None
            if target_skill_id is not None:
                skill = self._skills.get_by_id(int(target_skill_id))
                if not skill or skill.user_id != requester.user_id:
                    raise NotFoundError("Skill", target_skill_id)
                name = optional_text(proposed_name, "Skill name") or skill.name
                category = optional_text(proposed_category, "Skill category") or skill.category
                certification = optional_text(proposed_certification) or skill.certification
            else:
                name = require_non_empty(proposed_name, "Skill name")
                category = require_non_empty(proposed_category, "Skill category")
                certification = optional_text(proposed_certification)

            existing = self._pending.find_pending(
                user_id=requester.user_id,
                skill_id=skill.skill_id if skill else None,
                proposed_name=name,
            )
            if existing:
                raise DuplicatePendingRequest(
                    f"Skill update {existing.update_id} is already pending for user {requester.user_id}"
                )

            update_id = self._pending.create(
                user_id=requester.user_id,
                skill_id=skill.skill_id if skill else None,
                current_name=skill.name if skill else None,
                current_category=skill.category if skill else None,
                current_level=skill.level if skill else None,
                proposed_name=name,
                proposed_category=category,
                proposed_level=level,
                proposed_certification=certification,
                justification=optional_text(justification, "Justification"),
            )
            update = self._pending.get_by_id(update_id)
            reviewers = self._users.list_by_roles(REVIEWER_ROLES)

        logger.info(
            "Skill update %s submitted by user %s (%s -> %s)",
            update_id, requester.user_id, skill.level.value if skill else "new", level.value,
        )
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=reviewer.user_id,
                    title="New skill update request",
                    message=f"New skill update request for {name} ({level.value}) from {requester.full_name}.",
                    context=NotificationContext.skill_update(update_id),
                )
                for reviewer in reviewers
            ],
        )
        return update

    def assign_reviewer(self, update_id: int, reviewer_id: int) -> PendingSkillUpdate:
        with self._tx.atomic():
            current = self._lock_pending(update_id, "assign a reviewer to")
            reviewer = self._require_reviewer(reviewer_id)
            if not self._pending.set_reviewer(update_id=current.update_id, reviewer_id=reviewer.user_id):
                raise InvalidStateTransition(current.update_id, UpdateStatus.PENDING, "assign a reviewer to")
            update = self._pending.get_by_id(current.update_id)

        logger.info("Skill update %s assigned to reviewer %s", current.update_id, reviewer.user_id)
        context = NotificationContext.skill_update(current.update_id)
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=current.user_id,
                    title="Reviewer assigned",
                    message=f"{reviewer.full_name} will review your update for {current.proposed_name}.",
                    context=context,
                ),
                OutgoingNotification(
                    recipient_id=reviewer.user_id,
                    title="Skill update assigned to you",
                    message=f"You have been asked to review the update for {current.proposed_name}.",
                    context=context,
                ),
            ],
        )
        return update

    def _apply(self, update: PendingSkillUpdate, reviewer_id: int) -> int:
        """Write the approved change to the skill table; returns the skill id."""
        if update.is_new_skill:
            skill_id = self._skills.create(
                user_id=update.user_id,
                name=update.proposed_name,
                category=update.proposed_category,
                level=update.proposed_level,
                certification=update.proposed_certification,
            )
            self._skill_history.append(
                skill_id=skill_id,
                user_id=update.user_id,
                action=SkillHistoryAction.CREATED,
                new_value=update.proposed_level.value,
                performed_by=reviewer_id,
                reason=APPROVED_UPDATE_REASON,
            )
            return skill_id

        skill = self._skills.get_for_update(int(update.skill_id))
        if not skill:
            raise NotFoundError("Skill", update.skill_id)

        self._skills.update(
            skill_id=skill.skill_id,
            name=update.proposed_name,
            category=update.proposed_category,
            level=update.proposed_level,
            certification=update.proposed_certification,
            notes=skill.notes,
        )
        if update.proposed_level != skill.level:
            action = SkillHistoryAction.LEVEL_CHANGED
            previous, new = skill.level.value, update.proposed_level.value
        else:
            action = SkillHistoryAction.UPDATED
            previous, new = skill.name, update.proposed_name
        self._skill_history.append(
            skill_id=skill.skill_id,
            user_id=skill.user_id,
            action=action,
            previous_value=previous,
            new_value=new,
            performed_by=reviewer_id,
            reason=APPROVED_UPDATE_REASON,
        )
        return skill.skill_id

    def approve(self, update_id: int, *, reviewer_id: int, comments: Optional[str] = None) -> PendingSkillUpdate:
        comments = optional_text(comments, "Comments")
        with self._tx.atomic():
            current = self._lock_pending(update_id, "approve")
            reviewer = self._require_reviewer(reviewer_id)

            skill_id = self._apply(current, reviewer.user_id)
            if not self._pending.decide(
                update_id=current.update_id,
                status=UpdateStatus.APPROVED,
                reviewer_id=current.reviewer_id or reviewer.user_id,
                comments=comments,
                decided_at=now_local(),
            ):
                # Rolls back the skill write above.
                raise InvalidStateTransition(current.update_id, UpdateStatus.APPROVED, "approve")
            update = self._pending.get_by_id(current.update_id)

        logger.info("Skill update %s approved by %s (skill %s)", current.update_id, reviewer.user_id, skill_id)
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=current.user_id,
                    title="Skill update approved",
                    message=_with_comments(
                        f"Your update for {current.proposed_name} ({current.proposed_level.value}) was approved.",
                        comments,
                    ),
                    context=NotificationContext.skill(skill_id),
                )
            ],
        )
        return update

    def reject(self, update_id: int, *, reviewer_id: int, comments: Optional[str] = None) -> PendingSkillUpdate:
        comments = optional_text(comments, "Comments")
        with self._tx.atomic():
            current = self._lock_pending(update_id, "reject")
            reviewer = self._require_reviewer(reviewer_id)
            if not self._pending.decide(
                update_id=current.update_id,
                status=UpdateStatus.REJECTED,
                reviewer_id=current.reviewer_id or reviewer.user_id,
                comments=comments,
                decided_at=now_local(),
            ):
                raise InvalidStateTransition(current.update_id, UpdateStatus.REJECTED, "reject")
            update = self._pending.get_by_id(current.update_id)

        logger.info("Skill update %s rejected by %s", current.update_id, reviewer.user_id)
        dispatch_all(
            self._notifier,
            [
                OutgoingNotification(
                    recipient_id=current.user_id,
                    title="Skill update rejected",
                    message=_with_comments(f"Your update for {current.proposed_name} was rejected.", comments),
                    context=NotificationContext.skill_update(current.update_id),
                )
            ],
        )
        return update

    def delete(self, update_id: int) -> None:
        """Administrative cleanup; an applied skill change stays applied."""
        with self._tx.atomic():
            if not self._pending.delete(int(update_id)):
                raise NotFoundError("PendingSkillUpdate", update_id)
        logger.info("Skill update %s deleted", update_id)

    # ---- reads ----
    def get(self, update_id: int) -> PendingSkillUpdate:
        update = self._pending.get_by_id(int(update_id))
        if not update:
            raise NotFoundError("PendingSkillUpdate", update_id)
        return update

    def list_for_user(self, user_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[PendingSkillUpdate]:
        return self._pending.list_updates(user_id=int(user_id), limit=limit)

    def list_for_skill(self, skill_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[PendingSkillUpdate]:
        return self._pending.list_updates(skill_id=int(skill_id), limit=limit)

    def list_by_status(
        self, status: Optional[UpdateStatus] = None, *, limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[PendingSkillUpdate]:
        return self._pending.list_updates(status=status, limit=limit)
