from __future__ import annotations

import pytest

from skillmetrics.core.enums import SkillHistoryAction, SkillLevel, UpdateStatus
from skillmetrics.core.exceptions import NotFoundError, ValidationError


@pytest.fixture
def skill(env):
    return env.skill_service.create_skill(
        user_id=5, name="SQL", category="Data", level="intermediate", performed_by=5
    )


def test_create_skill_records_created_history(env, skill):
    assert (skill.name, skill.level, skill.endorsement_count) == ("SQL", SkillLevel.INTERMEDIATE, 0)
    history = env.skill_service.history_for_skill(skill.skill_id)
    assert [(h.action, h.new_value, h.performed_by) for h in history] == [
        (SkillHistoryAction.CREATED, "INTERMEDIATE", 5)
    ]


def test_create_skill_validates_input(env):
    with pytest.raises(ValidationError):
        env.skill_service.create_skill(user_id=5, name="", category="Data", level="BEGINNER")
    with pytest.raises(ValidationError):
        env.skill_service.create_skill(user_id=5, name="SQL", category="Data", level="wizard")
    with pytest.raises(NotFoundError):
        env.skill_service.create_skill(user_id=999, name="SQL", category="Data", level="BEGINNER")


def test_update_level_writes_level_changed(env, skill):
    updated = env.skill_service.update_skill(skill.skill_id, level="ADVANCED", performed_by=2, reason="review")

    assert updated.level == SkillLevel.ADVANCED
    last = env.skill_service.history_for_skill(skill.skill_id)[-1]
    assert (last.action, last.previous_value, last.new_value, last.reason) == (
        SkillHistoryAction.LEVEL_CHANGED,
        "INTERMEDIATE",
        "ADVANCED",
        "review",
    )


def test_update_other_fields_writes_updated_and_keeps_unset_fields(env, skill):
    updated = env.skill_service.update_skill(skill.skill_id, certification="OCP", performed_by=5)

    assert (updated.name, updated.category, updated.certification) == ("SQL", "Data", "OCP")
    assert env.skill_service.history_for_skill(skill.skill_id)[-1].action == SkillHistoryAction.UPDATED


def test_update_without_changes_writes_no_history(env, skill):
    env.skill_service.update_skill(skill.skill_id, name="SQL")
    assert len(env.skill_service.history_for_skill(skill.skill_id)) == 1


def test_delete_skill_cascades_to_history_and_pending_updates(env, skill):
    update = env.skill_update_workflow.submit(requester_id=5, target_skill_id=skill.skill_id, proposed_level="EXPERT")
    assert update.status == UpdateStatus.PENDING

    env.skill_service.delete_skill(skill.skill_id)

    with pytest.raises(NotFoundError):
        env.skill_service.get_skill(skill.skill_id)
    assert env.skill_service.history_for_skill(skill.skill_id) == []
    assert env.pending.get_by_id(update.update_id) is None
    with pytest.raises(NotFoundError):
        env.skill_service.delete_skill(skill.skill_id)


def test_endorse_counts_records_and_notifies_owner(env, skill):
    endorsement = env.skill_service.endorse(skill.skill_id, endorser_id=6, comment="Great queries")

    assert (endorsement.endorser_id, endorsement.endorsee_id) == (6, 5)
    assert env.skill_service.get_skill(skill.skill_id).endorsement_count == 1
    last = env.skill_service.history_for_skill(skill.skill_id)[-1]
    assert (last.action, last.new_value, last.performed_by) == (SkillHistoryAction.ENDORSED, "1", 6)
    assert env.notifier.sent[-1] == (5, "Skill endorsed", "Pete Peer endorsed your SQL skill.", f"/skills/{skill.skill_id}")


def test_endorse_rejects_self_and_repeat(env, skill):
    with pytest.raises(ValidationError):
        env.skill_service.endorse(skill.skill_id, endorser_id=5)

    env.skill_service.endorse(skill.skill_id, endorser_id=6)
    with pytest.raises(ValidationError):
        env.skill_service.endorse(skill.skill_id, endorser_id=6)
    assert env.skill_service.get_skill(skill.skill_id).endorsement_count == 1


def test_history_for_user_spans_skills(env, skill):
    other = env.skill_service.create_skill(user_id=5, name="Go", category="Programming", level="BEGINNER")
    env.skill_service.update_skill(other.skill_id, level="INTERMEDIATE")

    skill_ids = {h.skill_id for h in env.skill_service.history_for_user(5)}
    assert skill_ids == {skill.skill_id, other.skill_id}
    assert [s.name for s in env.skill_service.list_for_user(5)] == ["SQL", "Go"]


def _lock_kinds(env):
    return [kind for kind, _ in env.db.row_locks]


def test_delete_skill_locks_pending_rows_before_the_skill_like_approve(env, skill):
    first = env.skill_update_workflow.submit(requester_id=5, target_skill_id=skill.skill_id, proposed_level="EXPERT")
    env.db.row_locks.clear()
    env.skill_update_workflow.approve(first.update_id, reviewer_id=2)
    assert env.db.row_locks == [("pending", first.update_id), ("skill", skill.skill_id)]

    second = env.skill_update_workflow.submit(requester_id=5, target_skill_id=skill.skill_id, proposed_level="ADVANCED")
    env.db.row_locks.clear()
    env.skill_service.delete_skill(skill.skill_id)

    assert _lock_kinds(env) == ["pending", "pending", "skill"]
    assert env.db.row_locks[:2] == [("pending", first.update_id), ("pending", second.update_id)]
