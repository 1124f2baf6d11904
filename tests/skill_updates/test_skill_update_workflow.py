from __future__ import annotations

import threading

import pytest

from skillmetrics.core.enums import SkillHistoryAction, SkillLevel, UpdateStatus
from skillmetrics.core.exceptions import (
    AuthorizationError,
    DuplicatePendingRequest,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from skillmetrics.skills.model import Skill


@pytest.fixture
def python_skill(env) -> Skill:
    return env.skills.add(
        Skill(skill_id=12, user_id=5, name="Python", category="Programming", level=SkillLevel.ADVANCED)
    )


def _submit(env, **overrides):
    kwargs = dict(requester_id=5, target_skill_id=12, proposed_level="EXPERT", justification="Led the rewrite")
    kwargs.update(overrides)
    return env.skill_update_workflow.submit(**kwargs)


def test_submit_copies_current_baseline_and_notifies_reviewers(env, python_skill):
    update = _submit(env)

    assert update.status == UpdateStatus.PENDING
    assert (update.current_name, update.current_category, update.current_level) == (
        "Python",
        "Programming",
        SkillLevel.ADVANCED,
    )
    assert (update.proposed_name, update.proposed_level) == ("Python", SkillLevel.EXPERT)
    assert env.notifier.recipients() == [1, 2]
    recipient, title, message, link = env.notifier.sent[0]
    assert title == "New skill update request"
    assert "Python" in message and "Uma User" in message
    assert link == f"/pending-updates/{update.update_id}"


def test_submit_parses_level_case_insensitively(env, python_skill):
    assert _submit(env, proposed_level="expert").proposed_level == SkillLevel.EXPERT


def test_submit_rejects_unknown_level(env, python_skill):
    with pytest.raises(ValidationError):
        _submit(env, proposed_level="GURU")


def test_submit_for_missing_skill_or_user_is_not_found(env, python_skill):
    with pytest.raises(NotFoundError):
        _submit(env, target_skill_id=999)
    with pytest.raises(NotFoundError):
        _submit(env, requester_id=999)


def test_submit_cannot_target_another_users_skill(env, python_skill):
    with pytest.raises(NotFoundError):
        _submit(env, requester_id=6)


def test_new_skill_proposal_requires_name_and_category(env):
    with pytest.raises(ValidationError):
        _submit(env, target_skill_id=None, proposed_name="Rust", proposed_category=" ")


def test_duplicate_pending_fails_until_first_is_decided(env, python_skill):
    first = _submit(env)

    with pytest.raises(DuplicatePendingRequest):
        _submit(env, proposed_level="INTERMEDIATE")

    env.skill_update_workflow.reject(first.update_id, reviewer_id=2, comments="later")
    second = _submit(env, proposed_level="INTERMEDIATE")
    assert second.status == UpdateStatus.PENDING


def test_duplicate_new_skill_proposal_matches_name_case_insensitively(env):
    _submit(env, target_skill_id=None, proposed_name="Rust", proposed_category="Programming")
    with pytest.raises(DuplicatePendingRequest):
        _submit(env, target_skill_id=None, proposed_name="rust", proposed_category="Programming")

    other = _submit(env, target_skill_id=None, proposed_name="Go", proposed_category="Programming")
    assert other.proposed_name == "Go"


def test_approve_applies_level_and_records_one_history_row(env, python_skill):
    update = _submit(env)
    env.notifier.sent.clear()

    approved = env.skill_update_workflow.approve(update.update_id, reviewer_id=2, comments="Well earned")

    assert approved.status == UpdateStatus.APPROVED
    assert approved.reviewer_id == 2
    assert approved.approved_at is not None and approved.rejected_at is None
    assert env.skills.get_by_id(12).level == SkillLevel.EXPERT

    history = env.skill_history.list_for_skill(12)
    assert len(history) == 1
    entry = history[0]
    assert entry.action == SkillHistoryAction.LEVEL_CHANGED
    assert (entry.previous_value, entry.new_value) == ("ADVANCED", "EXPERT")
    assert (entry.performed_by, entry.reason) == (2, "approved update")

    assert env.notifier.sent == [
        (
            5,
            "Skill update approved",
            "Your update for Python (EXPERT) was approved. Reviewer comments: Well earned",
            "/skills/12",
        )
    ]


def test_approve_same_level_records_updated(env, python_skill):
    update = _submit(env, proposed_level="ADVANCED", proposed_name="Python 3")

    env.skill_update_workflow.approve(update.update_id, reviewer_id=1)

    assert env.skills.get_by_id(12).name == "Python 3"
    history = env.skill_history.list_for_skill(12)
    assert [h.action for h in history] == [SkillHistoryAction.UPDATED]
    assert (history[0].previous_value, history[0].new_value) == ("Python", "Python 3")


def test_approve_new_skill_creates_exactly_one_skill(env):
    update = _submit(
        env,
        target_skill_id=None,
        proposed_name="Kubernetes",
        proposed_category="Infrastructure",
        proposed_level="BEGINNER",
        proposed_certification="CKA",
    )

    env.skill_update_workflow.approve(update.update_id, reviewer_id=2)

    skills = env.skills.list_for_user(5)
    assert len(skills) == 1
    created = skills[0]
    assert (created.name, created.category, created.level, created.certification) == (
        "Kubernetes",
        "Infrastructure",
        SkillLevel.BEGINNER,
        "CKA",
    )
    history = env.skill_history.list_for_skill(created.skill_id)
    assert [h.action for h in history] == [SkillHistoryAction.CREATED]
    assert env.notifier.sent[-1][3] == f"/skills/{created.skill_id}"


def test_downward_level_proposal_is_allowed(env, python_skill):
    update = _submit(env, proposed_level="BEGINNER")
    env.skill_update_workflow.approve(update.update_id, reviewer_id=2)
    assert env.skills.get_by_id(12).level == SkillLevel.BEGINNER


def test_reject_on_approved_record_fails_and_leaves_it_unchanged(env, python_skill):
    update = _submit(env)
    approved = env.skill_update_workflow.approve(update.update_id, reviewer_id=2)

    with pytest.raises(InvalidStateTransition) as exc:
        env.skill_update_workflow.reject(update.update_id, reviewer_id=2, comments="not enough evidence")

    assert exc.value.current_status == UpdateStatus.APPROVED
    assert env.pending.get_by_id(update.update_id) == approved


@pytest.mark.parametrize("action", ["approve", "reject", "assign_reviewer"])
def test_terminal_records_reject_every_transition(env, python_skill, action):
    update = _submit(env)
    env.skill_update_workflow.reject(update.update_id, reviewer_id=2)
    wf = env.skill_update_workflow

    with pytest.raises(InvalidStateTransition):
        if action == "assign_reviewer":
            wf.assign_reviewer(update.update_id, 1)
        else:
            getattr(wf, action)(update.update_id, reviewer_id=1)

    assert env.pending.get_by_id(update.update_id).status == UpdateStatus.REJECTED
    assert env.skills.get_by_id(12).level == SkillLevel.ADVANCED


def test_reject_notifies_requester_with_comments_and_request_link(env, python_skill):
    update = _submit(env)
    env.notifier.sent.clear()

    rejected = env.skill_update_workflow.reject(update.update_id, reviewer_id=1, comments="needs a project")

    assert rejected.status == UpdateStatus.REJECTED and rejected.rejected_at is not None
    assert rejected.reviewer_comments == "needs a project"
    recipient, title, message, link = env.notifier.sent[0]
    assert (recipient, title) == (5, "Skill update rejected")
    assert "needs a project" in message
    assert link == f"/pending-updates/{update.update_id}"
    assert env.skill_history.list_for_skill(12) == []


def test_reviewer_must_hold_a_reviewer_role(env, python_skill):
    update = _submit(env)
    with pytest.raises(AuthorizationError):
        env.skill_update_workflow.approve(update.update_id, reviewer_id=6)
    with pytest.raises(NotFoundError):
        env.skill_update_workflow.approve(update.update_id, reviewer_id=999)
    assert env.pending.get_by_id(update.update_id).status == UpdateStatus.PENDING


def test_assign_reviewer_notifies_requester_and_reviewer(env, python_skill):
    update = _submit(env)
    env.notifier.sent.clear()

    assigned = env.skill_update_workflow.assign_reviewer(update.update_id, 2)

    assert assigned.reviewer_id == 2 and assigned.status == UpdateStatus.PENDING
    assert env.notifier.recipients() == [5, 2]


def test_approve_keeps_previously_assigned_reviewer(env, python_skill):
    update = _submit(env)
    env.skill_update_workflow.assign_reviewer(update.update_id, 2)

    approved = env.skill_update_workflow.approve(update.update_id, reviewer_id=1)

    assert approved.reviewer_id == 2
    assert env.skill_history.list_for_skill(12)[0].performed_by == 1


def test_delete_is_allowed_in_any_state_and_keeps_applied_change(env, python_skill):
    update = _submit(env)
    env.skill_update_workflow.approve(update.update_id, reviewer_id=2)

    env.skill_update_workflow.delete(update.update_id)

    assert env.pending.get_by_id(update.update_id) is None
    assert env.skills.get_by_id(12).level == SkillLevel.EXPERT
    with pytest.raises(NotFoundError):
        env.skill_update_workflow.delete(update.update_id)


def test_reads(env, python_skill):
    first = _submit(env)
    env.skill_update_workflow.approve(first.update_id, reviewer_id=2)
    second = _submit(env, proposed_level="ADVANCED")
    wf = env.skill_update_workflow

    assert wf.get(second.update_id) == second
    assert [u.update_id for u in wf.list_for_user(5)] == [second.update_id, first.update_id]
    assert [u.update_id for u in wf.list_for_skill(12)] == [second.update_id, first.update_id]
    assert [u.update_id for u in wf.list_by_status(UpdateStatus.PENDING)] == [second.update_id]
    with pytest.raises(NotFoundError):
        wf.get(424242)


def test_concurrent_approvals_apply_exactly_once(env, python_skill):
    update = _submit(env)
    barrier = threading.Barrier(2)
    outcomes: list[str] = []

    def decide(action, reviewer_id):
        barrier.wait()
        try:
            getattr(env.skill_update_workflow, action)(update.update_id, reviewer_id=reviewer_id)
            outcomes.append(action)
        except InvalidStateTransition:
            outcomes.append("lost")

    threads = [
        threading.Thread(target=decide, args=("approve", 1)),
        threading.Thread(target=decide, args=("reject", 2)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("lost") == 1
    final = env.pending.get_by_id(update.update_id)
    assert final.status.is_terminal
    expected_history = 1 if final.status == UpdateStatus.APPROVED else 0
    assert len(env.skill_history.list_for_skill(12)) == expected_history
