from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import make_task
from taskflow.core.exceptions import MissingAssigneeError, ValidationError
from taskflow.services import review


def _apply(task, transition):
    for name, value in transition.changes.items():
        setattr(task, name, value)
    return task


@pytest.fixture()
def in_review(website):
    """Task T after Alice completed it in Design and it went to Review."""
    task = make_task(
        project_stage_id=website.review.id,
        assignee_id=website.alice.id,
        user_status="complete",
        is_in_specific_stage=True,
        previous_stage_id=website.design.id,
        original_assignee_id=website.alice.id,
    )
    return task


def test_completion_hands_off_to_review_stage(website):
    task = make_task(project_stage_id=website.design.id, assignee_id=website.alice.id, user_status="in-progress")
    now = datetime(2025, 11, 27, 10, 0, tzinfo=timezone.utc)

    transition = review.apply_user_status(task, website.stages, website.users, "complete", now=now)
    _apply(task, transition)

    assert task.project_stage_id == website.review.id
    assert task.previous_stage_id == website.design.id
    assert task.original_assignee_id == website.alice.id
    assert task.assignee_id == website.alice.id
    assert task.user_status == "complete"
    assert task.is_in_specific_stage is True
    assert task.completed_at == now
    assert transition.resolve_open_revisions
    assert [h.action for h in transition.history] == ["UPDATE_TASK", "UPDATE_TASK_STATUS"]


def test_linked_review_stage_takes_precedence(website):
    website.planning.linked_review_stage_id = website.review.id
    task = make_task(project_stage_id=website.planning.id, assignee_id=website.alice.id, user_status="pending")
    _apply(task, review.apply_user_status(task, website.stages, website.users, "complete"))
    assert task.project_stage_id == website.review.id
    assert task.previous_stage_id == website.planning.id


def test_completion_into_ordinary_stage_follows_engine_rules(website):
    task = make_task(project_stage_id=website.planning.id, assignee_id=website.alice.id, user_status="in-progress")
    _apply(task, review.apply_user_status(task, website.stages, website.users, "complete"))
    assert task.project_stage_id == website.design.id
    assert task.assignee_id == website.bob.id
    assert task.user_status == "pending"
    assert task.previous_stage_id is None


def test_completion_in_last_stage_stays_put(website):
    task = make_task(project_stage_id=website.development.id, assignee_id=website.dave.id, user_status="in-progress")
    transition = review.apply_user_status(task, website.stages, website.users, "complete")
    assert "project_stage_id" not in transition.changes
    assert transition.changes["user_status"] == "complete"
    assert transition.changes["completed_at"] is not None


def test_unassigned_task_records_the_completing_user(website):
    task = make_task(project_stage_id=website.design.id, assignee_id=None, user_status="in-progress")
    transition = review.apply_user_status(task, website.stages, website.users, "complete", actor_id=website.bob.id)
    assert transition.changes["original_assignee_id"] == website.bob.id


def test_unchanged_or_invalid_status(website):
    task = make_task(project_stage_id=website.design.id, user_status="pending")
    assert review.apply_user_status(task, website.stages, website.users, "pending").is_noop
    with pytest.raises(ValidationError):
        review.apply_user_status(task, website.stages, website.users, "done")


def test_approve_moves_to_configured_target_and_clears_markers(website, in_review):
    transition = review.approve(in_review, website.stages, website.users)
    _apply(in_review, transition)

    assert in_review.project_stage_id == website.development.id
    assert in_review.is_in_specific_stage is False
    assert in_review.previous_stage_id is None
    assert in_review.original_assignee_id is None
    assert in_review.revision_comment is None
    assert "Completed" in in_review.tags
    assert in_review.assignee_id == website.dave.id
    assert transition.revision is None


def test_approve_comment_goes_to_history_only(website, in_review):
    transition = review.approve(in_review, website.stages, website.users, website.development.id, comment="Looks good")
    assert transition.history[-1].details == {
        "action": "approved",
        "comment": "Looks good",
        "target_stage": "Development",
    }
    assert transition.revision is None


def test_approve_requires_review_stage_and_target(website, in_review):
    in_review.project_stage_id = website.design.id
    with pytest.raises(ValidationError, match="not awaiting review"):
        review.approve(in_review, website.stages, website.users)

    in_review.project_stage_id = website.review.id
    website.review.approved_target_stage_id = None
    with pytest.raises(ValidationError, match="target stage"):
        review.approve(in_review, website.stages, website.users)


def test_request_revision_hands_back_to_original_assignee(website, in_review):
    in_review.assignee_id = website.rita.id
    transition = review.request_revision(
        in_review, website.stages, website.users, website.rita, "redo the header", website.design.id
    )
    _apply(in_review, transition)

    assert in_review.project_stage_id == website.design.id
    assert in_review.assignee_id == website.alice.id
    assert in_review.user_status == "pending"
    assert in_review.tags == ["Redo"]
    assert in_review.revision_comment == "redo the header"
    assert in_review.previous_stage_id is None
    assert in_review.original_assignee_id is None
    assert in_review.is_in_specific_stage is False
    assert transition.revision.comment == "redo the header"
    assert transition.revision.requested_by_id == website.rita.id


def test_request_revision_defaults_to_previous_stage(website, in_review):
    in_review.tags = ["Redo"]
    transition = review.request_revision(in_review, website.stages, website.users, website.rita, "again")
    assert transition.changes["project_stage_id"] == website.design.id
    assert transition.changes["tags"] == ["Redo"]


def test_request_revision_into_last_stage_keeps_both_tags(website, in_review):
    transition = review.request_revision(
        in_review, website.stages, website.users, website.rita, "minor fix", website.development.id
    )
    assert transition.changes["tags"] == ["Redo", "Completed"]
    assert transition.changes["assignee_id"] == website.alice.id


def test_request_revision_validation(website, in_review):
    with pytest.raises(ValidationError, match="revision comment"):
        review.request_revision(in_review, website.stages, website.users, website.rita, "   ")

    in_review.original_assignee_id = None
    in_review.assignee_id = None
    with pytest.raises(MissingAssigneeError):
        review.request_revision(in_review, website.stages, website.users, website.rita, "fix X")


def test_request_revision_falls_back_to_current_assignee(website, in_review):
    in_review.original_assignee_id = None
    in_review.assignee_id = website.bob.id
    transition = review.request_revision(in_review, website.stages, website.users, website.rita, "fix X")
    assert transition.changes["assignee_id"] == website.bob.id


def test_completion_inside_review_stage_does_not_hand_on(website, in_review):
    in_review.user_status = "in-progress"
    transition = review.apply_user_status(in_review, website.stages, website.users, "complete")
    assert set(transition.changes) == {"user_status", "completed_at"}
    assert [h.action for h in transition.history] == ["UPDATE_TASK"]


def test_request_revision_into_the_review_stage_itself_is_rejected(website, in_review):
    with pytest.raises(ValidationError, match="another stage"):
        review.request_revision(
            in_review, website.stages, website.users, website.rita, "fix X", website.review.id
        )


def test_request_revision_records_the_reassignment(website, in_review):
    in_review.assignee_id = website.rita.id
    transition = review.request_revision(in_review, website.stages, website.users, website.rita, "fix X")
    assert [h.action for h in transition.history] == ["UPDATE_TASK_STATUS", "UPDATE_TASK_ASSIGNEE"]
    assert transition.history[1].details == {"from": website.rita.id, "to": website.alice.id}
