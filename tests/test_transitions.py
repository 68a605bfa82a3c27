from __future__ import annotations

import pytest

from conftest import make_task
from taskflow.core.exceptions import InvalidStageError
from taskflow.services.transitions import Explicit, apply_stage_change


def _apply(task, transition):
    for name, value in transition.changes.items():
        setattr(task, name, value)
    return task


def test_same_stage_is_a_noop(website):
    task = make_task(project_stage_id=website.design.id, assignee_id=1)
    transition = apply_stage_change(task, website.stages, website.users, website.design.id)
    assert transition.is_noop


def test_unknown_stage_is_rejected_without_changes(website):
    task = make_task(project_stage_id=website.design.id, assignee_id=1, tags=["Static"])
    with pytest.raises(InvalidStageError):
        apply_stage_change(task, website.stages, website.users, 999)
    assert task.project_stage_id == website.design.id
    assert task.tags == ["Static"]


def test_auto_assigns_main_responsible(website):
    task = make_task(project_stage_id=website.planning.id, assignee_id=1, user_status="complete")
    transition = apply_stage_change(task, website.stages, website.users, website.design.id)
    assert transition.changes["assignee_id"] == website.bob.id
    assert transition.changes["user_status"] == "pending"
    assert transition.changes["project_stage_id"] == website.design.id


def test_stage_without_responsible_unassigns(website):
    task = make_task(project_stage_id=website.design.id, assignee_id=2)
    transition = apply_stage_change(task, website.stages, website.users, website.planning.id)
    assert transition.changes["assignee_id"] is None


def test_unresolvable_responsible_degrades_to_unassigned(website):
    website.design.main_responsible_id = 77
    task = make_task(project_stage_id=website.planning.id, assignee_id=1)
    transition = apply_stage_change(task, website.stages, website.users, website.design.id)
    assert transition.changes["assignee_id"] is None


def test_explicit_overrides_win_over_derivation(website):
    task = make_task(project_stage_id=website.planning.id, assignee_id=1, user_status="in-progress")
    transition = apply_stage_change(
        task, website.stages, website.users, website.design.id,
        assignee=Explicit(1),
        user_status=Explicit("in-progress"),
    )
    assert transition.changes["assignee_id"] == 1
    assert transition.changes["user_status"] == "in-progress"

    cleared = apply_stage_change(
        task, website.stages, website.users, website.design.id, assignee=Explicit(None)
    )
    assert cleared.changes["assignee_id"] is None


def test_completed_tag_follows_the_last_stage(website):
    task = make_task(project_stage_id=website.design.id, assignee_id=1, tags=["Reel"])
    _apply(task, apply_stage_change(task, website.stages, website.users, website.development.id))
    assert task.tags == ["Reel", "Completed"]

    # same stage again: nothing happens, no duplicate
    assert apply_stage_change(task, website.stages, website.users, website.development.id).is_noop
    assert task.tags.count("Completed") == 1

    _apply(task, apply_stage_change(task, website.stages, website.users, website.planning.id))
    assert task.tags == ["Reel"]

    _apply(task, apply_stage_change(task, website.stages, website.users, website.development.id))
    assert task.tags == ["Reel", "Completed"]


def test_history_pairs_status_and_assignee(website):
    task = make_task(project_stage_id=website.planning.id, assignee_id=1)
    transition = apply_stage_change(task, website.stages, website.users, website.design.id)
    assert [h.action for h in transition.history] == ["UPDATE_TASK_STATUS", "UPDATE_TASK_ASSIGNEE"]
    assert transition.history[0].details == {"from": website.planning.id, "to": website.design.id}
    assert transition.history[1].details == {"from": 1, "to": website.bob.id}


def test_history_single_entry_when_assignee_unchanged(website):
    task = make_task(project_stage_id=website.planning.id, assignee_id=website.bob.id)
    transition = apply_stage_change(task, website.stages, website.users, website.design.id)
    assert [h.action for h in transition.history] == ["UPDATE_TASK_STATUS"]
    assert all(h.entity_type == "task" and h.entity_id == task.id for h in transition.history)


def test_engine_does_not_mutate_the_task(website):
    task = make_task(project_stage_id=website.planning.id, assignee_id=1, tags=["Print"])
    apply_stage_change(task, website.stages, website.users, website.development.id)
    assert task.project_stage_id == website.planning.id
    assert task.assignee_id == 1
    assert task.tags == ["Print"]
