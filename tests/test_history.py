from types import SimpleNamespace

import pytest

from taskflow.services.history import render_entry


USERS = {1: SimpleNamespace(name="Alice"), 4: SimpleNamespace(name="Dave")}
STAGES = {10: SimpleNamespace(title="Planning"), 11: SimpleNamespace(title="Design")}


def _entry(action, details):
    return SimpleNamespace(action=action, details=details)


@pytest.mark.parametrize(
    "action, details, expected",
    [
        ("CREATE_PROJECT", {"name": "Website"}, 'created project "Website"'),
        ("UPDATE_PROJECT", {"from": {"name": "Web"}, "to": {"name": "Website"}}, 'updated project "Website"'),
        ("CREATE_TASK", {"title": "Header"}, 'created task "Header"'),
        ("UPDATE_TASK", {"from": {"title": "Header"}, "to": {"title": "Footer"}}, 'updated task "Footer"'),
        ("DELETE_TASK", {"title": "Header"}, 'deleted task "Header"'),
        ("UPDATE_TASK_STATUS", {"from": 10, "to": 11}, 'moved task from "Planning" to "Design"'),
        ("UPDATE_TASK_ASSIGNEE", {"from": None, "to": 4}, "assigned task to Dave"),
        ("UPDATE_TASK_ASSIGNEE", {"from": 4, "to": None}, "unassigned task"),
        ("CREATE_STAGE", {"title": "QA"}, 'created stage "QA"'),
        ("UPDATE_STAGE", {"to": {"title": "QA"}}, 'updated stage "QA"'),
        ("DELETE_STAGE", {"title": "QA"}, 'deleted stage "QA"'),
    ],
)
def test_render_entry(action, details, expected):
    assert render_entry(_entry(action, details), USERS, STAGES) == expected


def test_render_approval_with_comment():
    entry = _entry("UPDATE_TASK_STATUS", {"action": "approved", "comment": "Nice", "target_stage": "Design"})
    assert render_entry(entry, USERS, STAGES) == 'approved task into "Design": Nice'


def test_render_deleted_stage_and_user():
    assert render_entry(_entry("UPDATE_TASK_STATUS", {"from": 99, "to": 10}), USERS, STAGES) == (
        'moved task from "99" to "Planning"'
    )
    assert render_entry(_entry("UPDATE_TASK_ASSIGNEE", {"to": 42}), USERS, STAGES) == "assigned task to Unknown User"


def test_render_unknown_action():
    assert render_entry(_entry("SOMETHING_ELSE", None), USERS, STAGES) == "performed an unknown action"
