# taskflow/services/review.py
"""Review and approval workflow built on top of the transition engine."""
import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from taskflow.config import settings
from taskflow.core.exceptions import MissingAssigneeError, ValidationError
from taskflow.models.task import USER_STATUSES
from taskflow.services import stage_graph
from taskflow.services.transitions import (
    Explicit,
    HistoryDraft,
    RevisionDraft,
    Transition,
    apply_stage_change,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def handoff_target(stages: Sequence, current) -> Optional[object]:
    """Where a task goes when its worker completes it in ``current``."""
    if current is None:
        return None
    if current.linked_review_stage_id is not None:
        linked = stage_graph.find_stage(stages, current.linked_review_stage_id)
        if linked is not None:
            return linked
    return stage_graph.next_stage(stages, current)


def submit_for_review(
    task,
    stages: Sequence,
    current,
    target,
    actor_id: Optional[int],
    assignee: Optional[Explicit] = None,
    base_tags: Optional[List[str]] = None,
) -> Transition:
    """Enter a review stage: keep the worker, keep status ``complete``.

    ``assignee`` and ``base_tags`` carry values the caller already changed in
    the same update.
    """
    worker = task.assignee_id if assignee is None else assignee.value
    original = worker if worker is not None else actor_id
    tags = task.tags if base_tags is None else base_tags
    changes = {
        "project_stage_id": target.id,
        "previous_stage_id": current.id,
        "original_assignee_id": original,
        "is_in_specific_stage": True,
        "tags": stage_graph.completion_tags(tags, stages, target),
    }
    history = [
        HistoryDraft(
            action="UPDATE_TASK_STATUS",
            entity_id=task.id,
            entity_type="task",
            project_id=task.project_id,
            details={"from": current.id, "to": target.id},
        )
    ]
    if assignee is not None:
        changes["assignee_id"] = worker
        if worker != task.assignee_id:
            history.append(
                HistoryDraft(
                    action="UPDATE_TASK_ASSIGNEE",
                    entity_id=task.id,
                    entity_type="task",
                    project_id=task.project_id,
                    details={"from": task.assignee_id, "to": worker},
                )
            )
    logger.info("Task %s submitted for review in stage %s", task.id, target.id)
    return Transition(changes=changes, history=history)


def apply_user_status(
    task,
    stages: Sequence,
    users: Mapping[int, Any],
    new_status: str,
    actor_id: Optional[int] = None,
    now: Optional[datetime] = None,
    assignee: Optional[Explicit] = None,
    base_tags: Optional[List[str]] = None,
) -> Transition:
    """Change the user-level status and, on completion, hand the task on.

    A task sitting in a review stage is not handed on; only approve or
    request_revision take it out. ``assignee`` and ``base_tags`` are values
    already edited in the same update, so the hand-off builds on them.
    """
    if new_status not in USER_STATUSES:
        raise ValidationError(f"Invalid user status: {new_status}")
    if new_status == task.user_status:
        return Transition()

    now = now or _now()
    transition = Transition(
        changes={"user_status": new_status},
        history=[
            HistoryDraft(
                action="UPDATE_TASK",
                entity_id=task.id,
                entity_type="task",
                project_id=task.project_id,
                details={
                    "from": {"user_status": task.user_status},
                    "to": {"user_status": new_status, "title": task.title},
                },
            )
        ],
    )
    if new_status != "complete":
        return transition

    transition.changes["completed_at"] = now
    transition.resolve_open_revisions = True

    current = stage_graph.find_stage(stages, task.project_stage_id)
    if current is not None and current.is_review_stage:
        logger.info("Task %s completed while awaiting review, staying in stage %s", task.id, current.id)
        return transition
    target = handoff_target(stages, current)
    if target is None:
        return transition

    if target.is_review_stage:
        return transition.extend(
            submit_for_review(task, stages, current, target, actor_id, assignee=assignee, base_tags=base_tags)
        )
    # Ordinary stage: normal engine rules, status goes back to pending
    return transition.extend(
        apply_stage_change(task, stages, users, target.id, assignee=assignee, base_tags=base_tags)
    )


def _current_review_stage(task, stages: Sequence):
    current = stage_graph.find_stage(stages, task.project_stage_id)
    if current is None or not current.is_review_stage:
        raise ValidationError("Task is not awaiting review")
    return current


def approve(
    task,
    stages: Sequence,
    users: Mapping[int, Any],
    target_stage_id: Optional[int] = None,
    comment: Optional[str] = None,
) -> Transition:
    review_stage = _current_review_stage(task, stages)
    target_id = target_stage_id if target_stage_id is not None else review_stage.approved_target_stage_id
    if target_id is None:
        raise ValidationError("Please select a target stage")

    transition = apply_stage_change(task, stages, users, target_id)
    transition.changes.update(
        is_in_specific_stage=False,
        previous_stage_id=None,
        original_assignee_id=None,
        revision_comment=None,
    )

    comment = (comment or "").strip()
    if comment:
        target = stage_graph.find_stage(stages, target_id)
        transition.history.append(
            HistoryDraft(
                action="UPDATE_TASK_STATUS",
                entity_id=task.id,
                entity_type="task",
                project_id=task.project_id,
                details={
                    "action": "approved",
                    "comment": comment,
                    "target_stage": target.title if target is not None else target_id,
                },
            )
        )
    logger.info("Task %s approved into stage %s", task.id, target_id)
    return transition


def request_revision(
    task,
    stages: Sequence,
    users: Mapping[int, Any],
    reviewer,
    comment: str,
    target_stage_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Transition:
    comment = (comment or "").strip()
    if not comment:
        raise ValidationError("Please provide a revision comment")
    review_stage = _current_review_stage(task, stages)

    target_id = target_stage_id if target_stage_id is not None else task.previous_stage_id
    if target_id is None:
        raise ValidationError("Please select a target stage")
    if target_id == review_stage.id:
        raise ValidationError("A revision must send the task to another stage")

    original = task.original_assignee_id if task.original_assignee_id is not None else task.assignee_id
    if original is None:
        raise MissingAssigneeError()

    tags = stage_graph.with_tag(task.tags, settings.REDO_TAG)
    transition = apply_stage_change(
        task,
        stages,
        users,
        target_id,
        assignee=Explicit(original),
        user_status=Explicit("pending"),
        base_tags=tags,
    )
    transition.changes.update(
        is_in_specific_stage=False,
        revision_comment=comment,
        previous_stage_id=None,
        original_assignee_id=None,
    )
    transition.revision = RevisionDraft(
        comment=comment,
        requested_by_id=reviewer.id,
        requested_at=now or _now(),
    )
    logger.info("Revision requested on task %s by user %s", task.id, reviewer.id)
    return transition
