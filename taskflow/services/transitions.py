# taskflow/services/transitions.py
"""Task transition engine.

Computes what a stage change does to a task without touching storage. The
result is a ``Transition``: the combined field changes plus the history rows
to append. Callers persist it in one write.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

from taskflow.core.exceptions import InvalidStageError
from taskflow.services import stage_graph

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Explicit(Generic[T]):
    """A value the caller set on purpose.

    ``None`` in place of an ``Explicit`` means "not provided", so the engine
    derives the field. ``Explicit(None)`` means "explicitly cleared".
    """
    value: T


@dataclass
class HistoryDraft:
    action: str
    entity_id: int
    entity_type: str
    project_id: int
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RevisionDraft:
    comment: str
    requested_by_id: Optional[int]
    requested_at: datetime


@dataclass
class Transition:
    changes: Dict[str, Any] = field(default_factory=dict)
    history: List[HistoryDraft] = field(default_factory=list)
    revision: Optional[RevisionDraft] = None
    resolve_open_revisions: bool = False

    @property
    def is_noop(self) -> bool:
        return not self.changes and not self.history and self.revision is None

    def extend(self, other: "Transition") -> "Transition":
        self.changes.update(other.changes)
        self.history.extend(other.history)
        if other.revision is not None:
            self.revision = other.revision
        self.resolve_open_revisions = self.resolve_open_revisions or other.resolve_open_revisions
        return self

    def value(self, task, name: str):
        """Field value after this transition is applied."""
        if name in self.changes:
            return self.changes[name]
        return getattr(task, name)


def resolve_main_responsible(stage, users: Mapping[int, Any]) -> Optional[int]:
    """User id that gets the task on entering ``stage``; None when nobody does."""
    if stage.main_responsible_id is None:
        return None
    user = users.get(stage.main_responsible_id)
    if user is None:
        logger.warning(
            "Stage %s main responsible %s not found, task will be unassigned",
            stage.id, stage.main_responsible_id,
        )
        return None
    return user.id


def apply_stage_change(
    task,
    stages: Sequence,
    users: Mapping[int, Any],
    new_stage_id: int,
    assignee: Optional[Explicit] = None,
    user_status: Optional[Explicit] = None,
    base_tags: Optional[List[str]] = None,
) -> Transition:
    """Move ``task`` to ``new_stage_id``.

    Order matters: assignee, then status, then tags, then history.
    ``base_tags`` lets a caller that already changed the tags (revision
    requests add Redo) run completion tagging on top of its own list.
    """
    if new_stage_id == task.project_stage_id:
        return Transition()

    target = stage_graph.find_stage(stages, new_stage_id)
    if target is None:
        raise InvalidStageError(new_stage_id)

    changes: Dict[str, Any] = {"project_stage_id": target.id}

    if assignee is None:
        changes["assignee_id"] = resolve_main_responsible(target, users)
    else:
        changes["assignee_id"] = assignee.value

    changes["user_status"] = "pending" if user_status is None else user_status.value

    tags = task.tags if base_tags is None else base_tags
    changes["tags"] = stage_graph.completion_tags(tags, stages, target)

    history = [
        HistoryDraft(
            action="UPDATE_TASK_STATUS",
            entity_id=task.id,
            entity_type="task",
            project_id=task.project_id,
            details={"from": task.project_stage_id, "to": target.id},
        )
    ]
    if changes["assignee_id"] != task.assignee_id:
        history.append(
            HistoryDraft(
                action="UPDATE_TASK_ASSIGNEE",
                entity_id=task.id,
                entity_type="task",
                project_id=task.project_id,
                details={"from": task.assignee_id, "to": changes["assignee_id"]},
            )
        )

    logger.info("Task %s: stage %s -> %s", task.id, task.project_stage_id, target.id)
    return Transition(changes=changes, history=history)
