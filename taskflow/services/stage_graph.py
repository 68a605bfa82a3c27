# taskflow/services/stage_graph.py
"""Pure queries and checks over one project's ordered stage list.

Nothing here touches the database; callers pass in the stages they loaded.
Stages only need ``id``, ``title``, ``order``, ``is_review_stage``,
``linked_review_stage_id`` and ``approved_target_stage_id`` attributes.
"""
from typing import Iterable, List, Optional, Sequence

from taskflow.config import settings
from taskflow.core.exceptions import ValidationError


def sort_by_order(stages: Iterable) -> list:
    return sorted(stages, key=lambda s: (s.order, s.id or 0))


def find_stage(stages: Iterable, stage_id) -> Optional[object]:
    if stage_id is None:
        return None
    for stage in stages:
        if stage.id == stage_id:
            return stage
    return None


def first_stage(stages: Sequence) -> Optional[object]:
    ordered = sort_by_order(stages)
    return ordered[0] if ordered else None


def last_stage(stages: Sequence) -> Optional[object]:
    """The terminal stage: highest order wins."""
    ordered = sort_by_order(stages)
    return ordered[-1] if ordered else None


def next_stage(stages: Sequence, current) -> Optional[object]:
    for stage in sort_by_order(stages):
        if stage.order > current.order:
            return stage
    return None


def is_last_stage(stages: Sequence, stage) -> bool:
    last = last_stage(stages)
    return last is not None and stage is not None and last.id == stage.id


def default_stage(stages: Sequence) -> Optional[object]:
    """Stage a new task starts in: the first one, but never the terminal stage
    when the project has somewhere else to start."""
    ordered = sort_by_order(stages)
    if not ordered:
        return None
    if len(ordered) > 1:
        return ordered[0] if ordered[0].id != ordered[-1].id else ordered[1]
    return ordered[0]


def completion_tags(tags: Optional[List[str]], stages: Sequence, stage) -> List[str]:
    """Add or strip the Completed tag depending on whether ``stage`` is terminal.

    Idempotent: the tag is never duplicated and other tags keep their order.
    """
    tag = settings.COMPLETED_TAG
    current = list(tags or [])
    if is_last_stage(stages, stage):
        if tag not in current:
            current.append(tag)
        return current
    return [t for t in current if t != tag]


def with_tag(tags: Optional[List[str]], tag: str) -> List[str]:
    current = list(tags or [])
    if tag not in current:
        current.append(tag)
    return current


def check_unique_title(stages: Iterable, title: str, exclude_id=None) -> None:
    if not title or not title.strip():
        raise ValidationError("Stage title cannot be empty")
    lowered = title.strip().lower()
    for stage in stages:
        if stage.id == exclude_id and exclude_id is not None:
            continue
        if stage.title.strip().lower() == lowered:
            raise ValidationError("A stage with this name already exists")


def validate_stages(stages: Sequence) -> None:
    """Check a complete stage list for one project.

    - at least one stage
    - titles unique (case-insensitive)
    - review stages point at another resolvable stage as approval target
    - linked review stages actually are review stages
    """
    if not stages:
        raise ValidationError("Please add at least one stage to the project")

    titles = [s.title.strip().lower() for s in stages]
    if any(not t for t in titles):
        raise ValidationError("Stage title cannot be empty")
    if len(set(titles)) != len(titles):
        raise ValidationError("Stage names must be unique")

    for stage in stages:
        if stage.is_review_stage:
            target = find_stage(stages, stage.approved_target_stage_id)
            if target is None:
                raise ValidationError(f"Review stage '{stage.title}' needs an approval target stage")
            if target.id == stage.id:
                raise ValidationError(f"Review stage '{stage.title}' cannot approve into itself")
        elif stage.linked_review_stage_id is not None:
            linked = find_stage(stages, stage.linked_review_stage_id)
            if linked is None or not linked.is_review_stage:
                raise ValidationError(f"Stage '{stage.title}' must link to a review stage")


def renumber(stages: Iterable) -> list:
    """Reassign contiguous orders 0..n-1 keeping the current relative order."""
    ordered = sort_by_order(stages)
    for index, stage in enumerate(ordered):
        stage.order = index
    return ordered


def insert_stage(stages: Sequence, new_stage, position: Optional[int] = None) -> list:
    """Place ``new_stage`` at ``position`` (append when None) and renumber."""
    ordered = sort_by_order(stages)
    if position is None or position >= len(ordered):
        ordered.append(new_stage)
    else:
        ordered.insert(max(position, 0), new_stage)
    for index, stage in enumerate(ordered):
        stage.order = index
    return ordered


def move_stage(stages: Sequence, stage, position: int) -> list:
    ordered = [s for s in sort_by_order(stages) if s.id != stage.id]
    position = max(0, min(position, len(ordered)))
    ordered.insert(position, stage)
    for index, s in enumerate(ordered):
        s.order = index
    return ordered


def check_deletable(stages: Sequence, stage) -> None:
    if len(stages) <= 1:
        raise ValidationError("A project needs at least one stage")
    for other in stages:
        if other.id != stage.id and other.is_review_stage and other.approved_target_stage_id == stage.id:
            raise ValidationError(
                f"Stage '{stage.title}' is the approval target of review stage '{other.title}'"
            )
