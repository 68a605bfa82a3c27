# taskflow/services/workflow.py
import logging
from typing import Any, Dict, Optional

from taskflow.config import settings
from taskflow.core.exceptions import NotFoundError, ValidationError
from taskflow.repositories.base import TaskStore
from taskflow.services import review, stage_graph
from taskflow.services.transitions import Explicit, HistoryDraft, Transition, apply_stage_change

# Fields a plain edit may set directly
PLAIN_FIELDS = ("title", "description", "due_date", "start_date", "priority", "tags")
NOT_NULL_FIELDS = ("title", "priority", "tags")

logger = logging.getLogger(__name__)


class TaskWorkflow:
    """Runs the transition engine against a ``TaskStore``.

    Every operation loads what it needs, computes a ``Transition`` and hands
    the whole thing to the store in one write. Role checks happen in the
    routers before we get here.
    """

    def __init__(self, store: TaskStore):
        self.store = store

    async def _load(self, task_id: int):
        task = await self.store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        stages = await self.store.list_stages(task.project_id)
        responsible = {s.main_responsible_id for s in stages}
        users = await self.store.get_users(responsible)
        return task, stages, users

    async def _commit(self, task, transition: Transition, actor):
        if transition.is_noop:
            return task
        return await self.store.commit_transition(task, transition, actor.id if actor else None)

    async def move_task(
        self,
        task_id: int,
        stage_id: int,
        actor,
        assignee: Optional[Explicit] = None,
        user_status: Optional[Explicit] = None,
    ):
        task, stages, users = await self._load(task_id)
        transition = apply_stage_change(task, stages, users, stage_id, assignee=assignee, user_status=user_status)
        return await self._commit(task, transition, actor)

    async def change_user_status(self, task_id: int, new_status: str, actor):
        task, stages, users = await self._load(task_id)
        transition = review.apply_user_status(task, stages, users, new_status, actor_id=actor.id if actor else None)
        return await self._commit(task, transition, actor)

    async def approve(self, task_id: int, actor, target_stage_id: Optional[int] = None, comment: Optional[str] = None):
        task, stages, users = await self._load(task_id)
        transition = review.approve(task, stages, users, target_stage_id=target_stage_id, comment=comment)
        return await self._commit(task, transition, actor)

    async def request_revision(self, task_id: int, actor, comment: str, target_stage_id: Optional[int] = None):
        task, stages, users = await self._load(task_id)
        transition = review.request_revision(
            task, stages, users, reviewer=actor, comment=comment, target_stage_id=target_stage_id
        )
        return await self._commit(task, transition, actor)

    async def edit_task(self, task_id: int, fields: Dict[str, Any], actor):
        """Apply a partial edit. ``fields`` holds only what the caller sent.

        Plain fields are diffed into one UPDATE_TASK entry. A stage change in
        the same edit runs through the engine, with any sent assignee or
        status taken as explicit overrides.
        """
        task, stages, users = await self._load(task_id)
        if "project_stage_id" in fields and fields["project_stage_id"] is None:
            raise ValidationError("A task cannot be removed from its stage")

        plain = {
            k: v for k, v in fields.items()
            if k in PLAIN_FIELDS and not (v is None and k in NOT_NULL_FIELDS)
        }
        if "tags" in plain:
            current = stage_graph.find_stage(stages, task.project_stage_id)
            plain["tags"] = stage_graph.completion_tags(
                [t for t in plain["tags"] if t != settings.COMPLETED_TAG], stages, current
            )
        changed = {k: v for k, v in plain.items() if getattr(task, k) != v}

        transition = Transition(changes=dict(changed))
        if changed:
            transition.history.append(
                HistoryDraft(
                    action="UPDATE_TASK",
                    entity_id=task.id,
                    entity_type="task",
                    project_id=task.project_id,
                    details={
                        "from": {**{k: getattr(task, k) for k in changed}, "title": task.title},
                        "to": {**changed, "title": changed.get("title", task.title)},
                    },
                )
            )

        new_stage = fields.get("project_stage_id")
        if new_stage is not None and new_stage != task.project_stage_id:
            assignee = Explicit(fields["assignee_id"]) if "assignee_id" in fields else None
            status = Explicit(fields["user_status"]) if fields.get("user_status") is not None else None
            transition.extend(
                apply_stage_change(
                    task, stages, users, new_stage,
                    assignee=assignee,
                    user_status=status,
                    base_tags=transition.value(task, "tags"),
                )
            )
            return await self._commit(task, transition, actor)

        assignee = Explicit(fields["assignee_id"]) if "assignee_id" in fields else None
        status_change = Transition()
        if fields.get("user_status") is not None:
            # A hand-off triggered here starts from the edited tags and assignee
            status_change = review.apply_user_status(
                task,
                stages,
                users,
                fields["user_status"],
                actor_id=actor.id if actor else None,
                assignee=assignee,
                base_tags=transition.value(task, "tags"),
            )

        if (
            assignee is not None
            and assignee.value != task.assignee_id
            and "assignee_id" not in status_change.changes
        ):
            transition.changes["assignee_id"] = assignee.value
            transition.history.append(
                HistoryDraft(
                    action="UPDATE_TASK_ASSIGNEE",
                    entity_id=task.id,
                    entity_type="task",
                    project_id=task.project_id,
                    details={"from": task.assignee_id, "to": assignee.value},
                )
            )
        transition.extend(status_change)
        return await self._commit(task, transition, actor)
