# taskflow/repositories/sqlalchemy_store.py
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskflow.models.stage import Stage
from taskflow.models.task import Task, RevisionHistory
from taskflow.models.user import User
from taskflow.services.history import HistoryLog
from taskflow.services.transitions import Transition


def task_load_options():
    """Everything a task response renders."""
    return (
        selectinload(Task.project),
        selectinload(Task.assignee),
        selectinload(Task.original_assignee),
        selectinload(Task.revision_history).selectinload(RevisionHistory.requested_by),
        selectinload(Task.attachments),
    )


class SqlAlchemyTaskStore:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.history = HistoryLog(db)

    async def get_task(self, task_id: int) -> Optional[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.id == task_id)
            .options(*task_load_options())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_stages(self, project_id: int) -> List[Stage]:
        result = await self.db.execute(
            select(Stage).where(Stage.project_id == project_id).order_by(Stage.order, Stage.id)
        )
        return list(result.scalars().all())

    async def get_users(self, user_ids: Iterable[int]) -> Dict[int, User]:
        ids = {i for i in user_ids if i is not None}
        if not ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return {u.id: u for u in result.scalars().all()}

    async def commit_transition(self, task: Task, transition: Transition, actor_id: Optional[int]) -> Task:
        if transition.is_noop:
            return task

        for name, value in transition.changes.items():
            setattr(task, name, value)

        if transition.resolve_open_revisions:
            await self.db.execute(
                update(RevisionHistory)
                .where(RevisionHistory.task_id == task.id)
                .where(RevisionHistory.resolved_at.is_(None))
                .values(resolved_at=datetime.now(timezone.utc))
            )

        if transition.revision is not None:
            self.db.add(
                RevisionHistory(
                    task_id=task.id,
                    comment=transition.revision.comment,
                    requested_by_id=transition.revision.requested_by_id,
                    requested_at=transition.revision.requested_at,
                )
            )

        self.history.append_all(transition.history, actor_id)
        self.db.add(task)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get_task(task.id)
