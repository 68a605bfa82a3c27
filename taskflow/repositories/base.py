# taskflow/repositories/base.py
from typing import Dict, Iterable, List, Optional, Protocol

from taskflow.services.transitions import Transition


class TaskStore(Protocol):
    """What the workflow needs from storage.

    ``SqlAlchemyTaskStore`` is the real one; tests substitute an in-memory double.
    """

    async def get_task(self, task_id: int) -> Optional[object]:
        ...

    async def list_stages(self, project_id: int) -> List[object]:
        ...

    async def get_users(self, user_ids: Iterable[int]) -> Dict[int, object]:
        ...

    async def commit_transition(self, task, transition: Transition, actor_id: Optional[int]) -> object:
        """Apply all changes, the revision and the history rows in one write."""
        ...
