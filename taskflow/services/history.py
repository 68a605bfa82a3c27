# taskflow/services/history.py
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from fastapi.encoders import jsonable_encoder
from taskflow.models.history import HistoryEntry
from taskflow.services.transitions import HistoryDraft


class HistoryLog:
    """Append-only audit trail for a project."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def append(self, draft: HistoryDraft, user_id: Optional[int], timestamp: Optional[datetime] = None) -> HistoryEntry:
        """Stage one entry on the session; the caller's commit persists it."""
        entry = HistoryEntry(
            timestamp=timestamp or datetime.now(timezone.utc),
            user_id=user_id,
            action=draft.action,
            entity_id=draft.entity_id,
            entity_type=draft.entity_type,
            project_id=draft.project_id,
            details=jsonable_encoder(draft.details),
        )
        self.db.add(entry)
        return entry

    def append_all(self, drafts: Iterable[HistoryDraft], user_id: Optional[int]) -> List[HistoryEntry]:
        now = datetime.now(timezone.utc)
        return [self.append(d, user_id, now) for d in drafts]

    async def list_for_project(self, project_id: int) -> List[HistoryEntry]:
        """Insertion order; display code reverses it."""
        result = await self.db.execute(
            select(HistoryEntry)
            .where(HistoryEntry.project_id == project_id)
            .order_by(HistoryEntry.id)
        )
        return list(result.scalars().all())


def _user_name(users: Mapping[int, Any], user_id) -> str:
    user = users.get(user_id) if user_id is not None else None
    return user.name if user is not None else "Unknown User"


def _stage_title(stages: Mapping[int, Any], stage_id) -> str:
    stage = stages.get(stage_id) if stage_id is not None else None
    if stage is not None:
        return stage.title
    return str(stage_id) if stage_id is not None else "none"


def render_entry(entry, users: Mapping[int, Any], stages: Mapping[int, Any]) -> str:
    """Human readable line for one history entry (without the actor prefix)."""
    d = entry.details or {}
    action = entry.action

    if action == "CREATE_PROJECT":
        return f'created project "{d.get("name")}"'
    if action == "UPDATE_PROJECT":
        return f'updated project "{(d.get("to") or {}).get("name", "Unknown")}"'
    if action == "DELETE_PROJECT":
        return f'deleted project "{d.get("name")}"'
    if action == "CREATE_TASK":
        return f'created task "{d.get("title")}"'
    if action == "UPDATE_TASK":
        return f'updated task "{(d.get("to") or {}).get("title", "Unknown")}"'
    if action == "DELETE_TASK":
        return f'deleted task "{d.get("title")}"'
    if action == "UPDATE_TASK_STATUS":
        if d.get("action") == "approved":
            return f'approved task into "{d.get("target_stage")}": {d.get("comment")}'
        return f'moved task from "{_stage_title(stages, d.get("from"))}" to "{_stage_title(stages, d.get("to"))}"'
    if action == "UPDATE_TASK_ASSIGNEE":
        if d.get("to") is None:
            return "unassigned task"
        return f"assigned task to {_user_name(users, d.get('to'))}"
    if action == "CREATE_STAGE":
        return f'created stage "{d.get("title")}"'
    if action == "UPDATE_STAGE":
        return f'updated stage "{(d.get("to") or {}).get("title", "Unknown")}"'
    if action == "DELETE_STAGE":
        return f'deleted stage "{d.get("title")}"'
    return "performed an unknown action"
