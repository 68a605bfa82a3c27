# taskflow/routers/tasks.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user, get_current_manager
from taskflow.core.policy import can_access_project
from taskflow.models.project import Project
from taskflow.models.task import Task, TaskAttachment
from taskflow.models.user import User
from taskflow.repositories.sqlalchemy_store import SqlAlchemyTaskStore, task_load_options
from taskflow.routers.common import department_names, ensure_project_access, ensure_user_exists, load_project
from taskflow.schemas.task import (
    AttachmentCreate,
    TaskApprove,
    TaskCreate,
    TaskMove,
    TaskResponse,
    TaskRevisionRequest,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskflow.services import stage_graph
from taskflow.services.history import HistoryLog
from taskflow.services.transitions import Explicit, HistoryDraft
from taskflow.services.workflow import TaskWorkflow

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_workflow(db: AsyncSession = Depends(get_db)) -> TaskWorkflow:
    return TaskWorkflow(SqlAlchemyTaskStore(db))


async def _load_task(db: AsyncSession, task_id: int, current_user: User) -> Task:
    task = await SqlAlchemyTaskStore(db).get_task(task_id)
    if not task:
        raise HTTPException(404, "Task not found")
    # Assignees always see their own work, whatever the project's department
    if task.assignee_id != current_user.id:
        await ensure_project_access(db, current_user, task.project)
    return task


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    project_id: Optional[int] = None,
    assignee_id: Optional[int] = None,
    user_status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    query = select(Task).options(*task_load_options()).order_by(Task.created_at, Task.id)

    if project_id is not None:
        query = query.where(Task.project_id == project_id)
    if assignee_id is not None:
        query = query.where(Task.assignee_id == assignee_id)
    if user_status:
        query = query.where(Task.user_status == user_status)

    if current_user.role != "admin":
        projects = (await db.execute(select(Project))).scalars().all()
        departments = await department_names(db)
        visible = [p.id for p in projects if can_access_project(current_user, p, departments)]
        query = query.where(or_(Task.project_id.in_(visible), Task.assignee_id == current_user.id))

    result = await db.execute(query)
    return [TaskResponse.from_task(t) for t in result.scalars().all()]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return TaskResponse.from_task(await _load_task(db, task_id, current_user))


@router.post("", response_model=TaskResponse)
async def create_task(
    task_in: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    project = await load_project(db, task_in.project_id)
    await ensure_project_access(db, current_user, project)
    await ensure_user_exists(db, task_in.assignee_id)

    stages = list(project.stages)
    if task_in.project_stage_id is not None:
        stage = stage_graph.find_stage(stages, task_in.project_stage_id)
        if stage is None:
            raise HTTPException(400, "Stage does not belong to this project")
    else:
        stage = stage_graph.default_stage(stages)

    task = Task(
        title=task_in.title,
        description=task_in.description,
        project_id=project.id,
        assignee_id=task_in.assignee_id,
        project_stage_id=stage.id if stage else None,
        user_status="pending",
        due_date=task_in.due_date,
        start_date=task_in.start_date,
        priority=task_in.priority,
        tags=stage_graph.completion_tags(task_in.tags, stages, stage),
        is_in_specific_stage=False,
    )
    db.add(task)
    await db.flush()
    HistoryLog(db).append(
        HistoryDraft(
            action="CREATE_TASK",
            entity_id=task.id,
            entity_type="task",
            project_id=project.id,
            details={"title": task.title},
        ),
        current_user.id,
    )
    await db.commit()
    task = await SqlAlchemyTaskStore(db).get_task(task.id)
    return TaskResponse.from_task(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    workflow: TaskWorkflow = Depends(get_workflow)
):
    await _load_task(db, task_id, current_user)
    fields = {name: getattr(task_in, name) for name in task_in.model_fields_set}
    if "assignee_id" in fields:
        await ensure_user_exists(db, fields["assignee_id"])
    task = await workflow.edit_task(task_id, fields, current_user)
    return TaskResponse.from_task(task)


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await _load_task(db, task_id, current_user)
    HistoryLog(db).append(
        HistoryDraft(
            action="DELETE_TASK",
            entity_id=task.id,
            entity_type="task",
            project_id=task.project_id,
            details={"title": task.title},
        ),
        current_user.id,
    )
    await db.delete(task)
    await db.commit()
    return {"message": "Task deleted"}


@router.post("/{task_id}/move", response_model=TaskResponse)
async def move_task(
    task_id: int,
    move_in: TaskMove,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    workflow: TaskWorkflow = Depends(get_workflow)
):
    await _load_task(db, task_id, current_user)
    fields = move_in.model_fields_set
    assignee = Explicit(move_in.assignee_id) if "assignee_id" in fields else None
    if assignee is not None:
        await ensure_user_exists(db, assignee.value)
    status = Explicit(move_in.user_status) if move_in.user_status is not None else None
    task = await workflow.move_task(
        task_id, move_in.project_stage_id, current_user, assignee=assignee, user_status=status
    )
    return TaskResponse.from_task(task)


@router.post("/{task_id}/status", response_model=TaskResponse)
async def change_status(
    task_id: int,
    status_in: TaskStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    workflow: TaskWorkflow = Depends(get_workflow)
):
    await _load_task(db, task_id, current_user)
    task = await workflow.change_user_status(task_id, status_in.user_status, current_user)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/approve", response_model=TaskResponse)
async def approve_task(
    task_id: int,
    approve_in: TaskApprove,
    db: AsyncSession = Depends(get_db),
    reviewer = Depends(get_current_manager),
    workflow: TaskWorkflow = Depends(get_workflow)
):
    await _load_task(db, task_id, reviewer)
    task = await workflow.approve(
        task_id, reviewer, target_stage_id=approve_in.target_stage_id, comment=approve_in.comment
    )
    return TaskResponse.from_task(task)


@router.post("/{task_id}/request-revision", response_model=TaskResponse)
async def request_revision(
    task_id: int,
    revision_in: TaskRevisionRequest,
    db: AsyncSession = Depends(get_db),
    reviewer = Depends(get_current_manager),
    workflow: TaskWorkflow = Depends(get_workflow)
):
    await _load_task(db, task_id, reviewer)
    task = await workflow.request_revision(
        task_id, reviewer, revision_in.comment, target_stage_id=revision_in.target_stage_id
    )
    return TaskResponse.from_task(task)


@router.post("/{task_id}/attachments", response_model=TaskResponse)
async def add_attachment(
    task_id: int,
    attachment_in: AttachmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await _load_task(db, task_id, current_user)
    db.add(TaskAttachment(task_id=task.id, name=attachment_in.name, url=str(attachment_in.url), type="link"))
    HistoryLog(db).append(
        HistoryDraft(
            action="UPDATE_TASK",
            entity_id=task.id,
            entity_type="task",
            project_id=task.project_id,
            details={"from": {"title": task.title}, "to": {"title": task.title, "attachment_added": attachment_in.name}},
        ),
        current_user.id,
    )
    await db.commit()
    return TaskResponse.from_task(await SqlAlchemyTaskStore(db).get_task(task.id))


@router.delete("/{task_id}/attachments/{attachment_id}", response_model=TaskResponse)
async def remove_attachment(
    task_id: int,
    attachment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await _load_task(db, task_id, current_user)
    attachment = next((a for a in task.attachments if a.id == attachment_id), None)
    if attachment is None:
        raise HTTPException(404, "Attachment not found")
    HistoryLog(db).append(
        HistoryDraft(
            action="UPDATE_TASK",
            entity_id=task.id,
            entity_type="task",
            project_id=task.project_id,
            details={"from": {"title": task.title}, "to": {"title": task.title, "attachment_removed": attachment.name}},
        ),
        current_user.id,
    )
    await db.delete(attachment)
    await db.commit()
    return TaskResponse.from_task(await SqlAlchemyTaskStore(db).get_task(task.id))
