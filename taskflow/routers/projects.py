# taskflow/routers/projects.py
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from taskflow.database import get_db
from taskflow.core.auth import get_current_user, get_current_manager
from taskflow.core.policy import filter_accessible
from taskflow.models.project import Project
from taskflow.models.stage import Stage
from taskflow.models.user import User
from taskflow.routers.common import (
    department_names,
    ensure_department_exists,
    ensure_project_access,
    ensure_user_exists,
    load_project,
)
from taskflow.schemas.history import HistoryEntryResponse
from taskflow.schemas.project import ProjectCreate, ProjectUpdate, ProjectResponse
from taskflow.services import stage_graph
from taskflow.services.history import HistoryLog, render_entry
from taskflow.services.transitions import HistoryDraft

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


async def _check_name_free(db: AsyncSession, name: str, exclude_id: int = None):
    query = select(Project.id).where(func.lower(Project.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.where(Project.id != exclude_id)
    if (await db.execute(query)).first():
        raise HTTPException(400, "A project with this name already exists")


def _project_snapshot(project: Project) -> dict:
    return {
        "name": project.name,
        "description": project.description,
        "department_id": project.department_id,
        "emails": list(project.emails or []),
        "phone_numbers": list(project.phone_numbers or []),
    }


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(
        select(Project)
        .options(selectinload(Project.stages), selectinload(Project.department))
        .order_by(Project.name)
    )
    projects = result.scalars().all()
    return filter_accessible(current_user, projects, await department_names(db))


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    project = await load_project(db, project_id)
    await ensure_project_access(db, current_user, project)
    return project


@router.post("", response_model=ProjectResponse)
async def create_project(
    project_in: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    await _check_name_free(db, project_in.name)
    await ensure_department_exists(db, project_in.department_id)

    stages = [
        Stage(
            title=s.title.strip(),
            color=s.color,
            order=index,
            type=s.type,
            main_responsible_id=s.main_responsible_id,
            backup_responsible_id_1=s.backup_responsible_id_1,
            backup_responsible_id_2=s.backup_responsible_id_2,
        )
        for index, s in enumerate(project_in.stages)
    ]
    stage_graph.validate_stages(stages)
    for s in project_in.stages:
        for user_id in (s.main_responsible_id, s.backup_responsible_id_1, s.backup_responsible_id_2):
            await ensure_user_exists(db, user_id)

    project = Project(
        name=project_in.name.strip(),
        description=project_in.description or "",
        department_id=project_in.department_id,
        emails=list(project_in.emails),
        phone_numbers=list(project_in.phone_numbers),
        stages=stages,
    )
    if manager.role != "admin":
        await ensure_project_access(db, manager, project)

    db.add(project)
    await db.flush()
    HistoryLog(db).append(
        HistoryDraft(
            action="CREATE_PROJECT",
            entity_id=project.id,
            entity_type="project",
            project_id=project.id,
            details={"name": project.name},
        ),
        manager.id,
    )
    await db.commit()
    logger.info("Project %s created by user %s", project.id, manager.id)
    return await load_project(db, project.id)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    project = await load_project(db, project_id)
    await ensure_project_access(db, manager, project)
    before = _project_snapshot(project)
    fields = project_in.model_fields_set

    if project_in.name is not None:
        await _check_name_free(db, project_in.name, exclude_id=project.id)
        project.name = project_in.name.strip()
    if project_in.description is not None:
        project.description = project_in.description
    if "department_id" in fields:
        await ensure_department_exists(db, project_in.department_id)
        project.department_id = project_in.department_id
        # A team lead may not move a project out of what they can see
        await ensure_project_access(db, manager, project)
    if project_in.emails is not None:
        project.emails = list(project_in.emails)
    if project_in.phone_numbers is not None:
        project.phone_numbers = list(project_in.phone_numbers)

    after = _project_snapshot(project)
    if after != before:
        HistoryLog(db).append(
            HistoryDraft(
                action="UPDATE_PROJECT",
                entity_id=project.id,
                entity_type="project",
                project_id=project.id,
                details={"from": before, "to": after},
            ),
            manager.id,
        )
    await db.commit()
    return await load_project(db, project.id)


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    project = await load_project(db, project_id)
    await ensure_project_access(db, manager, project)
    # Tasks, stages and the project's history go with it
    await db.delete(project)
    await db.commit()
    logger.info("Project %s (%s) deleted by user %s", project_id, project.name, manager.id)
    return {"message": "Project deleted"}


@router.get("/{project_id}/history", response_model=List[HistoryEntryResponse])
async def project_history(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    project = await load_project(db, project_id)
    await ensure_project_access(db, manager, project)

    entries = await HistoryLog(db).list_for_project(project_id)
    user_ids = {e.user_id for e in entries if e.user_id is not None}
    for e in entries:
        if e.action == "UPDATE_TASK_ASSIGNEE":
            user_ids.update(v for v in (e.details.get("from"), e.details.get("to")) if isinstance(v, int))
    users = {}
    if user_ids:
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in result.scalars().all()}
    stages = {s.id: s for s in project.stages}

    return [
        HistoryEntryResponse(
            id=e.id,
            timestamp=e.timestamp,
            user_id=e.user_id,
            action=e.action,
            entity_id=e.entity_id,
            entity_type=e.entity_type,
            project_id=e.project_id,
            details=e.details or {},
            message=render_entry(e, users, stages),
        )
        for e in entries
    ]
