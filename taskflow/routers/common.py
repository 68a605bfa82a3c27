# taskflow/routers/common.py
from typing import Dict
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from taskflow.core.policy import can_access_project
from taskflow.models.department import Department
from taskflow.models.project import Project
from taskflow.models.user import User


async def department_names(db: AsyncSession) -> Dict[int, str]:
    result = await db.execute(select(Department.id, Department.name))
    return {row.id: row.name for row in result.fetchall()}


async def load_project(db: AsyncSession, project_id: int) -> Project:
    result = await db.execute(
        select(Project)
        .where(Project.id == project_id)
        .options(selectinload(Project.stages), selectinload(Project.department))
        .execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if not project:
        raise HTTPException(404, "Project not found")
    return project


async def ensure_project_access(db: AsyncSession, user: User, project) -> None:
    if not can_access_project(user, project, await department_names(db)):
        raise HTTPException(403, "You do not have access to this project")


async def ensure_department_exists(db: AsyncSession, department_id) -> None:
    if department_id is None:
        return
    found = await db.execute(select(Department.id).where(Department.id == department_id))
    if found.scalar_one_or_none() is None:
        raise HTTPException(400, "Department not found")


async def ensure_user_exists(db: AsyncSession, user_id) -> None:
    if user_id is None:
        return
    found = await db.execute(select(User.id).where(User.id == user_id))
    if found.scalar_one_or_none() is None:
        raise HTTPException(400, f"User {user_id} not found")
