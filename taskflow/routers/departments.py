# taskflow/routers/departments.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user, get_current_admin
from taskflow.models.department import Department
from taskflow.models.project import Project
from taskflow.models.user import User
from taskflow.schemas.department import DepartmentCreate, DepartmentResponse

router = APIRouter(prefix="/departments", tags=["departments"])


async def _get_department(db: AsyncSession, department_id: int) -> Department:
    result = await db.execute(select(Department).where(Department.id == department_id))
    department = result.scalar_one_or_none()
    if not department:
        raise HTTPException(404, "Department not found")
    return department


async def _check_name_free(db: AsyncSession, name: str, exclude_id: int = None):
    query = select(Department.id).where(func.lower(Department.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.where(Department.id != exclude_id)
    if (await db.execute(query)).first():
        raise HTTPException(400, "A department with this name already exists")


@router.get("", response_model=List[DepartmentResponse])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(select(Department).order_by(Department.name))
    return result.scalars().all()


@router.post("", response_model=DepartmentResponse)
async def create_department(
    department_in: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    await _check_name_free(db, department_in.name)
    department = Department(name=department_in.name.strip())
    db.add(department)
    await db.commit()
    await db.refresh(department)
    return department


@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await _get_department(db, department_id)


@router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: int,
    department_in: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    department = await _get_department(db, department_id)
    await _check_name_free(db, department_in.name, exclude_id=department_id)
    department.name = department_in.name.strip()
    await db.commit()
    await db.refresh(department)
    return department


@router.delete("/{department_id}")
async def delete_department(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    department = await _get_department(db, department_id)
    # Users and projects lose the department, they are not deleted with it
    await db.execute(update(User).where(User.department_id == department_id).values(department_id=None))
    await db.execute(update(Project).where(Project.department_id == department_id).values(department_id=None))
    await db.delete(department)
    await db.commit()
    return {"message": "Department deleted"}
