# taskflow/routers/users.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user, get_current_manager
from taskflow.models.user import User
from taskflow.routers.common import ensure_department_exists
from taskflow.schemas.user import UserCreate, UserUpdate, UserResponse
from taskflow.utils.password import hash_password

router = APIRouter(prefix="/users", tags=["users"])


async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(404, "User not found")
    return user


async def _check_email_free(db: AsyncSession, email: str, exclude_id: int = None):
    query = select(User.id).where(User.email == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    if (await db.execute(query)).first():
        raise HTTPException(400, "Email already registered")


def _check_team_lead_scope(manager: User, department_id: Optional[int], role: Optional[str]):
    """Team leads only manage plain users of their own department."""
    if manager.role == "admin":
        return
    if department_id != manager.department_id:
        raise HTTPException(403, "Team leads can only manage their own department")
    if role is not None and role != "user":
        raise HTTPException(403, "Team leads cannot assign elevated roles")


@router.get("", response_model=List[UserResponse])
async def list_users(
    department_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    query = select(User).order_by(User.name)
    if department_id is not None:
        query = query.where(User.department_id == department_id)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await _get_user(db, user_id)


@router.post("", response_model=UserResponse)
async def create_user(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    _check_team_lead_scope(manager, user_in.department_id, user_in.role)
    await _check_email_free(db, user_in.email)
    await ensure_department_exists(db, user_in.department_id)

    user = User(
        email=user_in.email,
        name=user_in.name,
        hashed_password=hash_password(user_in.password),
        role=user_in.role,
        department_id=user_in.department_id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_in: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    user = await _get_user(db, user_id)
    fields = user_in.model_fields_set

    if current_user.role == "user" or (current_user.id == user.id and current_user.role != "admin"):
        # Plain users (and leads editing themselves) only touch their own profile basics
        if current_user.id != user.id:
            raise HTTPException(403, "You can only edit your own profile")
        if fields & {"role", "department_id"}:
            raise HTTPException(403, "Only admins and team leads can change role or department")
    elif current_user.role == "team-lead":
        _check_team_lead_scope(current_user, user.department_id, user.role)
        if "department_id" in fields and user_in.department_id != user.department_id:
            raise HTTPException(403, "Team leads cannot move users to another department")
        if "role" in fields:
            _check_team_lead_scope(current_user, user.department_id, user_in.role)

    if user_in.email is not None:
        await _check_email_free(db, user_in.email, exclude_id=user.id)
        user.email = user_in.email
    if user_in.name is not None:
        user.name = user_in.name
    if user_in.password is not None:
        user.hashed_password = hash_password(user_in.password)
    if user_in.role is not None:
        user.role = user_in.role
    if "department_id" in fields:
        await ensure_department_exists(db, user_in.department_id)
        user.department_id = user_in.department_id

    await db.commit()
    await db.refresh(user)
    return user


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    user = await _get_user(db, user_id)
    if user.id == manager.id:
        raise HTTPException(400, "You cannot delete yourself")
    _check_team_lead_scope(manager, user.department_id, user.role)
    # Tasks and stages referencing the user fall back to unassigned (ON DELETE SET NULL)
    await db.delete(user)
    await db.commit()
    return {"message": "User deleted"}
