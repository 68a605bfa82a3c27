# taskflow/routers/stages.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user, get_current_manager
from taskflow.core.policy import can_access_project
from taskflow.models.project import Project
from taskflow.models.stage import Stage
from taskflow.routers.common import department_names, ensure_project_access, ensure_user_exists, load_project
from taskflow.schemas.stage import StageCreate, StageUpdate, StageResponse
from taskflow.services import stage_graph
from taskflow.services.history import HistoryLog
from taskflow.services.transitions import HistoryDraft

router = APIRouter(prefix="/stages", tags=["stages"])

EDITABLE_FIELDS = (
    "title",
    "color",
    "main_responsible_id",
    "backup_responsible_id_1",
    "backup_responsible_id_2",
    "is_review_stage",
    "linked_review_stage_id",
    "approved_target_stage_id",
)


def _snapshot(stage: Stage) -> dict:
    data = {name: getattr(stage, name) for name in EDITABLE_FIELDS}
    data["order"] = stage.order
    return data


async def _get_stage(db: AsyncSession, stage_id: int) -> Stage:
    result = await db.execute(select(Stage).where(Stage.id == stage_id))
    stage = result.scalar_one_or_none()
    if not stage:
        raise HTTPException(404, "Stage not found")
    return stage


async def _check_responsibles(db: AsyncSession, data) -> None:
    for user_id in (data.main_responsible_id, data.backup_responsible_id_1, data.backup_responsible_id_2):
        await ensure_user_exists(db, user_id)


@router.get("", response_model=List[StageResponse])
async def list_stages(
    project_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    if project_id is not None:
        project = await load_project(db, project_id)
        await ensure_project_access(db, current_user, project)
        return project.stages

    projects = (await db.execute(select(Project))).scalars().all()
    departments = await department_names(db)
    visible = [p.id for p in projects if can_access_project(current_user, p, departments)]
    result = await db.execute(
        select(Stage).where(Stage.project_id.in_(visible)).order_by(Stage.project_id, Stage.order)
    )
    return result.scalars().all()


@router.get("/{stage_id}", response_model=StageResponse)
async def get_stage(
    stage_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    stage = await _get_stage(db, stage_id)
    project = await load_project(db, stage.project_id)
    await ensure_project_access(db, current_user, project)
    return stage


@router.post("", response_model=StageResponse)
async def create_stage(
    stage_in: StageCreate,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    project = await load_project(db, stage_in.project_id)
    await ensure_project_access(db, manager, project)
    await _check_responsibles(db, stage_in)

    existing = list(project.stages)
    stage_graph.check_unique_title(existing, stage_in.title)

    stage = Stage(
        project_id=project.id,
        title=stage_in.title.strip(),
        color=stage_in.color,
        type=stage_in.type,
        main_responsible_id=stage_in.main_responsible_id,
        backup_responsible_id_1=stage_in.backup_responsible_id_1,
        backup_responsible_id_2=stage_in.backup_responsible_id_2,
        is_review_stage=stage_in.is_review_stage,
        linked_review_stage_id=stage_in.linked_review_stage_id,
        approved_target_stage_id=stage_in.approved_target_stage_id,
    )
    ordered = stage_graph.insert_stage(existing, stage, stage_in.order)
    stage_graph.validate_stages(ordered)

    db.add(stage)
    await db.flush()
    HistoryLog(db).append(
        HistoryDraft(
            action="CREATE_STAGE",
            entity_id=stage.id,
            entity_type="stage",
            project_id=project.id,
            details={"title": stage.title},
        ),
        manager.id,
    )
    await db.commit()
    await db.refresh(stage)
    return stage


@router.put("/{stage_id}", response_model=StageResponse)
async def update_stage(
    stage_id: int,
    stage_in: StageUpdate,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    stage = await _get_stage(db, stage_id)
    project = await load_project(db, stage.project_id)
    await ensure_project_access(db, manager, project)
    # load_project refreshed the identity map, so this is the same object
    stages = list(project.stages)
    before = _snapshot(stage)
    fields = stage_in.model_fields_set

    if stage_in.title is not None:
        stage_graph.check_unique_title(stages, stage_in.title, exclude_id=stage.id)
        stage.title = stage_in.title.strip()
    if stage_in.color is not None:
        stage.color = stage_in.color
    if stage_in.is_review_stage is not None:
        stage.is_review_stage = stage_in.is_review_stage
    for name in (
        "main_responsible_id",
        "backup_responsible_id_1",
        "backup_responsible_id_2",
        "linked_review_stage_id",
        "approved_target_stage_id",
    ):
        if name in fields:
            setattr(stage, name, getattr(stage_in, name))
    await _check_responsibles(db, stage)
    if stage_in.order is not None and stage_in.order != stage.order:
        stage_graph.move_stage(stages, stage, stage_in.order)

    stage_graph.validate_stages(stages)

    after = _snapshot(stage)
    if after != before:
        HistoryLog(db).append(
            HistoryDraft(
                action="UPDATE_STAGE",
                entity_id=stage.id,
                entity_type="stage",
                project_id=project.id,
                details={"from": before, "to": after},
            ),
            manager.id,
        )
    await db.commit()
    await db.refresh(stage)
    return stage


@router.delete("/{stage_id}")
async def delete_stage(
    stage_id: int,
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    stage = await _get_stage(db, stage_id)
    project = await load_project(db, stage.project_id)
    await ensure_project_access(db, manager, project)
    stages = list(project.stages)
    stage_graph.check_deletable(stages, stage)

    # Stages that handed completed work to this review stage fall back to "next stage"
    await db.execute(
        update(Stage).where(Stage.linked_review_stage_id == stage.id).values(linked_review_stage_id=None)
    )
    for other in stages:
        if other.linked_review_stage_id == stage.id:
            other.linked_review_stage_id = None

    HistoryLog(db).append(
        HistoryDraft(
            action="DELETE_STAGE",
            entity_id=stage.id,
            entity_type="stage",
            project_id=project.id,
            details={"title": stage.title},
        ),
        manager.id,
    )
    await db.delete(stage)
    stage_graph.renumber([s for s in stages if s.id != stage.id])
    await db.commit()
    return {"message": "Stage deleted"}
