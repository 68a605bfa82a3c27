from pydantic import BaseModel, Field
from typing import Literal, Optional

class StageBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    color: str = "bg-status-todo"
    type: Literal["user", "project"] = "project"
    main_responsible_id: Optional[int] = None
    backup_responsible_id_1: Optional[int] = None
    backup_responsible_id_2: Optional[int] = None
    is_review_stage: bool = False
    linked_review_stage_id: Optional[int] = None
    approved_target_stage_id: Optional[int] = None

class StageCreate(StageBase):
    project_id: int
    order: Optional[int] = Field(None, ge=0)  # None appends at the end

class ProjectStageCreate(BaseModel):
    """Stage supplied inline when creating a project. Review links need real
    stage ids, so they are configured afterwards through /stages."""
    title: str = Field(..., min_length=1, max_length=100)
    color: str = "bg-status-todo"
    type: Literal["user", "project"] = "project"
    main_responsible_id: Optional[int] = None
    backup_responsible_id_1: Optional[int] = None
    backup_responsible_id_2: Optional[int] = None

class StageUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)
    main_responsible_id: Optional[int] = None
    backup_responsible_id_1: Optional[int] = None
    backup_responsible_id_2: Optional[int] = None
    is_review_stage: Optional[bool] = None
    linked_review_stage_id: Optional[int] = None
    approved_target_stage_id: Optional[int] = None

class StageResponse(BaseModel):
    id: int
    project_id: int
    title: str
    color: str
    order: int
    type: str
    main_responsible_id: Optional[int]
    backup_responsible_id_1: Optional[int]
    backup_responsible_id_2: Optional[int]
    is_review_stage: bool
    linked_review_stage_id: Optional[int]
    approved_target_stage_id: Optional[int]

    model_config = {"from_attributes": True}
