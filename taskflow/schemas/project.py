from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from .department import DepartmentResponse
from .stage import ProjectStageCreate, StageResponse

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = ""
    department_id: Optional[int] = None
    emails: List[str] = []
    phone_numbers: List[str] = []
    stages: List[ProjectStageCreate]

class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    department_id: Optional[int] = None
    emails: Optional[List[str]] = None
    phone_numbers: Optional[List[str]] = None

class ProjectResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    department: Optional[DepartmentResponse]
    emails: List[str]
    phone_numbers: List[str]
    stages: List[StageResponse]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
