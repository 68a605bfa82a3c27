from pydantic import BaseModel, Field, HttpUrl
from datetime import date, datetime
from typing import List, Literal, Optional

UserStatus = Literal["pending", "in-progress", "complete"]
Priority = Literal["low", "medium", "high"]

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = ""
    project_id: int
    assignee_id: Optional[int] = None
    project_stage_id: Optional[int] = None  # defaults to the project's first stage
    due_date: Optional[date] = None
    start_date: Optional[datetime] = None
    priority: Priority = "medium"
    tags: List[str] = []

class TaskUpdate(BaseModel):
    """Partial update. Presence matters: a field sent as null is an explicit
    clear, a field left out is untouched (see ``model_fields_set``)."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    due_date: Optional[date] = None
    start_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None
    project_stage_id: Optional[int] = None
    user_status: Optional[UserStatus] = None

class TaskMove(BaseModel):
    project_stage_id: int
    assignee_id: Optional[int] = None
    user_status: Optional[UserStatus] = None

class TaskStatusUpdate(BaseModel):
    user_status: UserStatus

class TaskApprove(BaseModel):
    target_stage_id: Optional[int] = None  # defaults to the review stage's approval target
    comment: Optional[str] = None

class TaskRevisionRequest(BaseModel):
    target_stage_id: Optional[int] = None  # defaults to the stage the task came from
    comment: str

class AttachmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    url: HttpUrl

class AttachmentResponse(BaseModel):
    id: int
    name: str
    url: str
    type: str
    uploaded_at: Optional[datetime]

    model_config = {"from_attributes": True}

class RevisionResponse(BaseModel):
    id: int
    comment: str
    requested_by: str
    requested_at: datetime
    resolved_at: Optional[datetime]

class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    project: str
    project_id: int
    assignee: str
    assignee_id: Optional[int]
    due_date: Optional[date]
    start_date: Optional[datetime]
    user_status: str
    project_stage_id: Optional[int]
    priority: str
    tags: List[str]
    attachments: List[AttachmentResponse]
    is_in_specific_stage: bool
    revision_comment: Optional[str]
    revision_history: List[RevisionResponse]
    previous_stage_id: Optional[int]
    original_assignee: Optional[str]
    original_assignee_id: Optional[int]
    completed_at: Optional[datetime]
    created_at: Optional[datetime]

    @classmethod
    def from_task(cls, task) -> "TaskResponse":
        """Resolve display names; relationships must already be loaded."""
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            project=task.project.name if task.project else "",
            project_id=task.project_id,
            assignee=task.assignee.name if task.assignee else "",
            assignee_id=task.assignee_id,
            due_date=task.due_date,
            start_date=task.start_date,
            user_status=task.user_status,
            project_stage_id=task.project_stage_id,
            priority=task.priority,
            tags=list(task.tags or []),
            attachments=[AttachmentResponse.model_validate(a) for a in task.attachments],
            is_in_specific_stage=bool(task.is_in_specific_stage),
            revision_comment=task.revision_comment,
            revision_history=[
                RevisionResponse(
                    id=r.id,
                    comment=r.comment,
                    requested_by=r.requested_by.name if r.requested_by else "",
                    requested_at=r.requested_at,
                    resolved_at=r.resolved_at,
                )
                for r in task.revision_history
            ],
            previous_stage_id=task.previous_stage_id,
            original_assignee=task.original_assignee.name if task.original_assignee else None,
            original_assignee_id=task.original_assignee_id,
            completed_at=task.completed_at,
            created_at=task.created_at,
        )
