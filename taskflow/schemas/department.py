from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

class DepartmentResponse(BaseModel):
    id: int
    name: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
