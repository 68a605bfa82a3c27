from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional

Role = Literal["user", "team-lead", "admin"]

class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=72)
    role: Role = "user"
    department_id: Optional[int] = None

class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    password: Optional[str] = Field(None, min_length=8, max_length=72)
    role: Optional[Role] = None
    department_id: Optional[int] = None

class UserResponse(BaseModel):
    id: int
    email: EmailStr
    is_active: bool
    name: str
    role: str
    department_id: Optional[int]

    model_config = {"from_attributes": True}

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse
