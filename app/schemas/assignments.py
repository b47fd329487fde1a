from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.core.enums import AssignmentType


class AssignmentCreate(BaseModel):
    course_id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: AssignmentType
    weight: int = Field(ge=0, le=100)
    due_date: datetime


class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    type: Optional[AssignmentType] = None
    weight: Optional[int] = Field(default=None, ge=0, le=100)
    due_date: Optional[datetime] = None


class SubmissionGrade(BaseModel):
    grade: float = Field(ge=0, le=100)
    feedback: Optional[str] = None
