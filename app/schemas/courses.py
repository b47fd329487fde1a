"""
Pydantic schemas for courses and enrollments.
"""

from pydantic import BaseModel, Field
from typing import Optional

from app.core.enums import EnrollmentStatus


# ---- Course ----
class CourseCreate(BaseModel):
    title: str = Field(min_length=1)
    credits: int = Field(ge=1, le=10)
    syllabus: Optional[str] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    credits: Optional[int] = Field(default=None, ge=1, le=10)
    syllabus: Optional[str] = None


class AssignLecturer(BaseModel):
    lecturer_id: str


# ---- Enrollment ----
class EnrollmentStatusUpdate(BaseModel):
    status: EnrollmentStatus
