"""
Files router — Download uploaded submission files and syllabi.

Submission files are visible to admins, the submitting student and the
lecturer who owns the course.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from app.core.enums import Role
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.repository import Repository, get_repository
from app.core.security import get_current_user
from app.core.uploads import resolve_stored_file

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.get("/assignments/{file_name}")
async def download_submission_file(
    file_name: str,
    user: dict = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    if "/" in file_name or "\\" in file_name or file_name.startswith("."):
        raise ValidationError("Invalid file name")

    submission = repo.find_submission_by_file(file_name)
    if not submission:
        raise NotFoundError("File not found")

    if user["role"] == Role.STUDENT:
        if submission["student_id"] != user["user_id"]:
            raise ForbiddenError("You can only download your own submissions")
    elif user["role"] == Role.LECTURER:
        assignment = repo.get_assignment(submission["assignment_id"])
        course = repo.get_course(assignment["course_id"]) if assignment else None
        if not course or course.get("lecturer_id") != user["user_id"]:
            raise ForbiddenError("You can only download submissions for your own courses")

    path = resolve_stored_file("assignments", file_name)
    return FileResponse(path, filename=submission.get("file_name") or file_name)


@router.get("/syllabus/{file_name}")
async def download_syllabus(
    file_name: str,
    user: dict = Depends(get_current_user),
):
    return FileResponse(resolve_stored_file("syllabus", file_name))
