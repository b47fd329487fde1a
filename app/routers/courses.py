"""
Courses router — Course catalogue, lecturer course management, student
enrollment requests and admin enrollment review.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from app.core.enums import EnrollmentStatus, Role
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.repository import Repository, get_repository
from app.core.security import get_current_user, require_role
from app.core.uploads import delete_stored_file, save_syllabus_file
from app.schemas.courses import AssignLecturer, CourseCreate, CourseUpdate
from app.utils.response import pagination, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/courses", tags=["Courses"])


def get_owned_course(repo: Repository, course_id: str, lecturer_id: str, action: str = "update") -> dict:
    course = repo.get_course(course_id)
    if not course:
        raise NotFoundError("Course not found")
    if course.get("lecturer_id") != lecturer_id:
        raise ForbiddenError(f"You can only {action} your own courses")
    return course


# ===== CATALOGUE =====

@router.get("")
async def list_courses(
    search: Optional[str] = None,
    lecturer_id: Optional[str] = None,
    credits: Optional[int] = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    user: dict = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    courses, total = repo.list_courses(
        search=search,
        lecturer_id=lecturer_id,
        credits=credits,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return success_response(data={
        "courses": courses,
        "pagination": pagination(total, page, limit),
    })


@router.get("/lecturer/my-courses")
async def get_lecturer_courses(
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    return success_response(data=repo.list_lecturer_courses(user["user_id"]))


@router.get("/student/my-enrollments")
async def get_student_enrollments(
    user: dict = Depends(require_role([Role.STUDENT.value])),
    repo: Repository = Depends(get_repository),
):
    return success_response(data=repo.list_student_enrollments(user["user_id"]))


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    user: dict = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    course = repo.get_course(course_id)
    if not course:
        raise NotFoundError("Course not found")
    return success_response(data=course)


# ===== LECTURER =====

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreate,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    lecturer_id = user["user_id"]
    if repo.find_course_by_title(body.title, lecturer_id):
        raise ConflictError("You already have a course with this title")

    course = repo.create_course({**body.model_dump(), "lecturer_id": lecturer_id})
    logger.info("Lecturer %s created course %s", lecturer_id, course["id"])
    return success_response(data=course, message="Course created")


@router.put("/{course_id}")
async def update_course(
    course_id: str,
    body: CourseUpdate,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    lecturer_id = user["user_id"]
    get_owned_course(repo, course_id, lecturer_id)
    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    if not update_data:
        raise ValidationError("Nothing to update")

    if "title" in update_data:
        clash = repo.find_course_by_title(update_data["title"], lecturer_id)
        if clash and clash["id"] != course_id:
            raise ConflictError("You already have a course with this title")

    course = repo.update_course(course_id, update_data)
    return success_response(data=course, message="Course updated")


@router.post("/{course_id}/syllabus")
async def upload_syllabus(
    course_id: str,
    file: UploadFile = File(...),
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    course = get_owned_course(repo, course_id, user["user_id"])
    stored = await save_syllabus_file(file)

    try:
        updated = repo.update_course(course_id, {
            "syllabus_file_path": stored["file_path"],
            "syllabus_file_name": stored["file_name"],
        })
    except Exception:
        delete_stored_file(stored["file_path"])
        raise

    delete_stored_file(course.get("syllabus_file_path"))
    return success_response(data=updated, message="Syllabus uploaded")


# ===== STUDENT ENROLLMENT =====

@router.post("/{course_id}/enroll", status_code=status.HTTP_201_CREATED)
async def request_enrollment(
    course_id: str,
    user: dict = Depends(require_role([Role.STUDENT.value])),
    repo: Repository = Depends(get_repository),
):
    student_id = user["user_id"]
    if not repo.get_course(course_id):
        raise NotFoundError("Course not found")

    existing = repo.find_enrollment(course_id, student_id)
    if existing:
        current = existing["status"]
        if current == EnrollmentStatus.ENROLLED:
            raise ConflictError("You are already enrolled in this course")
        if current == EnrollmentStatus.COMPLETED:
            raise ConflictError("You have already completed this course")
        if current == EnrollmentStatus.PENDING:
            raise ConflictError("You already have a pending enrollment request for this course")

        # dropped or rejected: ask again
        enrollment = repo.update_enrollment(existing["id"], {"status": EnrollmentStatus.PENDING.value})
    else:
        enrollment = repo.create_enrollment({
            "course_id": course_id,
            "student_id": student_id,
            "status": EnrollmentStatus.PENDING.value,
        })

    logger.info("Student %s requested enrollment in course %s", student_id, course_id)
    return success_response(data=enrollment, message="Enrollment request submitted")


@router.delete("/{course_id}/drop")
async def drop_course(
    course_id: str,
    user: dict = Depends(require_role([Role.STUDENT.value])),
    repo: Repository = Depends(get_repository),
):
    enrollment = repo.find_enrollment(course_id, user["user_id"])
    if not enrollment:
        raise NotFoundError("Enrollment not found")

    current = enrollment["status"]
    if current == EnrollmentStatus.DROPPED:
        raise ConflictError("You have already dropped this course")
    if current == EnrollmentStatus.COMPLETED:
        raise ConflictError("Cannot drop a completed course")
    if current == EnrollmentStatus.REJECTED:
        raise ConflictError("Cannot drop a rejected enrollment request")

    updated = repo.update_enrollment(enrollment["id"], {"status": EnrollmentStatus.DROPPED.value})
    logger.info("Student %s dropped course %s", user["user_id"], course_id)
    return success_response(data=updated, message="Course dropped")


# ===== ADMIN =====

@router.put("/{course_id}/assign-lecturer")
async def assign_lecturer(
    course_id: str,
    body: AssignLecturer,
    user: dict = Depends(require_role([Role.ADMIN.value])),
    repo: Repository = Depends(get_repository),
):
    if not repo.get_course(course_id):
        raise NotFoundError("Course not found")

    lecturer = repo.get_user(body.lecturer_id)
    if not lecturer:
        raise NotFoundError("Lecturer not found")
    if lecturer["role"] != Role.LECTURER:
        raise ValidationError("User is not a lecturer")

    course = repo.update_course(course_id, {"lecturer_id": body.lecturer_id})
    return success_response(data=course, message="Lecturer assigned")


@router.get("/admin/enrollments")
async def list_enrollments(
    status_filter: Optional[EnrollmentStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: dict = Depends(require_role([Role.ADMIN.value])),
    repo: Repository = Depends(get_repository),
):
    enrollments, total = repo.list_enrollments(
        status=status_filter.value if status_filter else None,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return success_response(data={
        "enrollments": enrollments,
        "pagination": pagination(total, page, limit),
    })


@router.get("/admin/enrollments/pending")
async def list_pending_enrollments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: dict = Depends(require_role([Role.ADMIN.value])),
    repo: Repository = Depends(get_repository),
):
    enrollments, total = repo.list_enrollments(
        status=EnrollmentStatus.PENDING.value,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return success_response(data={
        "enrollments": enrollments,
        "pagination": pagination(total, page, limit),
    })
