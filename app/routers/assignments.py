"""
Assignments router — Lecturer assignment management and grading, student
submissions, course grade views.

Every grading action recomputes the student's course grade synchronously.
"""

import csv
import io
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser  # Use dateutil for parsing ISO formats with Z safely
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import StreamingResponse

from app.core.enums import AssignmentType, EnrollmentStatus, Role, SubmissionStatus
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.grading import check_weight_budget, recompute_course_grade, validate_grade
from app.core.repository import Repository, get_repository, utcnow
from app.core.security import get_current_user, require_role
from app.core.uploads import delete_stored_file, save_submission_file
from app.schemas.assignments import AssignmentCreate, AssignmentUpdate, SubmissionGrade
from app.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["Assignments"])


# ===== ACCESS HELPERS =====

def _owned_assignment(repo: Repository, assignment_id: str, lecturer_id: str, action: str) -> tuple[dict, dict]:
    assignment = repo.get_assignment(assignment_id)
    if not assignment:
        raise NotFoundError("Assignment not found")
    course = repo.get_course(assignment["course_id"])
    if not course or course.get("lecturer_id") != lecturer_id:
        raise ForbiddenError(f"You can only {action} your own assignments")
    return assignment, course


def _owned_course(repo: Repository, course_id: str, lecturer_id: str, message: str) -> dict:
    course = repo.get_course(course_id)
    if not course or course.get("lecturer_id") != lecturer_id:
        raise ForbiddenError(message)
    return course


def _is_enrolled(repo: Repository, course_id: str, student_id: str) -> bool:
    enrollment = repo.find_enrollment(course_id, student_id)
    return bool(enrollment) and enrollment["status"] == EnrollmentStatus.ENROLLED


def _check_course_access(repo: Repository, course_id: str, user: dict) -> dict:
    course = repo.get_course(course_id)
    if not course:
        raise NotFoundError("Course not found")

    if user["role"] == Role.STUDENT:
        if not _is_enrolled(repo, course_id, user["user_id"]):
            raise ForbiddenError("You must be enrolled in the course to view assignments")
    elif user["role"] == Role.LECTURER:
        if course.get("lecturer_id") != user["user_id"]:
            raise ForbiddenError("You can only view assignments for your own courses")
    return course


def _attach_submissions(repo: Repository, course_id: str, assignments: list[dict], user: dict) -> list[dict]:
    student_id = user["user_id"] if user["role"] == Role.STUDENT else None
    sub_map = defaultdict(list)
    for s in repo.list_course_submissions(course_id, student_id):
        sub_map[s["assignment_id"]].append(s)

    result = []
    for a in assignments:
        subs = sub_map.get(a["id"], [])
        result.append({**a, "submissions": subs, "submission_count": len(subs)})
    return result


def _graded_student_ids(repo: Repository, assignment_id: str) -> set[str]:
    return {
        s["student_id"]
        for s in repo.list_assignment_submissions(assignment_id)
        if s["status"] == SubmissionStatus.GRADED and s.get("grade") is not None
    }


def _is_late(due_date: str) -> bool:
    due = parser.isoparse(due_date)
    if due.tzinfo is None:
        due = due.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) > due


# ===== LECTURER =====

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    body: AssignmentCreate,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    lecturer_id = user["user_id"]
    _owned_course(repo, body.course_id, lecturer_id, "You can only create assignments for your own courses")

    check_weight_budget(repo.list_assignment_weights(body.course_id), body.weight)

    assignment = repo.create_assignment({
        **body.model_dump(mode="json"),
        "created_by_id": lecturer_id,
    })

    # Every enrolled student starts with an empty submission
    repo.create_empty_submissions(assignment["id"], repo.list_enrolled_student_ids(body.course_id))

    logger.info(
        "Assignment %s created in course %s (weight %s%%)",
        assignment["id"], body.course_id, body.weight,
    )
    return success_response(data=assignment, message="Assignment created")


@router.put("/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    body: AssignmentUpdate,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    assignment, _ = _owned_assignment(repo, assignment_id, user["user_id"], "update")
    course_id = assignment["course_id"]

    if body.weight is not None:
        check_weight_budget(
            repo.list_assignment_weights(course_id, exclude_id=assignment_id), body.weight
        )

    update_data = body.model_dump(mode="json", exclude_none=True)
    if not update_data:
        raise ValidationError("Nothing to update")

    updated = repo.update_assignment(assignment_id, update_data)

    if body.weight is not None and body.weight != assignment["weight"]:
        for student_id in _graded_student_ids(repo, assignment_id):
            recompute_course_grade(repo, course_id, student_id)

    return success_response(data=updated, message="Assignment updated")


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    assignment, _ = _owned_assignment(repo, assignment_id, user["user_id"], "delete")
    course_id = assignment["course_id"]

    submissions = repo.list_assignment_submissions(assignment_id)
    graded = _graded_student_ids(repo, assignment_id)

    repo.delete_assignment(assignment_id)
    for s in submissions:
        delete_stored_file(s.get("file_path"))

    # TODO: clear course grades left with no graded work once stale snapshots are no longer wanted
    for student_id in graded:
        recompute_course_grade(repo, course_id, student_id)

    logger.info("Assignment %s deleted from course %s", assignment_id, course_id)
    return success_response(message="Assignment deleted")


@router.put("/submissions/{submission_id}/grade")
async def grade_submission(
    submission_id: str,
    body: SubmissionGrade,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    submission = repo.get_submission(submission_id)
    if not submission:
        raise NotFoundError("Submission not found")

    assignment = repo.get_assignment(submission["assignment_id"])
    if not assignment:
        raise NotFoundError("Assignment not found")
    course = repo.get_course(assignment["course_id"])
    if not course or course.get("lecturer_id") != user["user_id"]:
        raise ForbiddenError("You can only grade submissions for your own courses")

    grade = validate_grade(body.grade)

    graded = repo.update_submission(submission_id, {
        "grade": grade,
        "feedback": body.feedback,
        "status": SubmissionStatus.GRADED.value,
        "graded_at": utcnow(),
    })

    course_grade = recompute_course_grade(repo, assignment["course_id"], submission["student_id"])

    return success_response(
        data={"submission": graded, "course_grade": course_grade},
        message="Submission graded",
    )


@router.get("/course/{course_id}/grades")
async def get_course_grades(
    course_id: str,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    _owned_course(repo, course_id, user["user_id"], "You can only view grades for your own courses")
    return success_response(data=repo.list_course_grades(course_id))


@router.get("/course/{course_id}/grades/export")
async def export_course_grades(
    course_id: str,
    user: dict = Depends(require_role([Role.LECTURER.value])),
    repo: Repository = Depends(get_repository),
):
    course = _owned_course(repo, course_id, user["user_id"], "You can only view grades for your own courses")

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Student ID", "Email", "Final Grade", "Letter Grade", "Updated At"])

    for g in repo.list_course_grades(course_id):
        student = g.get("student") or {}
        writer.writerow([
            g["student_id"],
            student.get("email", ""),
            f"{float(g['final_grade']):.2f}",
            g["letter_grade"],
            g.get("updated_at", ""),
        ])

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=grades_{course['id']}.csv"},
    )


# ===== SHARED =====

@router.get("/course/{course_id}")
async def get_course_assignments(
    course_id: str,
    user: dict = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    _check_course_access(repo, course_id, user)
    assignments = repo.list_course_assignments(course_id)
    return success_response(data=_attach_submissions(repo, course_id, assignments, user))


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    user: dict = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    assignment = repo.get_assignment(assignment_id)
    if not assignment:
        raise NotFoundError("Assignment not found")

    course_id = assignment["course_id"]
    _check_course_access(repo, course_id, user)
    return success_response(data=_attach_submissions(repo, course_id, [assignment], user)[0])


# ===== STUDENT =====

@router.post("/{assignment_id}/submit", status_code=status.HTTP_201_CREATED)
async def submit_assignment(
    assignment_id: str,
    text_submission: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    file: Optional[UploadFile] = File(default=None),
    user: dict = Depends(require_role([Role.STUDENT.value])),
    repo: Repository = Depends(get_repository),
):
    student_id = user["user_id"]
    assignment = repo.get_assignment(assignment_id)
    if not assignment:
        raise NotFoundError("Assignment not found")

    if not _is_enrolled(repo, assignment["course_id"], student_id):
        raise ForbiddenError("You must be enrolled in the course to submit assignments")

    has_file = file is not None and bool(file.filename)
    kind = assignment["type"]
    if kind == AssignmentType.FILE_UPLOAD and not has_file:
        raise ValidationError("File upload is required for this assignment")
    if kind == AssignmentType.TEXT_SUBMISSION and not text_submission:
        raise ValidationError("Text submission is required for this assignment")
    if kind == AssignmentType.BOTH and not has_file and not text_submission:
        raise ValidationError("Either file upload or text submission is required")

    existing = repo.find_submission(assignment_id, student_id)
    if existing and existing["status"] == SubmissionStatus.GRADED:
        raise ValidationError("This submission has already been graded")

    late = _is_late(assignment["due_date"])
    data = {
        "assignment_id": assignment_id,
        "student_id": student_id,
        "text_submission": text_submission,
        "notes": notes,
        "status": (SubmissionStatus.LATE_SUBMISSION if late else SubmissionStatus.SUBMITTED).value,
        "submitted_at": utcnow(),
    }

    stored = None
    if has_file:
        stored = await save_submission_file(file)
        data.update(stored)

    try:
        submission = repo.upsert_submission(data)
    except Exception:
        if stored:
            delete_stored_file(stored["file_path"])
        raise

    # Old file goes only once the row points at the new one
    if stored and existing:
        delete_stored_file(existing.get("file_path"))

    logger.info(
        "Student %s submitted assignment %s (%s)", student_id, assignment_id, data["status"]
    )
    return success_response(data=submission, message="Assignment submitted")


@router.get("/course/{course_id}/my-submissions")
async def get_my_submissions(
    course_id: str,
    user: dict = Depends(require_role([Role.STUDENT.value])),
    repo: Repository = Depends(get_repository),
):
    if not _is_enrolled(repo, course_id, user["user_id"]):
        raise ForbiddenError("You must be enrolled in the course")
    submissions = repo.list_course_submissions(course_id, user["user_id"])
    submissions.sort(key=lambda s: (s.get("assignments") or {}).get("due_date") or "")
    return success_response(data=submissions)


@router.get("/course/{course_id}/my-grade")
async def get_my_grade(
    course_id: str,
    user: dict = Depends(require_role([Role.STUDENT.value])),
    repo: Repository = Depends(get_repository),
):
    return success_response(data=repo.get_course_grade(course_id, user["user_id"]))
