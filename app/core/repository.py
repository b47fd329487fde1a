"""
Repository — the only place that talks to Supabase.

Routers and the grading routines receive a Repository through
``Depends(get_repository)`` instead of reaching for the global client, so the
whole API can run against any object exposing the same methods.

Rows are plain dicts, exactly as supabase-py returns them.
"""

from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from app.core.database import get_supabase
from app.core.enums import EnrollmentStatus, SubmissionStatus

LECTURER_EMBED = "lecturer:users!courses_lecturer_id_fkey(id, email, role)"
STUDENT_EMBED = "student:users!{table}_student_id_fkey(id, email)"


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first(result) -> Optional[dict]:
    # maybe_single().execute() returns None (not an empty response) on newer clients
    if result is None or not result.data:
        return None
    if isinstance(result.data, list):
        return result.data[0]
    return result.data


def _quoted(value: str) -> str:
    """Double-quote a value for a PostgREST or=() filter so , ( ) stay literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class Repository:
    def __init__(self, client: Client):
        self.db = client

    # ---- Users ----
    def get_user(self, user_id: str) -> Optional[dict]:
        result = self.db.table("users").select("*").eq("id", user_id).maybe_single().execute()
        return _first(result)

    def get_user_by_email(self, email: str) -> Optional[dict]:
        result = self.db.table("users").select("*").eq("email", email).maybe_single().execute()
        return _first(result)

    def get_user_by_firebase_uid(self, uid: str) -> Optional[dict]:
        result = self.db.table("users").select("*").eq("firebase_uid", uid).maybe_single().execute()
        return _first(result)

    def create_user(self, data: dict) -> dict:
        result = self.db.table("users").insert({**data, "created_at": utcnow()}).execute()
        return result.data[0]

    # ---- Courses ----
    def get_course(self, course_id: str) -> Optional[dict]:
        result = (
            self.db.table("courses")
            .select(f"*, {LECTURER_EMBED}")
            .eq("id", course_id)
            .maybe_single()
            .execute()
        )
        return _first(result)

    def find_course_by_title(self, title: str, lecturer_id: str) -> Optional[dict]:
        result = (
            self.db.table("courses")
            .select("id")
            .eq("title", title)
            .eq("lecturer_id", lecturer_id)
            .limit(1)
            .execute()
        )
        return _first(result)

    def create_course(self, data: dict) -> dict:
        result = self.db.table("courses").insert({**data, "created_at": utcnow()}).execute()
        return result.data[0]

    def update_course(self, course_id: str, data: dict) -> dict:
        result = self.db.table("courses").update(data).eq("id", course_id).execute()
        return result.data[0]

    def list_courses(
        self,
        search: Optional[str] = None,
        lecturer_id: Optional[str] = None,
        credits: Optional[int] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[dict], int]:
        query = self.db.table("courses").select(f"*, {LECTURER_EMBED}", count="exact")
        if search:
            pattern = _quoted(f"%{search}%")
            conditions = [f"title.ilike.{pattern}", f"syllabus.ilike.{pattern}"]
            lecturers = (
                self.db.table("users")
                .select("id")
                .eq("role", "lecturer")
                .ilike("email", f"%{search}%")
                .execute()
            )
            if lecturers.data:
                ids = ",".join(_quoted(u["id"]) for u in lecturers.data)
                conditions.append(f"lecturer_id.in.({ids})")
            query = query.or_(",".join(conditions))
        if lecturer_id:
            query = query.eq("lecturer_id", lecturer_id)
        if credits:
            query = query.eq("credits", credits)
        result = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return result.data, result.count or 0

    def list_lecturer_courses(self, lecturer_id: str) -> list[dict]:
        result = (
            self.db.table("courses")
            .select("*")
            .eq("lecturer_id", lecturer_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data

    # ---- Enrollments ----
    def get_enrollment(self, enrollment_id: str) -> Optional[dict]:
        result = (
            self.db.table("enrollments")
            .select(f"*, courses(id, title, credits), {STUDENT_EMBED.format(table='enrollments')}")
            .eq("id", enrollment_id)
            .maybe_single()
            .execute()
        )
        return _first(result)

    def find_enrollment(self, course_id: str, student_id: str) -> Optional[dict]:
        result = (
            self.db.table("enrollments")
            .select("*")
            .eq("course_id", course_id)
            .eq("student_id", student_id)
            .maybe_single()
            .execute()
        )
        return _first(result)

    def create_enrollment(self, data: dict) -> dict:
        now = utcnow()
        result = self.db.table("enrollments").insert(
            {**data, "created_at": now, "updated_at": now}
        ).execute()
        return result.data[0]

    def update_enrollment(self, enrollment_id: str, data: dict) -> dict:
        result = (
            self.db.table("enrollments")
            .update({**data, "updated_at": utcnow()})
            .eq("id", enrollment_id)
            .execute()
        )
        return result.data[0]

    def list_enrollments(
        self, status: Optional[str] = None, offset: int = 0, limit: int = 20
    ) -> tuple[list[dict], int]:
        query = self.db.table("enrollments").select(
            f"*, courses(id, title, credits), {STUDENT_EMBED.format(table='enrollments')}",
            count="exact",
        )
        if status:
            query = query.eq("status", status)
        result = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return result.data, result.count or 0

    def list_student_enrollments(self, student_id: str) -> list[dict]:
        result = (
            self.db.table("enrollments")
            .select(f"*, courses(*, {LECTURER_EMBED})")
            .eq("student_id", student_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data

    def list_enrolled_student_ids(self, course_id: str) -> list[str]:
        result = (
            self.db.table("enrollments")
            .select("student_id")
            .eq("course_id", course_id)
            .eq("status", EnrollmentStatus.ENROLLED.value)
            .execute()
        )
        return [row["student_id"] for row in result.data]

    # ---- Assignments ----
    def get_assignment(self, assignment_id: str) -> Optional[dict]:
        result = (
            self.db.table("assignments")
            .select("*, courses(id, title, lecturer_id)")
            .eq("id", assignment_id)
            .maybe_single()
            .execute()
        )
        return _first(result)

    def list_course_assignments(self, course_id: str) -> list[dict]:
        result = (
            self.db.table("assignments")
            .select("*")
            .eq("course_id", course_id)
            .order("due_date", desc=False)
            .execute()
        )
        return result.data

    def list_assignment_weights(self, course_id: str, exclude_id: Optional[str] = None) -> list[int]:
        query = self.db.table("assignments").select("weight").eq("course_id", course_id)
        if exclude_id:
            query = query.neq("id", exclude_id)
        return [row["weight"] for row in query.execute().data]

    def create_assignment(self, data: dict) -> dict:
        result = self.db.table("assignments").insert({**data, "created_at": utcnow()}).execute()
        return result.data[0]

    def update_assignment(self, assignment_id: str, data: dict) -> dict:
        result = self.db.table("assignments").update(data).eq("id", assignment_id).execute()
        return result.data[0]

    def delete_assignment(self, assignment_id: str) -> None:
        self.db.table("assignment_submissions").delete().eq("assignment_id", assignment_id).execute()
        self.db.table("assignments").delete().eq("id", assignment_id).execute()

    # ---- Submissions ----
    def get_submission(self, submission_id: str) -> Optional[dict]:
        result = (
            self.db.table("assignment_submissions")
            .select("*")
            .eq("id", submission_id)
            .maybe_single()
            .execute()
        )
        return _first(result)

    def find_submission(self, assignment_id: str, student_id: str) -> Optional[dict]:
        result = (
            self.db.table("assignment_submissions")
            .select("*")
            .eq("assignment_id", assignment_id)
            .eq("student_id", student_id)
            .maybe_single()
            .execute()
        )
        return _first(result)

    def find_submission_by_file(self, file_name: str) -> Optional[dict]:
        result = (
            self.db.table("assignment_submissions")
            .select("*")
            .like("file_path", f"%{file_name}")
            .limit(1)
            .execute()
        )
        return _first(result)

    def list_assignment_submissions(self, assignment_id: str) -> list[dict]:
        result = (
            self.db.table("assignment_submissions")
            .select("*")
            .eq("assignment_id", assignment_id)
            .execute()
        )
        return result.data

    def list_course_submissions(self, course_id: str, student_id: Optional[str] = None) -> list[dict]:
        query = (
            self.db.table("assignment_submissions")
            .select(
                "*, assignments!inner(id, title, type, weight, due_date, course_id), "
                + STUDENT_EMBED.format(table="assignment_submissions")
            )
            .eq("assignments.course_id", course_id)
        )
        if student_id:
            query = query.eq("student_id", student_id)
        return query.execute().data

    def create_empty_submissions(self, assignment_id: str, student_ids: list[str]) -> None:
        if not student_ids:
            return
        rows = [
            {
                "assignment_id": assignment_id,
                "student_id": sid,
                "status": SubmissionStatus.NOT_SUBMITTED.value,
            }
            for sid in student_ids
        ]
        self.db.table("assignment_submissions").upsert(
            rows, on_conflict="assignment_id,student_id", ignore_duplicates=True
        ).execute()

    def upsert_submission(self, data: dict) -> dict:
        result = self.db.table("assignment_submissions").upsert(
            data, on_conflict="assignment_id,student_id"
        ).execute()
        return result.data[0]

    def update_submission(self, submission_id: str, data: dict) -> dict:
        result = (
            self.db.table("assignment_submissions")
            .update(data)
            .eq("id", submission_id)
            .execute()
        )
        return result.data[0]

    def list_graded_submissions(self, course_id: str, student_id: str) -> list[dict]:
        """Graded submissions of a student in a course as ``{"grade", "weight"}`` rows."""
        result = (
            self.db.table("assignment_submissions")
            .select("grade, assignments!inner(weight, course_id)")
            .eq("student_id", student_id)
            .eq("status", SubmissionStatus.GRADED.value)
            .eq("assignments.course_id", course_id)
            .not_.is_("grade", "null")
            .execute()
        )
        return [
            {"grade": row["grade"], "weight": row["assignments"]["weight"]}
            for row in result.data
        ]

    # ---- Course grades ----
    def get_course_grade(self, course_id: str, student_id: str) -> Optional[dict]:
        result = (
            self.db.table("course_grades")
            .select("*")
            .eq("course_id", course_id)
            .eq("student_id", student_id)
            .maybe_single()
            .execute()
        )
        return _first(result)

    def list_course_grades(self, course_id: str) -> list[dict]:
        result = (
            self.db.table("course_grades")
            .select("*, " + STUDENT_EMBED.format(table="course_grades"))
            .eq("course_id", course_id)
            .execute()
        )
        return sorted(result.data, key=lambda g: (g.get("student") or {}).get("email", ""))

    def upsert_course_grade(
        self, course_id: str, student_id: str, final_grade: float, letter_grade: str
    ) -> dict:
        result = self.db.table("course_grades").upsert(
            {
                "course_id": course_id,
                "student_id": student_id,
                "final_grade": final_grade,
                "letter_grade": letter_grade,
                "updated_at": utcnow(),
            },
            on_conflict="course_id,student_id",
        ).execute()
        return result.data[0]


def get_repository() -> Repository:
    return Repository(get_supabase())
