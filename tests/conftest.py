"""
Shared test fixtures for the LMS API.
The Supabase-backed repository is swapped for an in-memory one through
FastAPI dependency overrides. Zero network calls.
"""
import copy
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.repository import get_repository
from app.main import app


def _now():
    return datetime.now(timezone.utc).isoformat()


class InMemoryRepository:
    """Same methods and row shapes as app.core.repository.Repository."""

    def __init__(self):
        self.users = {}
        self.courses = {}
        self.enrollments = {}
        self.assignments = {}
        self.submissions = {}
        self.course_grades = {}
        self.upserted_grades = 0

    @staticmethod
    def _insert(table, data):
        row = {"id": str(uuid.uuid4()), **data}
        table[row["id"]] = row
        return copy.deepcopy(row)

    @staticmethod
    def _get(table, key):
        row = table.get(key)
        return copy.deepcopy(row) if row else None

    @staticmethod
    def _update(table, key, data):
        table[key].update(data)
        return copy.deepcopy(table[key])

    # ---- Users ----
    def get_user(self, user_id):
        return self._get(self.users, user_id)

    def get_user_by_email(self, email):
        return next((copy.deepcopy(u) for u in self.users.values() if u["email"] == email), None)

    def get_user_by_firebase_uid(self, uid):
        return next((copy.deepcopy(u) for u in self.users.values() if u.get("firebase_uid") == uid), None)

    def create_user(self, data):
        return self._insert(self.users, {**data, "created_at": _now()})

    # ---- Courses ----
    def get_course(self, course_id):
        return self._get(self.courses, course_id)

    def find_course_by_title(self, title, lecturer_id):
        return next(
            (copy.deepcopy(c) for c in self.courses.values()
             if c["title"] == title and c.get("lecturer_id") == lecturer_id),
            None,
        )

    def create_course(self, data):
        return self._insert(self.courses, {**data, "created_at": _now()})

    def update_course(self, course_id, data):
        return self._update(self.courses, course_id, data)

    def list_courses(self, search=None, lecturer_id=None, credits=None, offset=0, limit=10):
        rows = list(self.courses.values())
        if search:
            s = search.lower()
            lecturer_ids = {
                u["id"] for u in self.users.values()
                if u["role"] == "lecturer" and s in u["email"].lower()
            }
            rows = [
                c for c in rows
                if s in c["title"].lower()
                or s in (c.get("syllabus") or "").lower()
                or c.get("lecturer_id") in lecturer_ids
            ]
        if lecturer_id:
            rows = [c for c in rows if c.get("lecturer_id") == lecturer_id]
        if credits:
            rows = [c for c in rows if c["credits"] == credits]
        rows.sort(key=lambda c: c["created_at"], reverse=True)
        return copy.deepcopy(rows[offset:offset + limit]), len(rows)

    def list_lecturer_courses(self, lecturer_id):
        return [copy.deepcopy(c) for c in self.courses.values() if c.get("lecturer_id") == lecturer_id]

    # ---- Enrollments ----
    def get_enrollment(self, enrollment_id):
        return self._get(self.enrollments, enrollment_id)

    def find_enrollment(self, course_id, student_id):
        return next(
            (copy.deepcopy(e) for e in self.enrollments.values()
             if e["course_id"] == course_id and e["student_id"] == student_id),
            None,
        )

    def create_enrollment(self, data):
        now = _now()
        return self._insert(self.enrollments, {**data, "created_at": now, "updated_at": now})

    def update_enrollment(self, enrollment_id, data):
        return self._update(self.enrollments, enrollment_id, {**data, "updated_at": _now()})

    def list_enrollments(self, status=None, offset=0, limit=20):
        rows = [e for e in self.enrollments.values() if not status or e["status"] == status]
        return copy.deepcopy(rows[offset:offset + limit]), len(rows)

    def list_student_enrollments(self, student_id):
        return [copy.deepcopy(e) for e in self.enrollments.values() if e["student_id"] == student_id]

    def list_enrolled_student_ids(self, course_id):
        return [
            e["student_id"] for e in self.enrollments.values()
            if e["course_id"] == course_id and e["status"] == "enrolled"
        ]

    # ---- Assignments ----
    def get_assignment(self, assignment_id):
        return self._get(self.assignments, assignment_id)

    def list_course_assignments(self, course_id):
        rows = [copy.deepcopy(a) for a in self.assignments.values() if a["course_id"] == course_id]
        return sorted(rows, key=lambda a: a["due_date"])

    def list_assignment_weights(self, course_id, exclude_id=None):
        return [
            a["weight"] for a in self.assignments.values()
            if a["course_id"] == course_id and a["id"] != exclude_id
        ]

    def create_assignment(self, data):
        return self._insert(self.assignments, {**data, "created_at": _now()})

    def update_assignment(self, assignment_id, data):
        return self._update(self.assignments, assignment_id, data)

    def delete_assignment(self, assignment_id):
        for sid in [s["id"] for s in self.submissions.values() if s["assignment_id"] == assignment_id]:
            del self.submissions[sid]
        del self.assignments[assignment_id]

    # ---- Submissions ----
    def get_submission(self, submission_id):
        return self._get(self.submissions, submission_id)

    def find_submission(self, assignment_id, student_id):
        return next(
            (copy.deepcopy(s) for s in self.submissions.values()
             if s["assignment_id"] == assignment_id and s["student_id"] == student_id),
            None,
        )

    def find_submission_by_file(self, file_name):
        return next(
            (copy.deepcopy(s) for s in self.submissions.values()
             if (s.get("file_path") or "").endswith(file_name)),
            None,
        )

    def list_assignment_submissions(self, assignment_id):
        return [copy.deepcopy(s) for s in self.submissions.values() if s["assignment_id"] == assignment_id]

    def list_course_submissions(self, course_id, student_id=None):
        rows = []
        for s in self.submissions.values():
            a = self.assignments[s["assignment_id"]]
            if a["course_id"] != course_id:
                continue
            if student_id and s["student_id"] != student_id:
                continue
            row = copy.deepcopy(s)
            row["assignments"] = {k: a[k] for k in ("id", "title", "type", "weight", "due_date", "course_id")}
            rows.append(row)
        return rows

    def create_empty_submissions(self, assignment_id, student_ids):
        for sid in student_ids:
            if not self.find_submission(assignment_id, sid):
                self._insert(self.submissions, {
                    "assignment_id": assignment_id,
                    "student_id": sid,
                    "status": "not_submitted",
                    "grade": None,
                })

    def upsert_submission(self, data):
        existing = self.find_submission(data["assignment_id"], data["student_id"])
        if existing:
            return self._update(self.submissions, existing["id"], data)
        return self._insert(self.submissions, {"grade": None, **data})

    def update_submission(self, submission_id, data):
        return self._update(self.submissions, submission_id, data)

    def list_graded_submissions(self, course_id, student_id):
        return [
            {"grade": s["grade"], "weight": self.assignments[s["assignment_id"]]["weight"]}
            for s in self.submissions.values()
            if s["student_id"] == student_id
            and s["status"] == "graded"
            and s.get("grade") is not None
            and self.assignments[s["assignment_id"]]["course_id"] == course_id
        ]

    # ---- Course grades ----
    def get_course_grade(self, course_id, student_id):
        return copy.deepcopy(self.course_grades.get((course_id, student_id)))

    def list_course_grades(self, course_id):
        rows = []
        for (cid, sid), g in self.course_grades.items():
            if cid == course_id:
                row = copy.deepcopy(g)
                row["student"] = {"id": sid, "email": self.users[sid]["email"]}
                rows.append(row)
        return sorted(rows, key=lambda g: g["student"]["email"])

    def upsert_course_grade(self, course_id, student_id, final_grade, letter_grade):
        self.upserted_grades += 1
        row = self.course_grades.setdefault(
            (course_id, student_id),
            {"id": str(uuid.uuid4()), "course_id": course_id, "student_id": student_id},
        )
        row.update({"final_grade": final_grade, "letter_grade": letter_grade, "updated_at": _now()})
        return copy.deepcopy(row)


@pytest.fixture
def auth():
    """Bearer header for a user created through the fixtures."""
    def _auth(user):
        return {"Authorization": f"Bearer mock-{user['email']}"}
    return _auth


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def client(repo, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "AUTH_MODE", "mock")
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    app.dependency_overrides[get_repository] = lambda: repo
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(repo):
    def _make(role, email=None):
        email = email or f"{role}-{uuid.uuid4().hex[:8]}@campus.edu"
        return repo.create_user({"email": email, "role": role, "password_hash": None})
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", "admin@campus.edu")


@pytest.fixture
def lecturer(make_user):
    return make_user("lecturer", "lecturer@campus.edu")


@pytest.fixture
def student(make_user):
    return make_user("student", "student@campus.edu")


@pytest.fixture
def course(repo, lecturer):
    return repo.create_course({"title": "Algorithms", "credits": 4, "syllabus": "Graphs and sorting",
                               "lecturer_id": lecturer["id"]})


@pytest.fixture
def enroll(repo):
    def _enroll(course, student, status="enrolled"):
        return repo.create_enrollment({"course_id": course["id"], "student_id": student["id"], "status": status})
    return _enroll


@pytest.fixture
def make_assignment(repo):
    def _make(course, weight, type="both", due_in_days=7, title=None):
        due = datetime.now(timezone.utc) + timedelta(days=due_in_days)
        return repo.create_assignment({
            "course_id": course["id"],
            "title": title or f"Assignment w{weight}",
            "description": None,
            "type": type,
            "weight": weight,
            "due_date": due.isoformat(),
            "created_by_id": course["lecturer_id"],
        })
    return _make
