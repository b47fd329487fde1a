from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    LECTURER = "lecturer"
    STUDENT = "student"


class EnrollmentStatus(str, Enum):
    PENDING = "pending"
    ENROLLED = "enrolled"
    REJECTED = "rejected"
    DROPPED = "dropped"
    COMPLETED = "completed"


class AssignmentType(str, Enum):
    FILE_UPLOAD = "file_upload"
    TEXT_SUBMISSION = "text_submission"
    BOTH = "both"


class SubmissionStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    SUBMITTED = "submitted"
    LATE_SUBMISSION = "late_submission"
    GRADED = "graded"
