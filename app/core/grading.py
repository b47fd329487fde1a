"""
Weighted grade aggregation.

Usage:
    from app.core.grading import check_weight_budget, recompute_course_grade

    @router.post("")
    async def create_assignment(..., repo: Repository = Depends(get_repository)):
        check_weight_budget(repo.list_assignment_weights(course_id), body.weight)
        ...

    recompute_course_grade(repo, course_id, student_id)

An assignment's weight is the percentage (0-100) of the final course grade it
contributes. The weights of one course never sum past 100.

The final grade is renormalized over graded work only:

    final = sum(grade_i * weight_i / 100) / sum(weight_i / 100)

so a student's grade is always relative to what has been graded so far.
"""

import logging
from typing import Iterable, Optional

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

MAX_TOTAL_WEIGHT = 100
MIN_GRADE = 0
MAX_GRADE = 100

LETTER_THRESHOLDS = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)


def validate_weight(weight) -> int:
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise ValidationError("Assignment weight must be an integer between 0 and 100")
    if weight < 0 or weight > MAX_TOTAL_WEIGHT:
        raise ValidationError("Assignment weight must be between 0 and 100")
    return weight


def validate_grade(grade) -> float:
    if isinstance(grade, bool) or not isinstance(grade, (int, float)):
        raise ValidationError("Grade must be a number between 0 and 100")
    if grade < MIN_GRADE or grade > MAX_GRADE:
        raise ValidationError("Grade must be between 0 and 100")
    return float(grade)


def check_weight_budget(existing_weights: Iterable[int], candidate: int) -> int:
    """
    Reject a new or updated weight that would push the course past 100%.

    ``existing_weights`` must already exclude the assignment being updated.
    Returns the new total. Raises ValidationError naming the current total.
    """
    validate_weight(candidate)
    current_total = sum(existing_weights)
    if current_total + candidate > MAX_TOTAL_WEIGHT:
        logger.warning(
            "Weight budget exceeded: current %s%% + candidate %s%%", current_total, candidate
        )
        raise ValidationError(
            f"Total assignment weight would exceed 100%. Current total: {current_total}%",
            details={"current_total": current_total, "requested": candidate},
        )
    return current_total + candidate


def letter_grade(score: float) -> str:
    for threshold, letter in LETTER_THRESHOLDS:
        if score >= threshold:
            return letter
    return "F"


def compute_final_grade(graded: Iterable[tuple[float, int]]) -> Optional[float]:
    """
    Weighted average over ``(grade, weight)`` pairs of graded submissions.

    Returns None when nothing has been graded. Graded work whose weights are
    all zero yields 0.0.
    """
    total_weighted = 0.0
    total_weight = 0.0
    count = 0
    for grade, weight in graded:
        w = weight / 100
        total_weighted += grade * w
        total_weight += w
        count += 1

    if count == 0:
        return None
    return total_weighted / total_weight if total_weight > 0 else 0.0


def recompute_course_grade(repo, course_id: str, student_id: str) -> Optional[dict]:
    """
    Recompute and upsert the CourseGrade of one student in one course.

    Silent no-op when the student has no graded submissions: an existing
    CourseGrade row is left untouched.
    """
    rows = repo.list_graded_submissions(course_id, student_id)
    final_grade = compute_final_grade((row["grade"], row["weight"]) for row in rows)
    if final_grade is None:
        return None

    letter = letter_grade(final_grade)
    logger.info(
        "Course grade for student %s in course %s: %.2f (%s)",
        student_id, course_id, final_grade, letter,
    )
    return repo.upsert_course_grade(course_id, student_id, final_grade, letter)
