"""
Enrollments router — Admin approval / rejection of enrollment requests.
"""

import logging

from fastapi import APIRouter, Depends

from app.core.enums import EnrollmentStatus, Role
from app.core.exceptions import NotFoundError, ValidationError
from app.core.repository import Repository, get_repository
from app.core.security import require_role
from app.schemas.courses import EnrollmentStatusUpdate
from app.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/enrollments", tags=["Enrollments"])


@router.put("/{enrollment_id}/status")
async def update_enrollment_status(
    enrollment_id: str,
    body: EnrollmentStatusUpdate,
    user: dict = Depends(require_role([Role.ADMIN.value])),
    repo: Repository = Depends(get_repository),
):
    enrollment = repo.get_enrollment(enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment not found")

    if enrollment["status"] != EnrollmentStatus.PENDING:
        raise ValidationError("Can only approve or reject pending enrollment requests")

    updated = repo.update_enrollment(enrollment_id, {"status": body.status.value})
    logger.info("Enrollment %s: pending -> %s", enrollment_id, body.status.value)
    return success_response(data=updated, message=f"Enrollment {body.status.value}")


@router.get("/{enrollment_id}")
async def get_enrollment(
    enrollment_id: str,
    user: dict = Depends(require_role([Role.ADMIN.value])),
    repo: Repository = Depends(get_repository),
):
    enrollment = repo.get_enrollment(enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    return success_response(data=enrollment)
