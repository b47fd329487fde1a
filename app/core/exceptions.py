"""
Domain errors raised by routers and core modules.

Each error is an HTTPException so FastAPI renders it with the right status code
without a dedicated handler. None of them are raised after state is mutated.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class LMSError(HTTPException):
    """Base class for all LMS errors."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message
        self.details = details or {}


class ValidationError(LMSError):
    """Weight budget exceeded, grade out of range, bad upload or illegal transition."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(LMSError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(LMSError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(LMSError):
    status_code = status.HTTP_409_CONFLICT
