"""
Upload storage for submission files and course syllabi.

Files land under settings.UPLOAD_DIR/<kind>/ with a generated unique name.
Only metadata (path, original name, size, mime type) is stored in the database.
"""

import logging
import os
import secrets
import time

from fastapi import UploadFile

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SUBMISSION_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".pdf", ".doc", ".docx", ".txt", ".zip", ".rar"}

CHUNK_SIZE = 64 * 1024

SYLLABUS_MIME_TYPES = {
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/msword": ".doc",
}


def upload_dir(kind: str) -> str:
    path = os.path.join(settings.UPLOAD_DIR, kind)
    os.makedirs(path, exist_ok=True)
    return path


def generate_file_name(prefix: str, original_name: str) -> str:
    ext = os.path.splitext(original_name or "")[1].lower()
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"


async def _store(file: UploadFile, kind: str, prefix: str, max_size: int) -> dict:
    file_name = generate_file_name(prefix, file.filename)
    path = os.path.join(upload_dir(kind), file_name)

    size = 0
    try:
        with open(path, "wb") as fh:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_size:
                    raise ValidationError(
                        f"File size too large. Maximum size is {max_size // (1024 * 1024)}MB"
                    )
                fh.write(chunk)
    except Exception:
        os.remove(path)
        raise

    logger.info("Stored upload %s (%d bytes) as %s", file.filename, size, path)
    return {
        "file_path": path,
        "file_name": file.filename,
        "file_size": size,
        "mime_type": file.content_type,
    }


async def save_submission_file(file: UploadFile) -> dict:
    ext = os.path.splitext(file.filename or "")[1].lower()
    if ext not in SUBMISSION_EXTENSIONS:
        raise ValidationError(
            "Invalid file type. Allowed: " + ", ".join(sorted(e.lstrip(".") for e in SUBMISSION_EXTENSIONS))
        )
    return await _store(file, "assignments", "file", settings.MAX_SUBMISSION_SIZE)


async def save_syllabus_file(file: UploadFile) -> dict:
    if file.content_type not in SYLLABUS_MIME_TYPES:
        raise ValidationError("Invalid file type. Only PDF, DOC, and DOCX files are allowed.")
    return await _store(file, "syllabus", "syllabus", settings.MAX_SYLLABUS_SIZE)


def resolve_stored_file(kind: str, file_name: str) -> str:
    """Absolute path of a stored upload; rejects anything outside the upload directory."""
    if os.path.basename(file_name) != file_name or file_name in ("", ".", ".."):
        raise ValidationError("Invalid file name")
    path = os.path.join(upload_dir(kind), file_name)
    if not os.path.isfile(path):
        raise NotFoundError("File not found")
    return path


def delete_stored_file(path: str | None) -> bool:
    if not path or not os.path.exists(path):
        return False
    try:
        os.remove(path)
        return True
    except OSError as e:
        logger.error("Error deleting file %s: %s", path, e)
        return False
