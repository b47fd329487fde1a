"""
Auth router — Register, Login, User Profile.

Rules:
- Mock mode: login verifies the bcrypt password and returns a mock-{email} token
- Firebase mode: the client signs in with the Firebase SDK and sends the JWT
- Unknown emails are rejected
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.config import settings
from app.core.exceptions import ConflictError
from app.core.repository import Repository, get_repository
from app.core.security import get_current_user, get_password_hash, verify_password, issue_mock_token
from app.schemas.auth import UserRegister, UserLogin
from app.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _public_user(user_data: dict) -> dict:
    return {
        "id": user_data["id"],
        "email": user_data["email"],
        "role": user_data["role"],
        "created_at": user_data.get("created_at"),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: UserRegister, repo: Repository = Depends(get_repository)):
    if repo.get_user_by_email(body.email):
        raise ConflictError("User with this email already exists")

    user_data = repo.create_user({
        "email": body.email,
        "password_hash": get_password_hash(body.password),
        "role": body.role.value,
    })
    logger.info("Registered %s as %s", body.email, body.role.value)

    return success_response(
        data={"user": _public_user(user_data), "token": issue_mock_token(body.email)},
        message="Registration successful",
    )


@router.post("/login")
async def login(body: UserLogin, repo: Repository = Depends(get_repository)):
    """
    Mock mode: check the password and return a mock token.
    Firebase mode: client uses Firebase SDK, then calls /api/auth/me with JWT.
    """
    if settings.AUTH_MODE != "mock":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Use Firebase SDK for login, then call /api/auth/me with JWT.",
        )

    user_data = repo.get_user_by_email(body.email)
    if not user_data or not verify_password(body.password, user_data.get("password_hash") or ""):
        logger.warning("Failed login for %s", body.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return success_response(
        data={"token": issue_mock_token(user_data["email"]), "user": _public_user(user_data)},
        message="Login successful",
    )


@router.get("/me")
async def me(user: dict = Depends(get_current_user)):
    return success_response(data=user)
