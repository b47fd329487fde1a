"""
Security module — Firebase JWT verification + Mock auth + Role guard.

Auth Flow:
1. User logs in (mock mode: /api/auth/login; firebase mode: Firebase SDK)
2. Frontend sends the token as a Bearer header
3. Mock mode resolves "mock-{email}" tokens; firebase mode verifies the JWT
   with the Firebase Admin SDK
4. Backend fetches the user profile through the repository
5. Backend injects: user_id, email, role

Unknown users are rejected.
"""

import logging
import os

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.repository import Repository, get_repository

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()

MOCK_TOKEN_PREFIX = "mock-"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def issue_mock_token(email: str) -> str:
    return f"{MOCK_TOKEN_PREFIX}{email}"


def to_principal(user_data: dict) -> dict:
    return {
        "user_id": user_data["id"],
        "uid": user_data.get("firebase_uid") or user_data["id"],
        "email": user_data["email"],
        "role": user_data["role"],
    }


# ---------------------------------------------------------------------------
# Firebase initialization (lazy)
# ---------------------------------------------------------------------------
_firebase_app = None


def _init_firebase():
    global _firebase_app
    if _firebase_app is not None:
        return
    import firebase_admin
    from firebase_admin import credentials as fb_credentials

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if os.path.exists(cred_path):
        cred = fb_credentials.Certificate(cred_path)
        _firebase_app = firebase_admin.initialize_app(cred)
    else:
        # Try default credentials
        _firebase_app = firebase_admin.initialize_app()


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
    repo: Repository = Depends(get_repository),
) -> dict:
    """Validate the Bearer token and return the caller as a principal dict."""
    token = credentials.credentials

    if settings.AUTH_MODE == "mock":
        return _mock_auth(token, repo)

    return _firebase_auth(token, repo)


def _mock_auth(token: str, repo: Repository) -> dict:
    if token.startswith(MOCK_TOKEN_PREFIX):
        user_data = repo.get_user_by_email(token[len(MOCK_TOKEN_PREFIX):])
        if user_data:
            return to_principal(user_data)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token",
    )


def _firebase_auth(token: str, repo: Repository) -> dict:
    _init_firebase()
    from firebase_admin import auth as fb_auth

    try:
        decoded = fb_auth.verify_id_token(token)
    except Exception:
        logger.warning("Rejected Firebase token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    user_data = repo.get_user_by_firebase_uid(decoded["uid"])
    if not user_data:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No account is registered for this Firebase user.",
        )
    return to_principal(user_data)


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/admin-only")
        async def endpoint(user=Depends(require_role(["admin"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker
