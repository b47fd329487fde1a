"""
Pydantic schemas for authentication and user management.
"""

from pydantic import BaseModel, EmailStr, Field

from app.core.enums import Role


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = Role.STUDENT


class UserLogin(BaseModel):
    email: EmailStr
    password: str
