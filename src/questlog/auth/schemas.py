"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from questlog.schemas import CamelModel


class RegisterRequest(CamelModel):
    """Registration with username, email and password."""

    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(CamelModel):
    """Login with username or email plus password."""

    username: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("username")
    @classmethod
    def strip_login(cls, v: str) -> str:
        return v.strip()


class UserResponse(CamelModel):
    """Current user profile."""

    id: int
    username: str
    email: str
    level: int
    experience: int
    streak_days: int
    last_login: datetime | None = None
    created_at: datetime | None = None


class TokenResponse(CamelModel):
    """Token response returned after successful auth."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
