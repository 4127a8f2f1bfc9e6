"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from questlog.auth.dependencies import get_current_user
from questlog.auth.jwt import create_access_token
from questlog.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from questlog.auth.service import (
    AccountLockedError,
    InvalidCredentialsError,
    authenticate_user,
    register_user,
)
from questlog.config import get_settings
from questlog.dependencies import get_redis_dep, get_store
from questlog.storage.base import ProgressionStore, UserRecord

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _token_response(user: UserRecord) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.username),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    store: ProgressionStore = Depends(get_store),
) -> TokenResponse:
    """Create an account and return an access token."""
    user = await register_user(store, username=body.username, email=body.email, password=body.password)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    store: ProgressionStore = Depends(get_store),
    redis: Any = Depends(get_redis_dep),
) -> TokenResponse:
    """Login with username or email plus password."""
    try:
        user = await authenticate_user(store, redis, body.username, body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except AccountLockedError as e:
        raise HTTPException(status_code=429, detail=str(e)) from e
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def me(user: UserRecord = Depends(get_current_user)) -> UserResponse:
    """Profile of the authenticated user."""
    return UserResponse.model_validate(user)
