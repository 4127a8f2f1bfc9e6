"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from questlog.auth.jwt import verify_token
from questlog.dependencies import get_store
from questlog.storage.base import ProgressionStore, UserRecord

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    store: ProgressionStore = Depends(get_store),
) -> UserRecord:
    """Extract and verify the bearer JWT, return the user it names.

    Raises 401 on any failure.
    """
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Could not validate credentials") from e

    user = await store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    return user
