"""Bearer-token dependency for the room endpoints.

The token is the caller's delegated calendar access token; it is
forwarded to the calendar service unchanged and never logged.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> str:
    """FastAPI dependency: return the bearer token or reject with 401."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing calendar access token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials
