"""API key authentication — validates Authorization: Bearer <key> header.

Two keys:
- API_KEY: the proxy/host integration (gate routes, metrics, full health)
- ADMIN_API_KEY: operator actions (status, schedule, end, sync)

Both are compared with secrets.compare_digest() (timing-safe). The admin
key is accepted wherever the API key is.
"""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

bearer_scheme = HTTPBearer(auto_error=False)


def _matches(token: str, expected: str) -> bool:
    return secrets.compare_digest(token.encode(), expected.encode())


async def require_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str:
    """Validate the request carries a valid API key (or the admin key).

    Returns:
        The validated API key string.

    Raises:
        HTTPException 401: If no credentials or invalid key.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
        )

    settings = request.app.state.settings
    token = credentials.credentials
    if _matches(token, settings.api_key) or _matches(token, settings.admin_api_key):
        return token

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key",
    )


async def require_admin_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str:
    """Validate the request carries the admin API key.

    Returns:
        The validated admin key string.

    Raises:
        HTTPException 401: If no credentials provided.
        HTTPException 403: If key is not the admin key.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
        )

    settings = request.app.state.settings
    if not _matches(credentials.credentials, settings.admin_api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    return credentials.credentials


async def optional_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str | None:
    """Optionally validate an API key. Returns None if no credentials provided.

    Used by /health, which returns minimal info without auth.

    Raises:
        HTTPException 401: If credentials are present but invalid.
    """
    if credentials is None:
        return None
    return await require_api_key(request, credentials)
