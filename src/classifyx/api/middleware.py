"""API key check for the classification routes.

The key may be sent as ``Authorization: Bearer <key>`` or as ``X-API-Key``.
Routes mounted on ``public_router`` (health) skip the check so liveness
checks need no credentials.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from classifyx.config import Settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)
_header_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


def _matches(candidate: str | None, expected: str) -> bool:
    return candidate is not None and secrets.compare_digest(candidate.encode(), expected.encode())


async def require_api_key(
    request: Request,
    bearer: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    header_key: Annotated[str | None, Depends(_header_scheme)],
) -> None:
    """Reject the request unless it carries CLASSIFYX_API_KEY. No-op when the key is unset."""
    settings: Settings = request.app.state.settings
    if settings.api_key is None:
        return

    bearer_key = bearer.credentials if bearer is not None else None
    if _matches(bearer_key, settings.api_key) or _matches(header_key, settings.api_key):
        return

    client = request.client.host if request.client else "unknown"
    logger.warning("Rejected %s %s from %s: bad or missing API key", request.method, request.url.path, client)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
        headers={"WWW-Authenticate": "Bearer"},
    )
