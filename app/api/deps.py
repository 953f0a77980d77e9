# =============================================================================
# Auth Dependencies — FastAPI Dependency Injection for Authentication
# =============================================================================
#
# get_current_api_key() — extract & validate the Bearer token
# check_scope()         — verify endpoint-level permission
#
# When auth_enabled=False every request is anonymous: the key is None and
# the owner id (services/auth.owner_id_of) is None, so all callers share
# one data space.
#
# HTTPBearer(auto_error=False) so that a missing header is not an error
# while auth is disabled; the dependency decides.
# =============================================================================

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.engine import get_async_session
from app.db.models import ApiKey
from app.services.auth import has_scope, hash_api_key, rejection_reason

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs ("Authorize" button in Swagger UI)
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(
        _bearer_scheme,
    ),
    session: AsyncSession = Depends(get_async_session),
) -> ApiKey | None:
    """
    Validate the caller's API key.

    Raises:
        HTTPException 401: Missing or unknown API key
        HTTPException 403: Key is inactive or expired
    """
    if not settings.auth_enabled:
        return None

    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Provide "
            "'Authorization: Bearer <key>' header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    stmt = select(ApiKey).where(
        ApiKey.key_hash == hash_api_key(credentials.credentials),
    )
    api_key = (await session.execute(stmt)).scalar_one_or_none()

    if api_key is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    reason = rejection_reason(api_key)
    if reason is not None:
        logger.info("Rejected API key prefix=%s: %s", api_key.key_prefix, reason)
        raise HTTPException(status_code=403, detail=reason)

    api_key.last_used_at = datetime.now(UTC)
    return api_key


def check_scope(api_key: ApiKey | None, required_scope: str) -> None:
    """Raise 403 unless the key grants `required_scope`."""
    if not has_scope(api_key, required_scope):
        raise HTTPException(
            status_code=403,
            detail=f"API key does not have '{required_scope}' scope.",
        )

