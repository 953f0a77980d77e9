# =============================================================================
# Auth Service — API Key Generation, Hashing, Validation
# =============================================================================
#
# Pure functions for API key management. No FastAPI dependency: used by the
# auth dependency, the admin endpoints, and tests.
#
# Keys look like "mdna-<64 hex chars>". Only the SHA-256 digest is stored;
# the first 8 characters are kept in clear as a prefix for logs and the
# admin listing.
#
# OWNERSHIP: the id of the key that authenticated a request is the owner
# id stamped on every row it creates (see db/models.py).
# =============================================================================

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.db.models import ApiKey

KEY_PREFIX = "mdna-"

# Scopes checked by the routers; an empty scope list grants all of them
SCOPES = ("datasets", "kpis", "statements", "embeddings", "reports", "admin")


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new API key.

    Returns:
        (raw_key, key_prefix, key_hash):
        - raw_key: Full key to return to the caller (only visible once)
        - key_prefix: First 8 chars for identification in logs/admin
        - key_hash: SHA-256 hex digest for storage in the database
    """
    raw_key = f"{KEY_PREFIX}{secrets.token_hex(32)}"
    return raw_key, raw_key[:8], hash_api_key(raw_key)


def hash_api_key(raw_key: str) -> str:
    """Hash an API key using SHA-256. Returns 64-char hex digest."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def rejection_reason(api_key: ApiKey, now: datetime | None = None) -> str | None:
    """
    Why a stored key may not be used right now, or None if it may.

    Checked after the hash lookup succeeded.
    """
    if not api_key.is_active:
        return "API key has been deactivated."
    now = now or datetime.now(UTC)
    if api_key.expires_at and api_key.expires_at < now:
        return "API key has expired."
    return None


def has_scope(api_key: ApiKey | None, scope: str) -> bool:
    """Anonymous access (auth disabled) and empty scope lists grant everything."""
    if api_key is None or not api_key.scopes:
        return True
    return scope in api_key.scopes


def owner_id_of(api_key: ApiKey | None) -> int | None:
    return api_key.id if api_key is not None else None
