# =============================================================================
# Unit Tests — Authorization
# =============================================================================
#
# Tests auth components without a database or a running API. DB sessions
# are AsyncMocks; ApiKey rows are lightweight dataclass fakes.
#
# Test groups:
#   1. Key generation & hashing (pure functions)
#   2. Auth dependency (get_current_api_key)
#   3. Scope checking and ownership
#   4. Request/response model validation
# =============================================================================

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from app.api.deps import check_scope, get_current_api_key
from app.services.auth import (
    KEY_PREFIX,
    generate_api_key,
    hash_api_key,
    owner_id_of,
    rejection_reason,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# 1. Key Generation & Hashing
# ---------------------------------------------------------------------------


class TestKeyGeneration:

    def test_key_format_has_prefix(self):
        raw_key, _, _ = generate_api_key()
        assert raw_key.startswith(KEY_PREFIX)

    def test_key_length(self):
        raw_key, _, _ = generate_api_key()
        assert len(raw_key) == len(KEY_PREFIX) + 64

    def test_prefix_is_first_8_chars(self):
        raw_key, prefix, _ = generate_api_key()
        assert prefix == raw_key[:8]

    def test_hash_is_64_hex(self):
        _, _, key_hash = generate_api_key()
        assert len(key_hash) == 64
        int(key_hash, 16)

    def test_keys_are_unique(self):
        raw1, _, hash1 = generate_api_key()
        raw2, _, hash2 = generate_api_key()
        assert raw1 != raw2
        assert hash1 != hash2

    def test_hash_is_deterministic(self):
        assert hash_api_key("mdna-abc123") == hash_api_key("mdna-abc123")

    def test_stored_hash_matches_raw_key(self):
        raw_key, _, key_hash = generate_api_key()
        assert hash_api_key(raw_key) == key_hash


# ---------------------------------------------------------------------------
# Helpers — lightweight fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeApiKey:
    """Stand-in for the ApiKey ORM model."""

    id: int = 1
    name: str = "test-key"
    key_prefix: str = "mdna-tes"
    key_hash: str = ""
    scopes: list[str] | None = None
    is_active: bool = True
    expires_at: datetime | None = None
    last_used_at: datetime | None = None


@dataclass
class FakeCredentials:
    credentials: str = "mdna-testkey"


def _session_returning(api_key):
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = api_key
    session.execute.return_value = result
    return session


# ---------------------------------------------------------------------------
# 2. Auth Dependency (get_current_api_key)
# ---------------------------------------------------------------------------


class TestGetCurrentApiKey:

    def test_auth_disabled_returns_none(self):
        with patch("app.api.deps.settings") as mock_settings:
            mock_settings.auth_enabled = False
            result = _run(get_current_api_key(credentials=None, session=AsyncMock()))
        assert result is None

    def test_missing_credentials_raises_401(self):
        with patch("app.api.deps.settings") as mock_settings:
            mock_settings.auth_enabled = True
            with pytest.raises(HTTPException) as exc_info:
                _run(get_current_api_key(credentials=None, session=AsyncMock()))
        assert exc_info.value.status_code == 401

    def test_unknown_key_raises_401(self):
        with patch("app.api.deps.settings") as mock_settings:
            mock_settings.auth_enabled = True
            with pytest.raises(HTTPException) as exc_info:
                _run(get_current_api_key(
                    credentials=FakeCredentials(),
                    session=_session_returning(None),
                ))
        assert exc_info.value.status_code == 401

    def test_inactive_key_raises_403(self):
        with patch("app.api.deps.settings") as mock_settings:
            mock_settings.auth_enabled = True
            with pytest.raises(HTTPException) as exc_info:
                _run(get_current_api_key(
                    credentials=FakeCredentials(),
                    session=_session_returning(FakeApiKey(is_active=False)),
                ))
        assert exc_info.value.status_code == 403
        assert "deactivated" in exc_info.value.detail

    def test_expired_key_raises_403(self):
        expired = FakeApiKey(expires_at=datetime.now(UTC) - timedelta(hours=1))
        with patch("app.api.deps.settings") as mock_settings:
            mock_settings.auth_enabled = True
            with pytest.raises(HTTPException) as exc_info:
                _run(get_current_api_key(
                    credentials=FakeCredentials(),
                    session=_session_returning(expired),
                ))
        assert exc_info.value.status_code == 403
        assert "expired" in exc_info.value.detail

    def test_valid_key_returns_api_key(self):
        fake_key = FakeApiKey()
        with patch("app.api.deps.settings") as mock_settings:
            mock_settings.auth_enabled = True
            result = _run(get_current_api_key(
                credentials=FakeCredentials(),
                session=_session_returning(fake_key),
            ))
        assert result is fake_key
        assert fake_key.last_used_at is not None


class TestRejectionReason:

    def test_future_expiry_is_accepted(self):
        key = FakeApiKey(expires_at=datetime.now(UTC) + timedelta(days=1))
        assert rejection_reason(key) is None

    def test_explicit_now(self):
        expiry = datetime(2025, 1, 1, tzinfo=UTC)
        key = FakeApiKey(expires_at=expiry)
        assert rejection_reason(key, now=expiry - timedelta(seconds=1)) is None
        assert rejection_reason(key, now=expiry + timedelta(seconds=1)) is not None


# ---------------------------------------------------------------------------
# 3. Scope Checking and Ownership
# ---------------------------------------------------------------------------


class TestCheckScope:

    def test_none_api_key_passes(self):
        check_scope(None, "admin")

    def test_null_scopes_means_full_access(self):
        check_scope(FakeApiKey(scopes=None), "admin")

    def test_empty_scopes_means_full_access(self):
        check_scope(FakeApiKey(scopes=[]), "admin")

    def test_matching_scope_passes(self):
        check_scope(FakeApiKey(scopes=["datasets", "kpis"]), "kpis")

    def test_missing_scope_raises_403(self):
        with pytest.raises(HTTPException) as exc_info:
            check_scope(FakeApiKey(scopes=["reports"]), "admin")
        assert exc_info.value.status_code == 403
        assert "admin" in exc_info.value.detail


class TestOwnerId:

    def test_anonymous_owner_is_none(self):
        assert owner_id_of(None) is None

    def test_owner_is_key_id(self):
        assert owner_id_of(FakeApiKey(id=42)) == 42


# ---------------------------------------------------------------------------
# 4. Request/Response Model Validation
# ---------------------------------------------------------------------------


class TestRequestModels:

    def test_create_key_requires_name(self):
        from pydantic import ValidationError

        from app.models.requests import CreateApiKeyRequest

        with pytest.raises(ValidationError):
            CreateApiKeyRequest()

    def test_create_key_defaults_to_all_scopes(self):
        from app.models.requests import CreateApiKeyRequest

        req = CreateApiKeyRequest(name="dashboard")
        assert req.scopes == []
        assert req.expires_at is None

    def test_update_key_all_optional(self):
        from app.models.requests import UpdateApiKeyRequest

        req = UpdateApiKeyRequest()
        assert req.name is None
        assert req.is_active is None


class TestResponseModels:

    def test_api_key_response_excludes_hash(self):
        from app.models.responses import ApiKeyResponse

        schema = ApiKeyResponse.model_json_schema()
        assert "key_hash" not in schema.get("properties", {})

    def test_api_key_created_response_includes_raw_key(self):
        from app.models.responses import ApiKeyCreatedResponse

        schema = ApiKeyCreatedResponse.model_json_schema()
        assert "raw_key" in schema.get("properties", {})
