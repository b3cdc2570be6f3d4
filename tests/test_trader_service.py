"""Tests for credential verification and what gets persisted from it."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from leaderboard_sync.core.exceptions import (
    AuthenticationError,
    ConnectionTypeNotSupportedError,
    CredentialsInvalidError,
    UpstreamUnavailable,
)
from leaderboard_sync.services.connectors.base_connector import AuthContext
from leaderboard_sync.services.trader_service import (
    _connector_for,
    _credentials_to_store,
    verify_credentials,
)

AUTH = AuthContext(
    token="tok", user_id="42", name="bob", expires_at=datetime(2026, 10, 19, tzinfo=timezone.utc)
)


def _connector(**kwargs):
    connector = AsyncMock()
    connector.authenticate = AsyncMock(**kwargs)
    return connector


class TestVerifyCredentials:
    @pytest.mark.asyncio
    async def test_valid(self):
        connector = _connector(return_value=AUTH)
        auth = await verify_credentials(
            "tradovate", {"username": "bob", "password": "pw"}, connector=connector
        )
        assert auth is AUTH

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        AuthenticationError("rejected", detail="Incorrect password"),
        UpstreamUnavailable("down"),
    ])
    async def test_any_connector_error_is_invalid_credentials(self, error):
        connector = _connector(side_effect=error)
        with pytest.raises(CredentialsInvalidError) as exc:
            await verify_credentials("tradesyncer", {"api_key": "k"}, connector=connector)
        assert exc.value.status_code == 401
        assert "Incorrect password" not in exc.value.detail

    @pytest.mark.asyncio
    async def test_missing_fields_skip_upstream(self):
        connector = _connector(return_value=AUTH)
        with pytest.raises(CredentialsInvalidError):
            await verify_credentials("tradovate", {"username": "bob"}, connector=connector)
        connector.authenticate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsupported_type(self):
        with pytest.raises(ConnectionTypeNotSupportedError) as exc:
            await verify_credentials("ninjatrader", {})
        assert exc.value.status_code == 400


class TestStoredCredentials:
    """What registration keeps for later syncs."""

    def test_tradovate_keeps_password_for_later_logins(self):
        stored = _credentials_to_store(
            "tradovate",
            {"username": "bob", "password": "pw", "client_id": "c", "secret_key": "", "note": "x"},
        )
        assert stored == {"username": "bob", "password": "pw", "client_id": "c"}

    def test_tradesyncer_keeps_only_api_key(self):
        stored = _credentials_to_store("tradesyncer", {"api_key": "k", "extra": "x"})
        assert stored == {"api_key": "k"}

    def test_credential_checks_bypass_cached_sessions(self):
        assert _connector_for("tradovate").session_store is None
