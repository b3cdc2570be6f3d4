"""Tests for the TradeSyncer connector against a mocked upstream."""

from datetime import datetime, timezone

import pytest

from fakes import UpstreamRouter
from leaderboard_sync.core.exceptions import AuthenticationError, UpstreamUnavailable
from leaderboard_sync.services.connectors.base_connector import AuthContext
from leaderboard_sync.services.connectors.tradesyncer_connector import TradeSyncerConnector

BASE = "https://tradesyncer.test/api"

TRADE_ROWS = [
    {"id": "t1", "symbol": "NQZ6", "side": "long", "quantity": 2, "entryPrice": 18000,
     "exitPrice": 18010, "profit": 400, "openTime": "2026-10-01T14:00:00Z",
     "closeTime": "2026-10-01T14:30:00Z"},
    {"tradeId": "t2", "instrument": "ESZ6", "direction": "SHORT", "lots": -1,
     "pnl": "-125.5", "exitTime": 1790000000000},
    {"id": "t3", "profit": "not-a-number"},
]


def _connector(router) -> TradeSyncerConnector:
    return TradeSyncerConnector(base_url=BASE, http_client=router.client())


def _auth() -> AuthContext:
    return AuthContext(token="ts-key", user_id="u-9", name="carol")


class TestAuthentication:
    """API key validation."""

    @pytest.mark.asyncio
    async def test_valid_key(self):
        router = UpstreamRouter({("GET", "/api/user/me"): (200, {"id": 9, "username": "carol"})})
        auth = await _connector(router).authenticate({"api_key": "ts-key"})
        assert auth.user_id == "9"
        assert auth.name == "carol"
        assert router.requests[0].headers["Authorization"] == "Bearer ts-key"

    @pytest.mark.asyncio
    async def test_invalid_key(self):
        router = UpstreamRouter({("GET", "/api/user/me"): (401, {"message": "Invalid API key"})})
        with pytest.raises(AuthenticationError) as exc:
            await _connector(router).authenticate({"api_key": "nope"})
        assert exc.value.status_code == 401
        assert exc.value.detail == "Invalid API key"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        router = UpstreamRouter()
        with pytest.raises(AuthenticationError):
            await _connector(router).authenticate({})
        assert router.requests == []

    @pytest.mark.asyncio
    async def test_upstream_down(self):
        router = UpstreamRouter({("GET", "/api/user/me"): (502, {})})
        with pytest.raises(UpstreamUnavailable):
            await _connector(router).authenticate({"api_key": "ts-key"})


class TestTrades:
    """Trade listing and normalization."""

    @pytest.mark.asyncio
    async def test_list_shape(self):
        router = UpstreamRouter({("GET", "/api/trades"): (200, TRADE_ROWS)})
        trades = await _connector(router).list_trades(_auth(), "acc-1")

        assert [t.external_trade_id for t in trades] == ["t1", "t2", "t3"]
        first, second, third = trades
        assert first.side == "buy"
        assert first.quantity == 2
        assert first.profit == 400.0
        assert first.closed_at == datetime(2026, 10, 1, 14, 30, tzinfo=timezone.utc)
        assert second.symbol == "ESZ6"
        assert second.side == "sell"
        assert second.quantity == 1
        assert second.profit == -125.5
        assert second.closed_at == datetime.fromtimestamp(1790000000, tz=timezone.utc)
        assert third.profit == 0.0
        assert third.symbol == "UNKNOWN"
        assert router.requests[0].url.params["accountId"] == "acc-1"

    @pytest.mark.asyncio
    async def test_rows_without_id_are_skipped(self):
        rows = [{"symbol": "ESZ6", "profit": 10}, {"tradeId": 0, "profit": 5}, {"id": "", "profit": 1}]
        router = UpstreamRouter({("GET", "/api/trades"): (200, rows)})
        trades = await _connector(router).list_trades(_auth(), "acc-1")
        assert [t.external_trade_id for t in trades] == ["0"]

    @pytest.mark.asyncio
    async def test_wrapped_shape(self):
        router = UpstreamRouter({("GET", "/api/trades"): (200, {"trades": TRADE_ROWS[:1]})})
        trades = await _connector(router).list_trades(_auth(), "acc-1")
        assert len(trades) == 1

    @pytest.mark.asyncio
    async def test_date_window_is_forwarded(self):
        router = UpstreamRouter({("GET", "/api/trades"): (200, [])})
        start = datetime(2026, 9, 1, tzinfo=timezone.utc)
        await _connector(router).list_trades(_auth(), "acc-1", from_date=start, limit=50)
        params = router.requests[0].url.params
        assert params["startDate"] == start.isoformat()
        assert params["limit"] == "50"

    @pytest.mark.asyncio
    async def test_account_failure_yields_empty_list(self):
        router = UpstreamRouter({("GET", "/api/trades"): (500, {"message": "stack trace here"})})
        assert await _connector(router).list_trades(_auth(), "acc-1") == []


class TestStatsOverride:
    """Optional performance summary and payouts."""

    @pytest.mark.asyncio
    async def test_summary_and_payouts(self):
        router = UpstreamRouter({
            ("GET", "/api/performance/summary"): (200, {"totalProfit": 8123.4, "winRate": "61.5"}),
            ("GET", "/api/payouts"): (200, [{"id": 1}, {"id": 2}]),
        })
        override = await _connector(router).fetch_stats_override(_auth())
        assert override.total_profit == 8123.4
        assert override.win_rate == 61.5
        assert override.verified_payouts == 2

    @pytest.mark.asyncio
    async def test_missing_endpoints_give_no_override(self):
        router = UpstreamRouter()
        assert await _connector(router).fetch_stats_override(_auth()) is None

    @pytest.mark.asyncio
    async def test_payouts_only(self):
        router = UpstreamRouter({
            ("GET", "/api/performance/summary"): (503, {}),
            ("GET", "/api/payouts"): (200, [{"id": 1}]),
        })
        override = await _connector(router).fetch_stats_override(_auth())
        assert override.total_profit is None
        assert override.verified_payouts == 1

    @pytest.mark.asyncio
    async def test_full_sync_merges_accounts(self):
        router = UpstreamRouter({
            ("GET", "/api/user/me"): (200, {"id": 9}),
            ("GET", "/api/accounts"): (200, [{"id": "a"}, {"id": "b"}, {"name": "no id"}]),
            ("GET", "/api/trades"): (200, TRADE_ROWS[:1]),
        })
        result = await _connector(router).full_sync({"api_key": "ts-key"})
        assert [a.account_id for a in result.accounts] == ["a", "b"]
        assert len(result.trades) == 2
        assert result.stats.total_profit == 800.0
