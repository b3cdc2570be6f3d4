"""Test doubles shared across the suite."""

import uuid
from collections import defaultdict
from datetime import datetime, timezone

import httpx

from leaderboard_sync.core.encryption import encrypt_credentials
from leaderboard_sync.models.trader import Trader
from leaderboard_sync.services.connectors.base_connector import (
    AccountInfo,
    AuthContext,
    BaseConnector,
    NormalizedTrade,
    StatsOverride,
)
from leaderboard_sync.services.sync_store import SyncStore


def make_trade(profit, closed_at=None, trade_id=None, source="tradesyncer") -> NormalizedTrade:
    return NormalizedTrade(
        external_trade_id=str(trade_id if trade_id is not None else uuid.uuid4()),
        source=source,
        symbol="ESZ6",
        side="buy",
        profit=profit,
        opened_at=closed_at,
        closed_at=closed_at,
    )


def make_trader(username, connection_type, credentials, known_account_ids=None, auth_status="active") -> Trader:
    return Trader(
        id=uuid.uuid4(),
        username=username,
        connection_type=connection_type,
        credentials_encrypted=encrypt_credentials(credentials),
        known_account_ids=list(known_account_ids or []),
        total_accounts_linked=len(known_account_ids or []),
        auth_status=auth_status,
        prop_firm="other",
        prop_firm_display="Other",
        account_created=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class FakeSyncStore(SyncStore):
    """In-memory SyncStore; ``fail_on`` names methods that should raise."""

    def __init__(self, traders=None, fail_on=None):
        self.traders = list(traders or [])
        self.statistics = {}
        self.trade_history = {}
        self.sync_logs = []
        self.known_account_ids = {t.id: list(t.known_account_ids or []) for t in self.traders}
        self.auth_status = {t.id: t.auth_status for t in self.traders}
        self.fail_on = set(fail_on or ())
        self.rollbacks = 0

    def _check(self, name):
        if name in self.fail_on:
            raise RuntimeError(f"{name} exploded: connection refused to db-internal-7")

    async def list_traders(self):
        return list(self.traders)

    async def upsert_statistics(self, trader_id, summary):
        self._check("upsert_statistics")
        self.statistics[trader_id] = summary

    async def _write_trade_history(self, trader_id, trades):
        self._check("replace_trade_history")
        self.trade_history[trader_id] = list(trades)

    async def append_sync_log(self, entry):
        self._check("append_sync_log")
        self.sync_logs.append(entry)

    async def _load_known_account_ids(self, trader_id):
        return list(self.known_account_ids.get(trader_id, []))

    async def _write_known_account_ids(self, trader_id, account_ids):
        self.known_account_ids[trader_id] = list(account_ids)

    async def set_auth_status(self, trader_id, auth_status):
        self.auth_status[trader_id] = auth_status

    async def rollback(self):
        self.rollbacks += 1


class FakeConnector(BaseConnector):
    """Connector whose upstream is a dict of account id -> trades (or an exception)."""

    def __init__(
        self,
        connection_type="tradesyncer",
        accounts=(),
        trades_by_account=None,
        override=None,
        auth_error=None,
    ):
        super().__init__("http://upstream.test")
        self.connection_type = connection_type
        self.accounts = list(accounts)
        self.trades_by_account = trades_by_account or {}
        self.override = override
        self.auth_error = auth_error
        self.fetch_calls = []

    async def authenticate(self, credentials):
        if self.auth_error is not None:
            raise self.auth_error
        return AuthContext(token="token", user_id="u-1", name="fake")

    async def list_accounts(self, auth):
        return [AccountInfo(account_id=a, display_name=a) for a in self.accounts]

    async def _fetch_trades(self, auth, account_id, from_date=None, to_date=None, limit=None):
        self.fetch_calls.append(account_id)
        value = self.trades_by_account.get(account_id, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    async def fetch_stats_override(self, auth) -> StatsOverride | None:
        return self.override


class UpstreamRouter:
    """httpx.MockTransport handler keyed by (method, path); counts every call."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = defaultdict(int)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        self.calls[key] += 1
        self.requests.append(request)
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))
