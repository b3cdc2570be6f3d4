import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import httpx

from leaderboard_sync.core.exceptions import (
    AuthenticationError,
    ConnectorError,
    PartialDataError,
    UpstreamUnavailable,
)
from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.services.http_client import get_http_client
from leaderboard_sync.services.stats_service import StatisticsSummary, compute_statistics

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"


class SyncState(str, Enum):
    PENDING = "pending"
    AUTHENTICATING = "authenticating"
    FETCHING_ACCOUNTS = "fetching_accounts"
    FETCHING_TRADES = "fetching_trades"
    COMPUTING_STATS = "computing_stats"
    PERSISTING = "persisting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


StateCallback = Callable[[SyncState], None]


@dataclass
class NormalizedTrade:
    external_trade_id: str
    source: str
    symbol: str = UNKNOWN_SYMBOL
    side: str = "unknown"
    quantity: int = 1
    entry_price: float | None = None
    exit_price: float | None = None
    profit: float = 0.0
    opened_at: datetime | None = None
    closed_at: datetime | None = None


@dataclass
class AccountInfo:
    account_id: str
    display_name: str = ""


@dataclass
class AuthContext:
    token: str
    user_id: str
    name: str = ""
    expires_at: datetime | None = None

    def expires_within(self, seconds: float, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds() <= seconds


@dataclass
class StatsOverride:
    """Aggregate figures reported by the platform itself."""

    total_profit: float | None = None
    win_rate: float | None = None
    verified_payouts: int | None = None

    def is_empty(self) -> bool:
        return self.total_profit is None and self.win_rate is None and self.verified_payouts is None


@dataclass
class ConnectorSyncResult:
    accounts: list[AccountInfo]
    trades: list[NormalizedTrade]
    stats: StatisticsSummary
    stats_override: StatsOverride | None = None


@dataclass
class RetrievalStrategy:
    name: str
    fetch: Callable[[], Awaitable[list[NormalizedTrade]]]


def to_float(value, default: float | None = 0.0) -> float | None:
    if value is None or value == "":
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def to_quantity(value) -> int:
    qty = to_float(value, default=None)
    if qty is None:
        return 1
    qty = int(abs(qty))
    return qty if qty > 0 else 1


def parse_timestamp(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds vs seconds
        seconds = value / 1000 if value > 1e11 else value
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def normalize_side(value) -> str:
    side = str(value or "").strip().lower()
    if side in ("buy", "long", "b"):
        return "buy"
    if side in ("sell", "short", "s"):
        return "sell"
    return "unknown"


def apply_trade_window(
    trades: list[NormalizedTrade],
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int | None = None,
) -> list[NormalizedTrade]:
    if from_date or to_date:
        windowed = []
        for t in trades:
            ts = t.closed_at or t.opened_at
            if ts is None:
                continue
            if from_date and ts < from_date:
                continue
            if to_date and ts > to_date:
                continue
            windowed.append(t)
        trades = windowed
    if limit is not None and limit >= 0:
        trades = trades[-limit:] if limit else []
    return trades


async def run_cascade(
    strategies: Sequence[RetrievalStrategy],
    accept: Callable[[list[NormalizedTrade]], bool] = bool,
    label: str = "",
) -> tuple[str | None, list[NormalizedTrade]]:
    """Try each strategy in order and return the first acceptable result.

    A strategy that raises counts as an empty result. Returns ``(None, [])``
    when no strategy produced an acceptable result.
    """
    for strategy in strategies:
        try:
            trades = await strategy.fetch()
        except Exception as e:
            logger.debug("[CASCADE] %s strategy=%s failed: %s", label, strategy.name, e)
            trades = []
        if accept(trades):
            logger.debug("[CASCADE] %s strategy=%s accepted (%d trades)", label, strategy.name, len(trades))
            return strategy.name, trades
    return None, []


class BaseConnector(ABC):
    connection_type: str = ""

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        session_store: SessionStore | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self.session_store = session_store

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http_client or get_http_client()

    async def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        **kwargs,
    ) -> httpx.Response:
        """Send one upstream request.

        Transport failures and 5xx responses raise ``UpstreamUnavailable``;
        other statuses are returned for the caller to classify.
        """
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = f"{self.base_url}{path}"
        try:
            response = await self.http.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(
                f"{self.connection_type} request timed out", detail=f"{method} {path}: {e!r}"
            ) from e
        except httpx.TransportError as e:
            raise UpstreamUnavailable(
                f"{self.connection_type} unreachable", detail=f"{method} {path}: {e!r}"
            ) from e

        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"{self.connection_type} upstream error",
                status_code=response.status_code,
                detail=response.text[:500],
            )
        return response

    async def _get_json(self, path: str, token: str, **kwargs):
        response = await self._request("GET", path, token=token, **kwargs)
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"{self.connection_type} rejected the session",
                status_code=response.status_code,
                detail=response.text[:500],
            )
        if response.status_code >= 400:
            raise ConnectorError(
                f"{self.connection_type} request failed",
                status_code=response.status_code,
                detail=f"GET {path}: {response.text[:500]}",
            )
        try:
            return response.json()
        except ValueError as e:
            raise ConnectorError(
                f"{self.connection_type} returned a malformed response",
                status_code=response.status_code,
                detail=f"GET {path}",
            ) from e

    async def _get_list(self, path: str, token: str, **kwargs) -> list:
        data = await self._get_json(path, token, **kwargs)
        return data if isinstance(data, list) else []

    @abstractmethod
    async def authenticate(self, credentials: dict) -> AuthContext:
        pass

    @abstractmethod
    async def list_accounts(self, auth: AuthContext) -> list[AccountInfo]:
        pass

    @abstractmethod
    async def _fetch_trades(
        self,
        auth: AuthContext,
        account_id: str,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int | None = None,
    ) -> list[NormalizedTrade]:
        pass

    async def list_trades(
        self,
        auth: AuthContext,
        account_id: str,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int | None = None,
    ) -> list[NormalizedTrade]:
        """Trade history for one account; an empty list on any failure."""
        try:
            trades = await self._fetch_trades(auth, account_id, from_date, to_date, limit)
        except Exception as e:
            partial = PartialDataError(account_id, str(e), status_code=getattr(e, "status_code", None))
            logger.debug(
                "[%s] Trade fetch failed for account=%s status=%s: %s",
                self.connection_type.upper(), account_id, partial.status_code, partial,
            )
            return []
        return apply_trade_window(trades, from_date, to_date, limit)

    async def fetch_stats_override(self, auth: AuthContext) -> StatsOverride | None:
        return None

    async def full_sync(
        self, credentials: dict, on_state: StateCallback | None = None
    ) -> ConnectorSyncResult:
        notify = on_state or (lambda state: None)
        tag = self.connection_type.upper()

        notify(SyncState.AUTHENTICATING)
        auth = await self.authenticate(credentials)
        logger.info("[%s] Authenticated as %s (userId: %s)", tag, auth.name, auth.user_id)

        notify(SyncState.FETCHING_ACCOUNTS)
        accounts = await self.list_accounts(auth)
        logger.info("[%s] Found %d accounts", tag, len(accounts))

        notify(SyncState.FETCHING_TRADES)
        all_trades: list[NormalizedTrade] = []
        for account in accounts:
            trades = await self.list_trades(auth, account.account_id)
            logger.debug(
                "[%s] account=%s (%s) trades=%d",
                tag, account.account_id, account.display_name or "-", len(trades),
            )
            all_trades.extend(trades)
        logger.info("[%s] Found %d total trades", tag, len(all_trades))

        override = await self.fetch_stats_override(auth)

        notify(SyncState.COMPUTING_STATS)
        stats = compute_statistics(all_trades)

        return ConnectorSyncResult(
            accounts=accounts,
            trades=all_trades,
            stats=stats,
            stats_override=override,
        )
