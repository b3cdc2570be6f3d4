import logging
from datetime import datetime

import httpx

from leaderboard_sync.core.config import settings
from leaderboard_sync.core.exceptions import AuthenticationError
from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.services.connectors.base_connector import (
    UNKNOWN_SYMBOL,
    AccountInfo,
    AuthContext,
    BaseConnector,
    NormalizedTrade,
    StatsOverride,
    normalize_side,
    parse_timestamp,
    to_float,
    to_quantity,
)

logger = logging.getLogger(__name__)


def _first(row: dict, *keys):
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


class TradeSyncerConnector(BaseConnector):
    """Trade-copy service connector.

    The upstream already aggregates broker accounts, so trades arrive nearly
    normalized. Performance summary and payouts are optional extras.
    """

    connection_type = "tradesyncer"

    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        session_store: SessionStore | None = None,
    ):
        super().__init__(base_url or settings.TRADESYNCER_API_URL, http_client, session_store)

    async def authenticate(self, credentials: dict) -> AuthContext:
        api_key = credentials.get("api_key") or ""
        if not api_key:
            raise AuthenticationError("TradeSyncer API key missing")

        response = await self._request("GET", "/user/me", token=api_key)
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400 or not isinstance(data, dict) or not data.get("id"):
            reason = data.get("message") if isinstance(data, dict) else None
            logger.warning("[TRADESYNCER] Authentication rejected: %s", reason or response.status_code)
            raise AuthenticationError(
                "TradeSyncer authentication failed",
                status_code=response.status_code,
                detail=reason or "Invalid API key or user not found",
            )

        return AuthContext(
            token=api_key,
            user_id=str(data["id"]),
            name=data.get("username") or data.get("email") or "",
        )

    async def list_accounts(self, auth: AuthContext) -> list[AccountInfo]:
        rows = await self._get_list("/accounts", auth.token)
        return [
            AccountInfo(
                account_id=str(row.get("id")),
                display_name=_first(row, "displayName", "name", "accountName") or "",
            )
            for row in rows
            if row.get("id") is not None
        ]

    async def _fetch_trades(
        self,
        auth: AuthContext,
        account_id: str,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int | None = None,
    ) -> list[NormalizedTrade]:
        params: dict = {"accountId": account_id}
        if from_date:
            params["startDate"] = from_date.isoformat()
        if to_date:
            params["endDate"] = to_date.isoformat()
        if limit:
            params["limit"] = limit

        data = await self._get_json("/trades", auth.token, params=params)
        rows = data if isinstance(data, list) else (data or {}).get("trades") or []

        trades = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            trade_id = _first(row, "id", "tradeId")
            if trade_id is None:
                logger.debug("[TRADESYNCER] Skipping trade without id on account=%s", account_id)
                continue
            trades.append(self._normalize(str(trade_id), row))
        return trades

    def _normalize(self, trade_id: str, row: dict) -> NormalizedTrade:
        return NormalizedTrade(
            external_trade_id=trade_id,
            source=self.connection_type,
            symbol=_first(row, "symbol", "instrument") or UNKNOWN_SYMBOL,
            side=normalize_side(_first(row, "side", "direction")),
            quantity=to_quantity(_first(row, "quantity", "lots")),
            entry_price=to_float(_first(row, "entryPrice", "openPrice"), default=None),
            exit_price=to_float(_first(row, "exitPrice", "closePrice"), default=None),
            profit=to_float(_first(row, "profit", "pnl", "realizedPnl")),
            opened_at=parse_timestamp(_first(row, "openTime", "entryTime")),
            closed_at=parse_timestamp(_first(row, "closeTime", "exitTime")),
        )

    async def get_performance_summary(self, auth: AuthContext) -> dict | None:
        try:
            data = await self._get_json("/performance/summary", auth.token)
        except Exception as e:
            logger.debug("[TRADESYNCER] Performance summary unavailable: %s", e)
            return None
        return data if isinstance(data, dict) and data else None

    async def get_payouts(self, auth: AuthContext) -> list:
        try:
            return await self._get_list("/payouts", auth.token)
        except Exception as e:
            logger.debug("[TRADESYNCER] Payouts unavailable: %s", e)
            return []

    async def fetch_stats_override(self, auth: AuthContext) -> StatsOverride | None:
        summary = await self.get_performance_summary(auth) or {}
        payouts = await self.get_payouts(auth)

        override = StatsOverride(
            total_profit=to_float(summary.get("totalProfit"), default=None),
            win_rate=to_float(summary.get("winRate"), default=None),
            verified_payouts=len(payouts) if payouts else None,
        )
        return None if override.is_empty() else override
