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
    RetrievalStrategy,
    normalize_side,
    parse_timestamp,
    run_cascade,
    to_float,
    to_quantity,
)

logger = logging.getLogger(__name__)

# Tokens closer than this to expiry are renewed before use.
RENEW_MARGIN_SECONDS = 600


def _symbol(contract_id) -> str:
    return f"contract-{contract_id}" if contract_id else UNKNOWN_SYMBOL


class TradovateConnector(BaseConnector):
    """Execution-platform connector.

    Trade data is recovered per account through three sources, best first:
    paired round trips, raw fills, then realized-P&L cash ledger entries.
    """

    connection_type = "tradovate"

    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        session_store: SessionStore | None = None,
    ):
        super().__init__(base_url or settings.tradovate_base_url, http_client, session_store)

    def _cache_key(self, credentials: dict) -> str:
        return f"tradovate:{self.base_url}:{credentials.get('username', '')}"

    async def authenticate(self, credentials: dict) -> AuthContext:
        """Reuse the cached session, renew it near expiry, otherwise log in.

        Stored credentials carry the (encrypted) password, so a session that
        lapsed between syncs is replaced by a fresh login.
        """
        username = credentials.get("username") or ""
        if not username:
            raise AuthenticationError("Tradovate username missing")

        cache_key = self._cache_key(credentials)
        cached = self.session_store.get(cache_key) if self.session_store else None
        if cached is not None:
            if not cached.expires_within(RENEW_MARGIN_SECONDS):
                return cached
            if not cached.expires_within(0):
                try:
                    renewed = await self.renew_token(cached)
                except AuthenticationError as e:
                    logger.info("[TRADOVATE] Token renewal refused for %s: %s", username, e)
                else:
                    self._remember(cache_key, renewed)
                    return renewed
            self.session_store.delete(cache_key)

        if not credentials.get("password"):
            raise AuthenticationError("Tradovate password missing, re-authentication required")
        return await self.login(credentials)

    async def login(self, credentials: dict) -> AuthContext:
        auth = await self._request_access_token(credentials)
        self._remember(self._cache_key(credentials), auth)
        return auth

    def _remember(self, cache_key: str, auth: AuthContext) -> None:
        if self.session_store is None:
            return
        ttl = None
        if auth.expires_at is not None:
            ttl = max((auth.expires_at - datetime.now(auth.expires_at.tzinfo)).total_seconds(), 0)
        self.session_store.set(cache_key, auth, ttl=ttl)

    async def _request_access_token(self, credentials: dict) -> AuthContext:
        username = credentials["username"]
        body = {
            "name": username,
            "password": credentials.get("password", ""),
            "appId": credentials.get("app_id") or settings.TRADOVATE_APP_ID,
            "appVersion": credentials.get("app_version") or settings.TRADOVATE_APP_VERSION,
            "deviceId": credentials.get("device_id") or f"pop-{username}",
            "cid": credentials.get("client_id", ""),
            "sec": credentials.get("secret_key", ""),
        }
        response = await self._request("POST", "/auth/accesstokenrequest", json=body)

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400 or not data.get("accessToken"):
            reason = data.get("errorText") or data.get("p-ticket") or "No access token received"
            logger.warning("[TRADOVATE] Authentication rejected for %s: %s", username, reason)
            raise AuthenticationError(
                "Tradovate authentication failed",
                status_code=response.status_code,
                detail=str(reason),
            )

        return AuthContext(
            token=data["accessToken"],
            user_id=str(data.get("userId") or ""),
            name=data.get("name") or username,
            expires_at=parse_timestamp(data.get("expirationTime")),
        )

    async def renew_token(self, auth: AuthContext) -> AuthContext:
        response = await self._request("POST", "/auth/renewaccesstoken", token=auth.token, json={})
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.status_code >= 400 or not isinstance(data, dict) or not data.get("accessToken"):
            raise AuthenticationError(
                "Failed to renew Tradovate access token", status_code=response.status_code
            )
        return AuthContext(
            token=data["accessToken"],
            user_id=auth.user_id,
            name=auth.name,
            expires_at=parse_timestamp(data.get("expirationTime")) or auth.expires_at,
        )

    async def list_accounts(self, auth: AuthContext) -> list[AccountInfo]:
        rows = await self._get_list("/account/list", auth.token)
        return [
            AccountInfo(
                account_id=str(row.get("id")),
                display_name=row.get("nickname") or row.get("name") or "",
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
        strategies = [
            RetrievalStrategy("fill_pairs", lambda: self.fetch_fill_pairs(auth, account_id)),
            RetrievalStrategy("fills", lambda: self.fetch_fills(auth, account_id)),
            RetrievalStrategy("cash_ledger", lambda: self.fetch_realized_pnl(auth, account_id)),
        ]
        tier, trades = await run_cascade(strategies, label=f"tradovate account={account_id}")
        logger.info(
            "[TRADOVATE] account=%s source=%s trades=%d", account_id, tier or "none", len(trades)
        )
        return trades

    async def fetch_fill_pairs(self, auth: AuthContext, account_id: str) -> list[NormalizedTrade]:
        """Round trips: matched buy/sell fills of this account's positions."""
        positions = {
            p.get("id"): p
            for p in await self._get_list("/position/list", auth.token)
            if str(p.get("accountId")) == account_id
        }
        if not positions:
            return []

        pairs = await self._get_list("/fillPair/list", auth.token)
        trades = []
        for pair in pairs:
            position = positions.get(pair.get("positionId"))
            if position is None:
                continue
            qty = to_quantity(pair.get("qty"))
            buy_price = to_float(pair.get("buyPrice"), default=None)
            sell_price = to_float(pair.get("sellPrice"), default=None)
            if buy_price is None or sell_price is None:
                continue

            # The fill executed first decides the direction of the round trip.
            buy_first = (pair.get("buyFillId") or 0) <= (pair.get("sellFillId") or 0)
            profit = to_float(pair.get("pnl"), default=None)
            if profit is None:
                profit = (sell_price - buy_price) * qty
            ts = parse_timestamp(pair.get("timestamp") or position.get("timestamp"))

            trades.append(NormalizedTrade(
                external_trade_id=str(pair.get("id")),
                source=self.connection_type,
                symbol=_symbol(position.get("contractId")),
                side="buy" if buy_first else "sell",
                quantity=qty,
                entry_price=buy_price if buy_first else sell_price,
                exit_price=sell_price if buy_first else buy_price,
                profit=profit,
                opened_at=ts,
                closed_at=ts,
            ))
        return trades

    async def fetch_fills(self, auth: AuthContext, account_id: str) -> list[NormalizedTrade]:
        fills = await self._get_list("/fill/list", auth.token)
        trades = []
        for fill in fills:
            if str(fill.get("accountId")) != account_id:
                continue
            ts = parse_timestamp(fill.get("timestamp"))
            trades.append(NormalizedTrade(
                external_trade_id=str(fill.get("id")),
                source=self.connection_type,
                symbol=_symbol(fill.get("contractId")),
                side=normalize_side(fill.get("action")),
                quantity=to_quantity(fill.get("qty")),
                entry_price=to_float(fill.get("price"), default=None),
                exit_price=None,
                profit=to_float(fill.get("pnl")),
                opened_at=ts,
                closed_at=ts,
            ))
        return trades

    async def fetch_realized_pnl(self, auth: AuthContext, account_id: str) -> list[NormalizedTrade]:
        entries = await self._get_list("/cashBalance/list", auth.token)
        trades = []
        for entry in entries:
            if str(entry.get("accountId")) != account_id or entry.get("cashChangeType") != "TradePnL":
                continue
            ts = parse_timestamp(entry.get("timestamp"))
            trades.append(NormalizedTrade(
                external_trade_id=str(entry.get("id")),
                source=self.connection_type,
                symbol=_symbol(entry.get("contractId")),
                side="unknown",
                quantity=1,
                profit=to_float(entry.get("amount")),
                opened_at=ts,
                closed_at=ts,
            ))
        return trades
