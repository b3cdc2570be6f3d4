import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaderboard_sync.core.config import settings
from leaderboard_sync.core.encryption import decrypt_credentials, encrypt_credentials
from leaderboard_sync.core.exceptions import (
    ConnectionTypeNotSupportedError,
    ConnectorError,
    CredentialsInvalidError,
    DuplicateTraderError,
    ReauthNotSupportedError,
    TraderNotFoundError,
    UnsupportedConnectionType,
)
from leaderboard_sync.models.sync_log import SyncLog
from leaderboard_sync.models.trader import Trader
from leaderboard_sync.models.trader_statistics import TraderStatistics
from leaderboard_sync.services.connectors.base_connector import AuthContext, BaseConnector
from leaderboard_sync.services.connectors.connector_factory import get_connector, get_prop_firm

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = {
    "tradovate": ("username", "password"),
    "tradesyncer": ("api_key",),
}

_STORED_FIELDS = {
    "tradovate": ("username", "password", "client_id", "secret_key", "device_id"),
    "tradesyncer": ("api_key",),
}


def _connector_for(connection_type: str) -> BaseConnector:
    # no session store: a credential check must always reach the platform
    try:
        return get_connector(connection_type)
    except UnsupportedConnectionType:
        raise ConnectionTypeNotSupportedError(connection_type)


async def verify_credentials(
    connection_type: str,
    credentials: dict,
    connector: BaseConnector | None = None,
) -> AuthContext:
    """Authenticate against the platform; any failure surfaces as the same 401."""
    connector = connector or _connector_for(connection_type)
    missing = [f for f in _REQUIRED_FIELDS.get(connection_type, ()) if not credentials.get(f)]
    if missing:
        logger.info("[TRADERS] Credential check for %s missing fields: %s", connection_type, missing)
        raise CredentialsInvalidError(connection_type)
    try:
        return await connector.authenticate(credentials)
    except ConnectorError as e:
        logger.info(
            "[TRADERS] Credential check failed for %s: %s (status=%s)",
            connection_type, e, e.status_code,
        )
        raise CredentialsInvalidError(connection_type)


def _credentials_to_store(connection_type: str, credentials: dict) -> dict:
    """The subset of submitted credentials a sync needs to log in again."""
    return {
        field: credentials[field]
        for field in _STORED_FIELDS.get(connection_type, ())
        if credentials.get(field)
    }


async def get_trader_by_username(db: AsyncSession, username: str) -> Trader:
    result = await db.execute(select(Trader).where(Trader.username == username))
    trader = result.scalar_one_or_none()
    if not trader:
        raise TraderNotFoundError()
    return trader


async def register_trader(
    db: AsyncSession,
    username: str,
    connection_type: str,
    credentials: dict,
    prop_firm: str | None = None,
    connector: BaseConnector | None = None,
) -> Trader:
    existing = await db.execute(select(Trader.id).where(Trader.username == username))
    if existing.scalar_one_or_none():
        raise DuplicateTraderError()

    await verify_credentials(connection_type, credentials, connector)
    firm_key, firm_display = get_prop_firm(prop_firm)

    trader = Trader(
        username=username,
        avatar="",
        connection_type=connection_type,
        credentials_encrypted=encrypt_credentials(_credentials_to_store(connection_type, credentials)),
        prop_firm=firm_key,
        prop_firm_display=firm_display,
        known_account_ids=[],
        total_accounts_linked=0,
        auth_status="active",
    )
    db.add(trader)
    await db.commit()
    await db.refresh(trader)

    logger.info("[TRADERS] Registered trader=%s connection=%s", username, connection_type)
    return trader


async def reauthenticate_trader(
    db: AsyncSession,
    username: str,
    password: str,
    connector: BaseConnector | None = None,
) -> Trader:
    """Replace a Tradovate trader's stored password after it changed upstream."""
    trader = await get_trader_by_username(db, username)
    if trader.connection_type != "tradovate":
        raise ReauthNotSupportedError()

    stored = decrypt_credentials(trader.credentials_encrypted)
    credentials = {**stored, "password": password}
    await verify_credentials("tradovate", credentials, connector)

    trader.credentials_encrypted = encrypt_credentials(_credentials_to_store("tradovate", credentials))
    trader.auth_status = "active"
    trader.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(trader)

    logger.info("[TRADERS] Re-authenticated trader=%s", username)
    return trader


async def get_leaderboard(db: AsyncSession) -> list[tuple[Trader, TraderStatistics | None]]:
    """Traders with their statistics, best total profit first."""
    result = await db.execute(select(Trader).options(selectinload(Trader.statistics)))
    rows = [(t, t.statistics) for t in result.scalars().all()]
    rows.sort(key=lambda row: float(row[1].total_profit) if row[1] else 0.0, reverse=True)
    return rows


async def get_trader_profile(db: AsyncSession, username: str) -> tuple[Trader, TraderStatistics | None]:
    result = await db.execute(
        select(Trader).options(selectinload(Trader.statistics)).where(Trader.username == username)
    )
    trader = result.scalar_one_or_none()
    if not trader:
        raise TraderNotFoundError()
    return trader, trader.statistics


async def get_sync_logs(
    db: AsyncSession, username: str, limit: int = settings.SYNC_HISTORY_LIMIT
) -> list[SyncLog]:
    trader = await get_trader_by_username(db, username)
    result = await db.execute(
        select(SyncLog)
        .where(SyncLog.trader_id == trader.id)
        .order_by(SyncLog.started_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
