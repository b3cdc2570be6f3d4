import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

from leaderboard_sync.core.config import settings
from leaderboard_sync.core.encryption import decrypt_credentials
from leaderboard_sync.core.exceptions import (
    AuthenticationError,
    ConnectorError,
    UnsupportedConnectionType,
    UpstreamUnavailable,
)
from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.models.trader import Trader
from leaderboard_sync.services.connectors.base_connector import BaseConnector, SyncState
from leaderboard_sync.services.connectors.connector_factory import get_connector
from leaderboard_sync.services.stats_service import StatisticsSummary, apply_stats_override
from leaderboard_sync.services.sync_store import SyncLogEntry, SyncStore

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    success: bool
    trader: str
    stats: StatisticsSummary | None = None
    error: str | None = None
    state: SyncState = SyncState.PENDING
    trades_synced: int = 0
    new_account_ids: list[str] = field(default_factory=list)


@dataclass
class FleetSyncReport:
    results: list[SyncOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)


def redact_error(error: Exception, connection_type: str) -> str:
    """Message safe to store and return: never carries upstream response text."""
    label = connection_type or "unknown"
    if isinstance(error, AuthenticationError):
        return f"{label} authentication failed"
    if isinstance(error, UpstreamUnavailable):
        return f"{label} temporarily unavailable"
    if isinstance(error, UnsupportedConnectionType):
        return f"unsupported connection type: {label}"
    if isinstance(error, ConnectorError):
        return f"{label} request failed"
    return f"{label} sync failed ({type(error).__name__})"


def _resolve_connector(
    connection_type: str,
    connectors: Mapping[str, BaseConnector] | None,
    session_store: SessionStore | None,
) -> BaseConnector:
    if connectors is not None:
        connector = connectors.get(connection_type)
        if connector is None:
            raise UnsupportedConnectionType(connection_type)
        return connector
    return get_connector(connection_type, session_store=session_store)


async def sync_trader(
    trader: Trader,
    store: SyncStore,
    connectors: Mapping[str, BaseConnector] | None = None,
    session_store: SessionStore | None = None,
    now: datetime | None = None,
) -> SyncOutcome:
    """Refresh one trader end to end.

    Never raises: every failure ends in a ``failed`` sync-log entry and an
    unsuccessful outcome carrying a redacted error.
    """
    started_at = now or datetime.now(timezone.utc)
    # Read everything up front: a rollback on the failure path expires ORM state.
    trader_id = trader.id
    username = trader.username
    connection_type = trader.connection_type or ""
    encrypted = trader.credentials_encrypted
    auth_status = trader.auth_status
    outcome = SyncOutcome(success=False, trader=username)

    def advance(state: SyncState) -> None:
        outcome.state = state
        logger.debug("[SYNC] trader=%s state=%s", username, state.value)

    logger.info("[SYNC] Start trader=%s connection=%s", username, connection_type)

    try:
        credentials = decrypt_credentials(encrypted)
        connector = _resolve_connector(connection_type, connectors, session_store)

        result = await connector.full_sync(credentials, on_state=advance)
        stats = apply_stats_override(result.stats, result.stats_override)

        advance(SyncState.PERSISTING)
        observed = [a.account_id for a in result.accounts]
        new_ids = await store.union_known_account_ids(trader_id, observed)
        if new_ids:
            logger.info("[SYNC] trader=%s new accounts detected: %d", username, len(new_ids))

        stored = await store.save_sync_result(
            trader_id, stats, result.trades, limit=settings.TRADE_HISTORY_LIMIT
        )
        if auth_status != "active":
            await store.set_auth_status(trader_id, "active")

        await store.append_sync_log(SyncLogEntry(
            trader_id=trader_id,
            source=connection_type,
            status="success",
            state=SyncState.SUCCEEDED.value,
            trades_synced=len(result.trades),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        ))

        advance(SyncState.SUCCEEDED)
        outcome.success = True
        outcome.stats = stats
        outcome.trades_synced = len(result.trades)
        outcome.new_account_ids = new_ids
        logger.info(
            "[SYNC] Completed trader=%s trades=%d stored=%d total_profit=%s",
            username, len(result.trades), stored, stats.total_profit,
        )
        return outcome

    except Exception as e:
        failed_in = outcome.state
        outcome.error = redact_error(e, connection_type)
        outcome.state = SyncState.FAILED
        logger.error(
            "[SYNC] Failed trader=%s connection=%s state=%s: %s (status=%s detail=%s)",
            username, connection_type, failed_in.value, e,
            getattr(e, "status_code", None), getattr(e, "detail", None),
        )

        try:
            await store.rollback()
            if isinstance(e, AuthenticationError):
                await store.set_auth_status(trader_id, "expired")
            await store.append_sync_log(SyncLogEntry(
                trader_id=trader_id,
                source=connection_type,
                status="failed",
                state=failed_in.value,
                error_message=outcome.error,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            ))
        except Exception:
            logger.exception("[SYNC] Could not record failed sync for trader=%s", username)

        return outcome


async def sync_all_traders(
    store: SyncStore,
    connectors: Mapping[str, BaseConnector] | None = None,
    session_store: SessionStore | None = None,
) -> FleetSyncReport:
    """Sync every registered trader, one at a time."""
    traders = await store.list_traders()
    report = FleetSyncReport()
    logger.info("[SYNC] Fleet sync start: %d traders", len(traders))

    for trader in traders:
        outcome = await sync_trader(trader, store, connectors=connectors, session_store=session_store)
        report.results.append(outcome)

    logger.info(
        "[SYNC] Fleet sync complete: success=%d failed=%d",
        report.success_count, report.failure_count,
    )
    return report
