import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from leaderboard_sync.core.config import settings
from leaderboard_sync.models.sync_log import SyncLog
from leaderboard_sync.models.trade_history import TradeHistory
from leaderboard_sync.models.trader import Trader
from leaderboard_sync.models.trader_statistics import TraderStatistics
from leaderboard_sync.services.connectors.base_connector import NormalizedTrade
from leaderboard_sync.services.stats_service import StatisticsSummary

logger = logging.getLogger(__name__)


@dataclass
class SyncLogEntry:
    trader_id: uuid.UUID
    source: str
    status: str
    state: str | None = None
    trades_synced: int = 0
    error_message: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None


def most_recent(trades: Sequence[NormalizedTrade], limit: int) -> list[NormalizedTrade]:
    """Keep the tail of the fetched sequence, which upstream returns oldest first."""
    if limit <= 0:
        return []
    return list(trades[-limit:])


def merge_account_ids(known: Sequence[str], observed: Sequence[str]) -> list[str]:
    """Union preserving first-seen order; ids already known are never dropped."""
    merged = [str(i) for i in known]
    seen = set(merged)
    for account_id in observed:
        account_id = str(account_id)
        if account_id not in seen:
            merged.append(account_id)
            seen.add(account_id)
    return merged


class SyncStore(ABC):
    """Persistence the sync orchestrator depends on."""

    @abstractmethod
    async def list_traders(self) -> list[Trader]:
        pass

    @abstractmethod
    async def upsert_statistics(self, trader_id: uuid.UUID, summary: StatisticsSummary) -> None:
        pass

    @abstractmethod
    async def _write_trade_history(self, trader_id: uuid.UUID, trades: list[NormalizedTrade]) -> None:
        pass

    @abstractmethod
    async def append_sync_log(self, entry: SyncLogEntry) -> None:
        pass

    @abstractmethod
    async def _load_known_account_ids(self, trader_id: uuid.UUID) -> list[str]:
        pass

    @abstractmethod
    async def _write_known_account_ids(self, trader_id: uuid.UUID, account_ids: list[str]) -> None:
        pass

    @abstractmethod
    async def set_auth_status(self, trader_id: uuid.UUID, auth_status: str) -> None:
        pass

    async def replace_trade_history(
        self,
        trader_id: uuid.UUID,
        trades: Sequence[NormalizedTrade],
        limit: int = settings.TRADE_HISTORY_LIMIT,
    ) -> int:
        recent = most_recent(trades, limit)
        await self._write_trade_history(trader_id, recent)
        return len(recent)

    async def union_known_account_ids(
        self, trader_id: uuid.UUID, account_ids: Sequence[str]
    ) -> list[str]:
        """Add newly observed ids; returns only the ids that were new."""
        known = await self._load_known_account_ids(trader_id)
        merged = merge_account_ids(known, account_ids)
        new_ids = merged[len(known):]
        if new_ids:
            await self._write_known_account_ids(trader_id, merged)
        return new_ids

    async def save_sync_result(
        self,
        trader_id: uuid.UUID,
        summary: StatisticsSummary,
        trades: Sequence[NormalizedTrade],
        limit: int = settings.TRADE_HISTORY_LIMIT,
    ) -> int:
        await self.upsert_statistics(trader_id, summary)
        return await self.replace_trade_history(trader_id, trades, limit)

    async def rollback(self) -> None:
        return None


class SqlSyncStore(SyncStore):
    """SyncStore over an AsyncSession.

    Statistics and trade history for a trader are committed together in
    ``save_sync_result`` so readers never see one without the other.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_traders(self) -> list[Trader]:
        result = await self.db.execute(select(Trader).order_by(Trader.created_at))
        traders = list(result.scalars().all())
        # detached, so a rollback after one trader's failure does not expire the rest
        for trader in traders:
            self.db.expunge(trader)
        return traders

    async def _upsert_statistics(self, trader_id: uuid.UUID, summary: StatisticsSummary) -> None:
        values = summary.to_dict()
        values["updated_at"] = datetime.now(timezone.utc)
        stmt = insert(TraderStatistics).values(id=uuid.uuid4(), trader_id=trader_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[TraderStatistics.trader_id], set_=values)
        await self.db.execute(stmt)

    async def upsert_statistics(self, trader_id: uuid.UUID, summary: StatisticsSummary) -> None:
        await self._upsert_statistics(trader_id, summary)
        await self.db.commit()

    async def _replace_rows(self, trader_id: uuid.UUID, trades: list[NormalizedTrade]) -> None:
        await self.db.execute(delete(TradeHistory).where(TradeHistory.trader_id == trader_id))
        self.db.add_all([
            TradeHistory(
                trader_id=trader_id,
                external_trade_id=t.external_trade_id,
                symbol=t.symbol,
                side=t.side,
                quantity=t.quantity,
                entry_price=t.entry_price,
                exit_price=t.exit_price,
                profit=t.profit,
                opened_at=t.opened_at,
                closed_at=t.closed_at,
                source=t.source,
            )
            for t in trades
        ])

    async def _write_trade_history(self, trader_id: uuid.UUID, trades: list[NormalizedTrade]) -> None:
        await self._replace_rows(trader_id, trades)
        await self.db.commit()

    async def save_sync_result(
        self,
        trader_id: uuid.UUID,
        summary: StatisticsSummary,
        trades: Sequence[NormalizedTrade],
        limit: int = settings.TRADE_HISTORY_LIMIT,
    ) -> int:
        recent = most_recent(trades, limit)
        await self._upsert_statistics(trader_id, summary)
        await self._replace_rows(trader_id, recent)
        await self.db.commit()
        return len(recent)

    async def append_sync_log(self, entry: SyncLogEntry) -> None:
        self.db.add(SyncLog(
            trader_id=entry.trader_id,
            source=entry.source,
            status=entry.status,
            state=entry.state,
            trades_synced=entry.trades_synced,
            error_message=entry.error_message,
            started_at=entry.started_at,
            completed_at=entry.completed_at,
        ))
        await self.db.commit()

    async def _load_known_account_ids(self, trader_id: uuid.UUID) -> list[str]:
        result = await self.db.execute(select(Trader.known_account_ids).where(Trader.id == trader_id))
        return list(result.scalar_one_or_none() or [])

    async def _write_known_account_ids(self, trader_id: uuid.UUID, account_ids: list[str]) -> None:
        trader = await self.db.get(Trader, trader_id)
        if trader is None:
            return
        trader.known_account_ids = list(account_ids)
        trader.total_accounts_linked = len(account_ids)
        await self.db.commit()

    async def set_auth_status(self, trader_id: uuid.UUID, auth_status: str) -> None:
        trader = await self.db.get(Trader, trader_id)
        if trader is None or trader.auth_status == auth_status:
            return
        trader.auth_status = auth_status
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
