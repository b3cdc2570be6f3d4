import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy import select

from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.db.session import async_session_factory
from leaderboard_sync.models.trader import Trader
from leaderboard_sync.services.sync_service import FleetSyncReport, sync_all_traders, sync_trader
from leaderboard_sync.services.sync_store import SqlSyncStore

logger = logging.getLogger(__name__)


async def run_fleet_sync(session_store: SessionStore | None = None) -> FleetSyncReport:
    async with async_session_factory() as db:
        return await sync_all_traders(SqlSyncStore(db), session_store=session_store)


async def run_initial_sync(username: str, session_store: SessionStore | None = None) -> None:
    """First sync right after registration, on its own session."""
    async with async_session_factory() as db:
        result = await db.execute(select(Trader).where(Trader.username == username))
        trader = result.scalar_one_or_none()
        if trader is None:
            logger.warning("[SCHEDULER] Initial sync skipped, trader=%s not found", username)
            return
        await sync_trader(trader, SqlSyncStore(db), session_store=session_store)


class FleetSyncScheduler:
    """Periodic trigger for the fleet sync.

    Each run is independent: a failed run is logged and the next one starts on
    schedule. Expired upstream sessions are swept before every run.
    """

    def __init__(
        self,
        interval_seconds: float,
        session_store: SessionStore | None = None,
        job: Callable[[SessionStore | None], Awaitable[FleetSyncReport]] = run_fleet_sync,
    ):
        self.interval_seconds = interval_seconds
        self.session_store = session_store
        self._job = job
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.interval_seconds <= 0:
            logger.info("[SCHEDULER] Disabled (interval=%s)", self.interval_seconds)
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="fleet-sync-scheduler")
        logger.info("[SCHEDULER] Fleet sync every %ss", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[SCHEDULER] Stopped")

    async def run_once(self) -> FleetSyncReport | None:
        if self.session_store is not None:
            self.session_store.sweep()
        try:
            report = await self._job(self.session_store)
        except Exception:
            logger.exception("[SCHEDULER] Scheduled sync failed")
            return None
        logger.info(
            "[SCHEDULER] Scheduled sync done: success=%d failed=%d",
            report.success_count, report.failure_count,
        )
        return report

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
