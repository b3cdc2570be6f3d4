import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)

from leaderboard_sync.api import health, sync, traders
from leaderboard_sync.core.config import settings
from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.db.session import engine
from leaderboard_sync.services.http_client import close_http_client
from leaderboard_sync.services.scheduler import FleetSyncScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=== LEADERBOARD SYNC STARTUP BEGIN ===")
    session_store = SessionStore(default_ttl=settings.SESSION_TTL_SECONDS)
    scheduler = FleetSyncScheduler(settings.SYNC_INTERVAL_SECONDS, session_store=session_store)
    app.state.session_store = session_store
    app.state.scheduler = scheduler
    scheduler.start()
    logger.info("=== LEADERBOARD SYNC STARTUP COMPLETE ===")

    yield

    await scheduler.stop()
    await close_http_client()
    await engine.dispose()


app = FastAPI(
    title="Trader Leaderboard Sync",
    description="Aggregates trader performance from Tradovate and TradeSyncer into a leaderboard",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(traders.router)
app.include_router(sync.router)
