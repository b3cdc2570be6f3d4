import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leaderboard_sync.api.deps import get_session_store
from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.db.session import get_db
from leaderboard_sync.models.trader import Trader
from leaderboard_sync.models.trader_statistics import TraderStatistics
from leaderboard_sync.schemas.traders import (
    LeaderboardEntry,
    PropFirm,
    ReauthResponse,
    StatisticsResponse,
    TraderCreate,
    TraderCreatedResponse,
    TraderProfile,
    TraderReauth,
)
from leaderboard_sync.services import trader_service
from leaderboard_sync.services.connectors.connector_factory import get_supported_firms
from leaderboard_sync.services.scheduler import run_initial_sync

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/traders", tags=["traders"])


def _stats_to_response(stats: TraderStatistics | None) -> StatisticsResponse:
    if stats is None:
        return StatisticsResponse()
    return StatisticsResponse(
        total_profit=float(stats.total_profit),
        monthly_profit=float(stats.monthly_profit),
        win_rate=float(stats.win_rate),
        total_trades=stats.total_trades,
        avg_trade_pnl=float(stats.avg_trade_pnl),
        best_trade=float(stats.best_trade),
        worst_trade=float(stats.worst_trade),
        profit_factor=float(stats.profit_factor),
        verified_payouts=stats.verified_payouts,
    )


def _leaderboard_entry(rank: int, trader: Trader, stats: TraderStatistics | None) -> LeaderboardEntry:
    s = _stats_to_response(stats)
    return LeaderboardEntry(
        rank=rank,
        id=trader.id,
        username=trader.username,
        avatar=trader.avatar or "",
        prop_firm=trader.prop_firm,
        prop_firm_display=trader.prop_firm_display,
        connection_type=trader.connection_type,
        total_accounts_linked=trader.total_accounts_linked or 0,
        auth_status=trader.auth_status or "active",
        account_created=trader.account_created,
        total_profit=s.total_profit,
        monthly_profit=s.monthly_profit,
        verified_payouts=s.verified_payouts,
        win_rate=s.win_rate,
        total_trades=s.total_trades,
        profit_factor=s.profit_factor,
        updated_at=stats.updated_at if stats else None,
    )


@router.get("", response_model=list[LeaderboardEntry])
async def get_leaderboard(db: AsyncSession = Depends(get_db)):
    rows = await trader_service.get_leaderboard(db)
    return [_leaderboard_entry(i + 1, t, s) for i, (t, s) in enumerate(rows)]


@router.get("/meta/firms", response_model=list[PropFirm])
async def list_prop_firms():
    return [PropFirm(**firm) for firm in get_supported_firms()]


@router.get("/{username}", response_model=TraderProfile)
async def get_trader(username: str, db: AsyncSession = Depends(get_db)):
    trader, stats = await trader_service.get_trader_profile(db, username)
    return TraderProfile(
        id=trader.id,
        username=trader.username,
        avatar=trader.avatar or "",
        prop_firm=trader.prop_firm,
        prop_firm_display=trader.prop_firm_display,
        connection_type=trader.connection_type,
        total_accounts_linked=trader.total_accounts_linked or 0,
        auth_status=trader.auth_status or "active",
        account_created=trader.account_created,
        statistics=_stats_to_response(stats),
        updated_at=stats.updated_at if stats else None,
    )


@router.post("", response_model=TraderCreatedResponse, status_code=201)
async def register_trader(
    payload: TraderCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_store: SessionStore | None = Depends(get_session_store),
):
    trader = await trader_service.register_trader(
        db=db,
        username=payload.username,
        connection_type=payload.connection_type.value,
        credentials=payload.credentials,
        prop_firm=payload.prop_firm,
    )
    background_tasks.add_task(run_initial_sync, trader.username, session_store)
    return TraderCreatedResponse(
        message="Profile added successfully! Your stats are being synced.",
        id=trader.id,
        username=trader.username,
        connection_type=trader.connection_type,
    )


@router.post("/reauth", response_model=ReauthResponse)
async def reauthenticate(payload: TraderReauth, db: AsyncSession = Depends(get_db)):
    await trader_service.reauthenticate_trader(db, payload.username, payload.password)
    return ReauthResponse(message="Re-authenticated successfully. Your stats will sync shortly.")
