import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leaderboard_sync.api.deps import get_session_store
from leaderboard_sync.core.exceptions import SyncFailedError
from leaderboard_sync.core.security import require_sync_key
from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.db.session import get_db
from leaderboard_sync.schemas.sync import (
    CredentialTestRequest,
    CredentialTestResponse,
    FleetSyncResponse,
    SyncLogResponse,
    SyncResult,
    TraderSyncResponse,
)
from leaderboard_sync.schemas.traders import StatisticsResponse
from leaderboard_sync.services import sync_service, trader_service
from leaderboard_sync.services.sync_store import SqlSyncStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


def _outcome_to_result(outcome: sync_service.SyncOutcome) -> SyncResult:
    return SyncResult(
        success=outcome.success,
        trader=outcome.trader,
        stats=StatisticsResponse(**outcome.stats.to_dict()) if outcome.stats else None,
        error="Sync failed" if not outcome.success else None,
    )


@router.post("/all", response_model=FleetSyncResponse, dependencies=[Depends(require_sync_key)])
async def sync_all(
    db: AsyncSession = Depends(get_db),
    session_store: SessionStore | None = Depends(get_session_store),
):
    report = await sync_service.sync_all_traders(SqlSyncStore(db), session_store=session_store)
    return FleetSyncResponse(
        message=f"Synced {report.success_count} traders successfully",
        success_count=report.success_count,
        failure_count=report.failure_count,
        results=[_outcome_to_result(o) for o in report.results],
    )


@router.post(
    "/trader/{username}",
    response_model=TraderSyncResponse,
    dependencies=[Depends(require_sync_key)],
)
async def sync_one(
    username: str,
    db: AsyncSession = Depends(get_db),
    session_store: SessionStore | None = Depends(get_session_store),
):
    trader = await trader_service.get_trader_by_username(db, username)
    outcome = await sync_service.sync_trader(trader, SqlSyncStore(db), session_store=session_store)
    if not outcome.success:
        raise SyncFailedError()
    return TraderSyncResponse(
        success=True,
        message=f"Synced @{username}",
        stats=StatisticsResponse(**outcome.stats.to_dict()),
    )


@router.post("/test", response_model=CredentialTestResponse)
async def test_credentials(payload: CredentialTestRequest):
    auth = await trader_service.verify_credentials(payload.connection_type.value, payload.credentials)
    return CredentialTestResponse(success=True, message="Credentials are valid", user=auth.name or None)


@router.get("/history/{username}", response_model=list[SyncLogResponse])
async def sync_history(username: str, db: AsyncSession = Depends(get_db)):
    logs = await trader_service.get_sync_logs(db, username)
    return [
        SyncLogResponse(
            id=log.id,
            source=log.source,
            status=log.status,
            state=log.state,
            trades_synced=log.trades_synced,
            error_message=log.error_message,
            started_at=log.started_at,
            completed_at=log.completed_at,
        )
        for log in logs
    ]
