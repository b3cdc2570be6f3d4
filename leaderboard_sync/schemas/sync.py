import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from leaderboard_sync.schemas.traders import ConnectionType, StatisticsResponse


class CredentialTestRequest(BaseModel):
    connection_type: ConnectionType
    credentials: dict = Field(default_factory=dict)


class CredentialTestResponse(BaseModel):
    success: bool
    message: str
    user: str | None = None


class SyncResult(BaseModel):
    success: bool
    trader: str
    stats: StatisticsResponse | None = None
    error: str | None = None


class TraderSyncResponse(BaseModel):
    success: bool
    message: str
    stats: StatisticsResponse | None = None


class FleetSyncResponse(BaseModel):
    success: bool = True
    message: str
    success_count: int = 0
    failure_count: int = 0
    results: list[SyncResult] = Field(default_factory=list)


class SyncLogResponse(BaseModel):
    id: uuid.UUID
    source: str
    status: str
    state: str | None = None
    trades_synced: int
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
