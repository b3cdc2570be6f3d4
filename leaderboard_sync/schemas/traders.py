import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

USERNAME_PATTERN = r"^[A-Za-z0-9_]{1,15}$"


class ConnectionType(str, Enum):
    TRADOVATE = "tradovate"
    TRADESYNCER = "tradesyncer"


class TraderCreate(BaseModel):
    username: str = Field(pattern=USERNAME_PATTERN)
    connection_type: ConnectionType
    prop_firm: str | None = Field(default=None, max_length=50)
    credentials: dict = Field(default_factory=dict)


class TraderReauth(BaseModel):
    username: str = Field(pattern=USERNAME_PATTERN)
    password: str = Field(min_length=1)


class StatisticsResponse(BaseModel):
    total_profit: float = 0
    monthly_profit: float = 0
    win_rate: float = 0
    total_trades: int = 0
    avg_trade_pnl: float = 0
    best_trade: float = 0
    worst_trade: float = 0
    profit_factor: float = 0
    verified_payouts: int = 0


class LeaderboardEntry(BaseModel):
    rank: int
    id: uuid.UUID
    username: str
    avatar: str = ""
    prop_firm: str
    prop_firm_display: str
    connection_type: str
    total_accounts_linked: int = 0
    auth_status: str = "active"
    account_created: datetime
    total_profit: float = 0
    monthly_profit: float = 0
    verified_payouts: int = 0
    win_rate: float = 0
    total_trades: int = 0
    profit_factor: float = 0
    updated_at: datetime | None = None


class TraderProfile(BaseModel):
    id: uuid.UUID
    username: str
    avatar: str = ""
    prop_firm: str
    prop_firm_display: str
    connection_type: str
    total_accounts_linked: int = 0
    auth_status: str = "active"
    account_created: datetime
    statistics: StatisticsResponse = Field(default_factory=StatisticsResponse)
    updated_at: datetime | None = None


class TraderCreatedResponse(BaseModel):
    message: str
    id: uuid.UUID
    username: str
    connection_type: str


class ReauthResponse(BaseModel):
    success: bool = True
    message: str


class PropFirm(BaseModel):
    key: str
    display: str
    connections: list[str]
