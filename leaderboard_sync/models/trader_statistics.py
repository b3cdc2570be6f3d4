import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaderboard_sync.models.base import Base


class TraderStatistics(Base):
    __tablename__ = "trader_statistics"
    __table_args__ = (
        Index("idx_trader_statistics_total_profit", "total_profit"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    trader_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("traders.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    total_profit: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    monthly_profit: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    verified_payouts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_rate: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    total_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_trade_pnl: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    best_trade: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    worst_trade: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    profit_factor: Mapped[float] = mapped_column(Numeric(8, 2), nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    trader = relationship("Trader", back_populates="statistics")
