import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaderboard_sync.models.base import Base


class TradeHistory(Base):
    __tablename__ = "trade_history"
    __table_args__ = (
        Index("idx_trade_history_trader_closed", "trader_id", "closed_at"),
        Index("idx_trade_history_external", "trader_id", "source", "external_trade_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    trader_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("traders.id", ondelete="CASCADE"), nullable=False
    )
    external_trade_id: Mapped[str] = mapped_column(String(255), nullable=False)
    symbol: Mapped[str] = mapped_column(String(50), nullable=False, default="UNKNOWN")
    side: Mapped[str] = mapped_column(String(10), nullable=False, default="unknown")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    entry_price: Mapped[float | None] = mapped_column(Numeric(18, 6), nullable=True)
    exit_price: Mapped[float | None] = mapped_column(Numeric(18, 6), nullable=True)
    profit: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    trader = relationship("Trader", back_populates="trades")
