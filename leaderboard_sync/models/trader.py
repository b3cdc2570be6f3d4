import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaderboard_sync.models.base import Base


class Trader(Base):
    __tablename__ = "traders"
    __table_args__ = (
        Index("idx_traders_connection", "connection_type"),
        Index("idx_traders_prop_firm", "prop_firm"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    avatar: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    connection_type: Mapped[str] = mapped_column(String(20), nullable=False)
    credentials_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    prop_firm: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    prop_firm_display: Mapped[str] = mapped_column(String(100), nullable=False, default="Other")
    known_account_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    total_accounts_linked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auth_status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    account_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    statistics = relationship(
        "TraderStatistics", back_populates="trader", uselist=False, cascade="all, delete-orphan"
    )
    trades = relationship("TradeHistory", back_populates="trader", cascade="all, delete-orphan")
    sync_logs = relationship("SyncLog", back_populates="trader", cascade="all, delete-orphan")
