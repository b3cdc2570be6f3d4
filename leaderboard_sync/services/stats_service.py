import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from leaderboard_sync.services.connectors.base_connector import NormalizedTrade, StatsOverride

logger = logging.getLogger(__name__)

MONTHLY_WINDOW = timedelta(days=30)

# Reported when there are winning trades and no losing ones. A fixed cap keeps
# the column finite for sorting and rendering.
PROFIT_FACTOR_CAP = 999.0


@dataclass(frozen=True)
class StatisticsSummary:
    total_profit: float = 0.0
    monthly_profit: float = 0.0
    win_rate: float = 0.0
    total_trades: int = 0
    avg_trade_pnl: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    profit_factor: float = 0.0
    verified_payouts: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _round2(value: float) -> float:
    # + 0.0 folds -0.0 into 0.0
    return round(value, 2) + 0.0


def compute_statistics(
    trades: Sequence["NormalizedTrade"], now: datetime | None = None
) -> StatisticsSummary:
    """Derive the leaderboard summary from a trade collection.

    ``monthly_profit`` covers trades closed in the 30 days before ``now``
    (wall clock when omitted), so it decays as old trades leave the window.
    ``verified_payouts`` is never derived here.
    """
    if not trades:
        return StatisticsSummary()

    now = now or datetime.now(timezone.utc)
    window_start = now - MONTHLY_WINDOW

    profits = [float(t.profit or 0) for t in trades]
    total_profit = sum(profits)
    winners = [p for p in profits if p > 0]
    losers = [p for p in profits if p < 0]

    monthly_profit = sum(
        float(t.profit or 0) for t in trades
        if t.closed_at is not None and t.closed_at >= window_start
    )

    gross_wins = sum(winners)
    gross_losses = abs(sum(losers))
    if gross_losses > 0:
        profit_factor = _round2(gross_wins / gross_losses)
    elif gross_wins > 0:
        profit_factor = PROFIT_FACTOR_CAP
    else:
        profit_factor = 0.0

    return StatisticsSummary(
        total_profit=_round2(total_profit),
        monthly_profit=_round2(monthly_profit),
        win_rate=_round2(len(winners) / len(trades) * 100),
        total_trades=len(trades),
        avg_trade_pnl=_round2(total_profit / len(trades)),
        best_trade=_round2(max(max(profits), 0.0)),
        worst_trade=_round2(min(min(profits), 0.0)),
        profit_factor=profit_factor,
        verified_payouts=0,
    )


def apply_stats_override(
    stats: StatisticsSummary, override: "StatsOverride | None"
) -> StatisticsSummary:
    """Merge platform-reported aggregates over computed ones.

    Reported values win unconditionally; they are not cross-checked against
    the trade-derived figures.
    """
    if override is None or override.is_empty():
        return stats

    changes: dict = {}
    if override.verified_payouts is not None:
        changes["verified_payouts"] = int(override.verified_payouts)
    if override.total_profit is not None:
        changes["total_profit"] = _round2(override.total_profit)
    if override.win_rate is not None:
        changes["win_rate"] = _round2(override.win_rate)

    logger.info("[STATS] Applying platform overrides: %s", changes)
    return replace(stats, **changes)
