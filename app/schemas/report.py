from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel
from app.schemas.analytics import (
    DailySummaryItem, DrawdownPoint, EquityPoint, Heatmap, HourlySummaryItem,
    MonteCarloResult, StrategyBreakdownItem, StreakResult
)
from app.schemas.trade import TradeResponse


class DashboardKPIs(CamelModel):
    """ダッシュボードKPI（profit_factorは無限大の場合None）"""
    profit_factor: Optional[float] = 0.0
    win_rate: float = 0.0  # %
    avg_win: float = 0.0
    avg_loss: float = 0.0
    max_drawdown: float = 0.0
    total_pnl: float = Field(default=0.0, alias="totalPnL")
    total_trades: int = 0
    closed_trades: int = 0
    avg_win_loss_ratio: float = 0.0

    # 前期間比較
    profit_factor_change: float = 0.0
    win_rate_change: float = 0.0
    total_pnl_change: float = Field(default=0.0, alias="totalPnLChange")
    max_drawdown_change: float = 0.0
    total_trades_change: float = 0.0
    avg_win_loss_ratio_change: float = 0.0


class DashboardSummary(DashboardKPIs):
    hourly_summary: List[HourlySummaryItem] = Field(default_factory=list)
    recent_trades: List[TradeResponse] = Field(default_factory=list)
    daily_summary: List[DailySummaryItem] = Field(default_factory=list)


class ReportSummary(CamelModel):
    equity_curve: List[EquityPoint]
    drawdown_series: List[DrawdownPoint]
    max_drawdown: float
    profit_factor: Optional[float]
    win_rate: float  # %
    avg_win: float
    avg_loss: float
    avg_rr: float = Field(alias="avgRR")
    sharpe: float
    sortino: float
    streaks: StreakResult
    heatmap: Heatmap
    hourly_summary: List[HourlySummaryItem]
    strategy_breakdown: List[StrategyBreakdownItem]
    monte_carlo: MonteCarloResult
    currency: str
