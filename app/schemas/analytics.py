from datetime import datetime
from typing import List

from pydantic import Field

from app.schemas.base import CamelModel


class ComputedPnL(CamelModel):
    """1トレードの損益（pips・金額）"""
    profit_pips: float = 0.0
    profit_money: float = 0.0


class EquityPoint(CamelModel):
    time: datetime
    balance: float


class DrawdownPoint(CamelModel):
    time: datetime
    drawdown: float  # %


class DrawdownResult(CamelModel):
    drawdown_series: List[DrawdownPoint] = Field(default_factory=list)
    max_drawdown: float = 0.0  # %


class WinLossAverages(CamelModel):
    avg_win: float = 0.0
    avg_loss: float = 0.0  # 絶対値


class StreakResult(CamelModel):
    longest_win: int = 0
    longest_loss: int = 0


class Heatmap(CamelModel):
    """曜日(0=日曜)×時間の損益・件数マトリクス"""
    by_weekday_hour: List[List[float]]
    counts: List[List[int]]


class HourlySummaryItem(CamelModel):
    hour: int
    pnl: float
    trades: int
    percent_of_total: float = 0.0


class DailySummaryItem(CamelModel):
    date: str
    pnl: float
    trades: int


class StrategyBreakdownItem(CamelModel):
    strategy: str
    trades: int
    profit: float
    win_rate: float
    equity_series: List[EquityPoint]


class MonteCarloPercentiles(CamelModel):
    p10: float
    p50: float
    p90: float


class MonteCarloResult(CamelModel):
    simulations: int
    percentiles: MonteCarloPercentiles
    ruin_probability: float
