from typing import Dict, List, Optional, Sequence
import logging
import math

from app.schemas.analytics import DailySummaryItem, HourlySummaryItem
from app.schemas.report import DashboardKPIs, DashboardSummary, ReportSummary
from app.schemas.trade import Instrument, Trade, TradeResponse
from app.services.trading_analytics import TradingAnalytics

logger = logging.getLogger(__name__)


def _finite_or_none(value: float) -> Optional[float]:
    """JSONに出せない値（inf/NaN）はNone"""
    return value if math.isfinite(value) else None


def calculate_changes(current: DashboardKPIs, previous: Optional[DashboardKPIs] = None) -> Dict[str, float]:
    """前期間とのKPI差分"""
    if previous is None:
        return {
            "profit_factor_change": 0.0,
            "win_rate_change": 0.0,
            "total_pnl_change": 0.0,
            "max_drawdown_change": 0.0,
            "total_trades_change": 0.0,
            "avg_win_loss_ratio_change": 0.0,
        }

    # 無限大のプロフィットファクターは差分計算から除外
    current_pf = current.profit_factor or 0.0
    previous_pf = previous.profit_factor or 0.0

    return {
        "profit_factor_change": current_pf - previous_pf,
        "win_rate_change": current.win_rate - previous.win_rate,
        "total_pnl_change": (
            (current.total_pnl - previous.total_pnl) / abs(previous.total_pnl) * 100
            if previous.total_pnl else 0.0
        ),
        "max_drawdown_change": current.max_drawdown - previous.max_drawdown,
        "total_trades_change": float(current.total_trades - previous.total_trades),
        "avg_win_loss_ratio_change": current.avg_win_loss_ratio - previous.avg_win_loss_ratio,
    }


class ReportService:
    """ダッシュボード・レポートの組み立て"""

    def __init__(self, analytics: Optional[TradingAnalytics] = None, list_limit: int = 6):
        self.analytics = analytics or TradingAnalytics()
        self.list_limit = list_limit

    @property
    def starting_balance(self) -> float:
        return self.analytics.config.starting_balance

    def with_pnl(self, trades: Sequence[Trade],
                 instruments: Optional[Dict[str, Instrument]] = None) -> List[TradeResponse]:
        """各トレードに損益を付与"""
        instruments = instruments or {}
        return [
            TradeResponse.model_validate({
                **trade.model_dump(),
                "computed_pnl": self.analytics.compute_trade_pnl(trade, instruments.get(trade.symbol)),
            })
            for trade in trades
        ]

    def _base_kpis(self, trades: Sequence[Trade]) -> DashboardKPIs:
        analytics = self.analytics

        equity_series = analytics.equity_curve(trades)
        max_drawdown = analytics.drawdowns(equity_series).max_drawdown
        averages = analytics.average_win_loss(trades)
        avg_win_loss_ratio = averages.avg_win / averages.avg_loss if averages.avg_loss != 0 else 0.0

        return DashboardKPIs(
            profit_factor=_finite_or_none(analytics.profit_factor(trades)),
            win_rate=analytics.win_rate(trades) * 100,
            avg_win=averages.avg_win,
            avg_loss=averages.avg_loss,
            max_drawdown=max_drawdown,
            total_pnl=equity_series[-1].balance - self.starting_balance,
            total_trades=len(trades),
            closed_trades=sum(1 for t in trades if t.is_closed),
            avg_win_loss_ratio=avg_win_loss_ratio,
        )

    def kpis(self, trades: Sequence[Trade], previous_trades: Optional[Sequence[Trade]] = None) -> DashboardKPIs:
        """ダッシュボードKPI"""
        current = self._base_kpis(trades)
        previous = self._base_kpis(previous_trades) if previous_trades is not None else None
        return current.model_copy(update=calculate_changes(current, previous))

    def top_hours(self, trades: Sequence[Trade]) -> List[HourlySummaryItem]:
        return self.analytics.hourly_summary(trades)[:self.list_limit]

    def recent_days(self, trades: Sequence[Trade]) -> List[DailySummaryItem]:
        return self.analytics.daily_summary(trades)[:self.list_limit]

    def dashboard_summary(self,
                          trades: Sequence[Trade],
                          recent_trades: Optional[Sequence[Trade]] = None,
                          instruments: Optional[Dict[str, Instrument]] = None) -> DashboardSummary:
        """ダッシュボードサマリー"""
        kpis = self.kpis(trades)
        return DashboardSummary(
            **kpis.model_dump(),
            hourly_summary=self.top_hours(trades),
            recent_trades=self.with_pnl(recent_trades or [], instruments),
            daily_summary=self.recent_days(trades),
        )

    def report(self, trades: Sequence[Trade]) -> ReportSummary:
        """レポートサマリー（全指標）"""
        analytics = self.analytics
        logger.info(f"レポート生成開始: {len(trades)}件")

        equity_series = analytics.equity_curve(trades)
        drawdown = analytics.drawdowns(equity_series)
        averages = analytics.average_win_loss(trades)

        report = ReportSummary(
            equity_curve=equity_series,
            drawdown_series=drawdown.drawdown_series,
            max_drawdown=drawdown.max_drawdown,
            profit_factor=_finite_or_none(analytics.profit_factor(trades)),
            win_rate=analytics.win_rate(trades) * 100,
            avg_win=averages.avg_win,
            avg_loss=averages.avg_loss,
            avg_rr=analytics.average_rr(trades),
            sharpe=analytics.sharpe_ratio(equity_series),
            sortino=analytics.sortino_ratio(equity_series),
            streaks=analytics.compute_streaks(trades),
            heatmap=analytics.heatmap(trades),
            hourly_summary=analytics.hourly_summary(trades),
            strategy_breakdown=analytics.strategy_breakdown(trades),
            monte_carlo=analytics.monte_carlo_simulation(trades),
            currency=analytics.config.account_currency,
        )

        logger.info(
            f"レポート生成完了: 最大DD {report.max_drawdown:.1f}% 勝率 {report.win_rate:.1f}%"
        )
        return report
