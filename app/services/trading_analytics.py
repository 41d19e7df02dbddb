from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence
import logging
import math

import numpy as np
import pandas as pd

from app.schemas.analytics import (
    ComputedPnL, DailySummaryItem, DrawdownPoint, DrawdownResult, EquityPoint,
    Heatmap, HourlySummaryItem, MonteCarloResult, StrategyBreakdownItem,
    StreakResult, WinLossAverages
)
from app.schemas.trade import Instrument, InstrumentType, Trade, TradeSide
from app.services.currency_converter import CurrencyConverter
from app.services.monte_carlo import MonteCarloSettings, MonteCarloSimulator

logger = logging.getLogger(__name__)

DEFAULT_PIP_DECIMAL = 0.0001
JPY_PIP_DECIMAL = 0.01
DEFAULT_PIP_VALUE_PER_LOT = 10.0
PIP_VALUE_CURRENCY = "USD"
DEFAULT_STRATEGY = "Uncategorized"

SHARE_BASED_TYPES = (InstrumentType.STOCK, InstrumentType.CRYPTO)


@dataclass
class AnalyticsConfig:
    """分析設定"""
    account_currency: str = "INR"
    starting_balance: float = 10000.0
    risk_free_rate: float = 0.0
    monte_carlo_simulations: int = 10000

    @classmethod
    def from_settings(cls, settings) -> "AnalyticsConfig":
        return cls(
            account_currency=settings.account_currency,
            starting_balance=settings.starting_balance,
            risk_free_rate=settings.risk_free_rate,
            monte_carlo_simulations=settings.monte_carlo_simulations,
        )


def _exit_time(trade: Trade) -> datetime:
    return trade.exit_timestamp or trade.timestamp


def _epoch(moment: datetime) -> float:
    # naiveはローカル時刻として扱う
    return moment.timestamp()


def _local(moment: datetime) -> datetime:
    return moment.astimezone() if moment.tzinfo is not None else moment


def _calendar_date(moment: datetime) -> date:
    # 日別集計はUTCの日付（naiveはローカル時刻として変換）
    return moment.astimezone(timezone.utc).date()


def _display_date(day: date) -> str:
    """2024-01-05 → 'Jan 5'"""
    return f"{day:%b} {day.day}"


class TradingAnalytics:
    """トレード分析エンジン

    トレード一覧から損益・エクイティカーブ・ドローダウン・各種比率・
    時間帯別集計・戦略別集計・モンテカルロを算出する。状態は持たず、
    設定（口座通貨・初期資金・無リスク金利）と通貨換算器を注入する。
    """

    def __init__(self,
                 config: Optional[AnalyticsConfig] = None,
                 converter: Optional[CurrencyConverter] = None,
                 rng: Optional[np.random.Generator] = None):
        self.config = config or AnalyticsConfig()
        self.converter = converter or CurrencyConverter()
        self.rng = rng

    # ------------------------------------------------------------------
    # 1トレード損益
    # ------------------------------------------------------------------

    @staticmethod
    def pip_size(trade: Trade) -> float:
        if trade.pip_decimal:
            return trade.pip_decimal
        return JPY_PIP_DECIMAL if "JPY" in trade.symbol else DEFAULT_PIP_DECIMAL

    def compute_trade_pips(self, trade: Trade) -> float:
        """FXのpips計算（FX以外・オープン中は0）"""
        if not trade.is_closed or trade.instrument_type != InstrumentType.FOREX:
            return 0.0

        pip = self.pip_size(trade)
        if trade.side == TradeSide.BUY:
            return (trade.exit - trade.entry) / pip
        return (trade.entry - trade.exit) / pip

    def compute_trade_pnl(self,
                          trade: Trade,
                          instrument: Optional[Instrument] = None,
                          account_currency: Optional[str] = None) -> ComputedPnL:
        """1トレードの損益計算（手数料は金額のみから控除）"""
        if not trade.is_closed:
            return ComputedPnL(profit_pips=0.0, profit_money=0.0)

        currency = account_currency or self.config.account_currency
        profit_pips = 0.0
        profit_money = 0.0

        if trade.instrument_type == InstrumentType.FOREX:
            profit_pips = self.compute_trade_pips(trade)
            pip_value = trade.pip_value_per_lot
            if pip_value is None and instrument is not None:
                pip_value = instrument.pip_value_per_lot
            if pip_value is None:
                pip_value = DEFAULT_PIP_VALUE_PER_LOT
            lot_size = trade.lot if trade.lot is not None else 1.0

            # pip価値はUSD建て
            profit_money = profit_pips * pip_value * lot_size
            profit_money = self.converter.convert(profit_money, PIP_VALUE_CURRENCY, currency)

        elif trade.instrument_type in SHARE_BASED_TYPES:
            shares = trade.volume
            if shares is None:
                shares = trade.lot if trade.lot is not None else 1.0
            direction = 1.0 if trade.side == TradeSide.BUY else -1.0

            # 株式・暗号資産は口座通貨建てとみなす。pipsは金額と同値
            profit_money = (trade.exit - trade.entry) * direction * shares
            profit_pips = profit_money

        else:
            logger.debug(f"損益計算対象外の商品区分: {trade.instrument_type.value} ({trade.symbol})")

        profit_money -= trade.fees or 0.0
        return ComputedPnL(profit_pips=profit_pips, profit_money=profit_money)

    def _profit(self, trade: Trade) -> float:
        return self.compute_trade_pnl(trade).profit_money

    def _closed_profits(self, trades: Iterable[Trade]) -> List[float]:
        return [self._profit(t) for t in trades if t.is_closed]

    # ------------------------------------------------------------------
    # 時系列
    # ------------------------------------------------------------------

    def equity_curve(self, trades: Iterable[Trade], starting_balance: Optional[float] = None) -> List[EquityPoint]:
        """エクイティカーブ（決済時刻順、表示残高は0未満にしない）"""
        balance = self.config.starting_balance if starting_balance is None else starting_balance

        closed = [
            (_exit_time(t), self._profit(t))
            for t in trades
            if t.is_closed and t.exit_timestamp is not None
        ]
        closed.sort(key=lambda item: _epoch(item[0]))

        start_time = closed[0][0] if closed else datetime.now()
        series = [EquityPoint(time=start_time, balance=balance)]

        for time, pnl in closed:
            balance += pnl
            series.append(EquityPoint(time=time, balance=max(0.0, balance)))

        return series

    @staticmethod
    def drawdowns(equity_series: Sequence[EquityPoint]) -> DrawdownResult:
        """ドローダウン系列と最大ドローダウン（%）"""
        if not equity_series:
            return DrawdownResult(drawdown_series=[], max_drawdown=0.0)

        running_max = equity_series[0].balance
        max_drawdown = 0.0
        series = []

        for point in equity_series:
            running_max = max(running_max, point.balance)
            drawdown = (running_max - point.balance) / running_max if running_max > 0 else 0.0
            max_drawdown = max(max_drawdown, drawdown)
            series.append(DrawdownPoint(time=point.time, drawdown=drawdown * 100))

        return DrawdownResult(drawdown_series=series, max_drawdown=max_drawdown * 100)

    # ------------------------------------------------------------------
    # 比率
    # ------------------------------------------------------------------

    def profit_factor(self, trades: Iterable[Trade]) -> float:
        profits = self._closed_profits(trades)
        gross_profit = sum(p for p in profits if p > 0)
        gross_loss = abs(sum(p for p in profits if p < 0))

        if gross_loss == 0:
            return math.inf if gross_profit > 0 else 0.0
        return gross_profit / gross_loss

    def win_rate(self, trades: Iterable[Trade]) -> float:
        profits = self._closed_profits(trades)
        if not profits:
            return 0.0
        return sum(1 for p in profits if p > 0) / len(profits)

    def average_win_loss(self, trades: Iterable[Trade]) -> WinLossAverages:
        profits = self._closed_profits(trades)
        wins = [p for p in profits if p > 0]
        losses = [p for p in profits if p < 0]

        avg_win = sum(wins) / len(wins) if wins else 0.0
        avg_loss = sum(losses) / len(losses) if losses else 0.0
        return WinLossAverages(avg_win=avg_win, avg_loss=abs(avg_loss))

    @staticmethod
    def average_rr(trades: Iterable[Trade]) -> float:
        """平均リスクリワード比（SL設定済みの決済トレードのみ）"""
        ratios = []
        for trade in trades:
            # SL=0はSL未設定扱い
            if not trade.is_closed or not trade.sl:
                continue
            risk = abs(trade.entry - trade.sl)
            reward = abs(trade.exit - trade.entry)
            ratio = reward / risk if risk > 0 else 0.0
            if ratio > 0:
                ratios.append(ratio)

        return sum(ratios) / len(ratios) if ratios else 0.0

    @staticmethod
    def _period_returns(equity_series: Sequence[EquityPoint]) -> np.ndarray:
        balances = np.array([p.balance for p in equity_series], dtype=float)
        previous = balances[:-1]
        change = balances[1:] - previous
        # 前残高0の期間はリターン0
        return np.divide(change, previous, out=np.zeros_like(change), where=previous != 0)

    def sharpe_ratio(self, equity_series: Sequence[EquityPoint], risk_free_rate: Optional[float] = None) -> float:
        """シャープレシオ（母標準偏差）"""
        if len(equity_series) < 2:
            return 0.0

        rf_rate = self.config.risk_free_rate if risk_free_rate is None else risk_free_rate
        returns = self._period_returns(equity_series)
        std_dev = float(returns.std())
        if std_dev == 0:
            return 0.0
        return (float(returns.mean()) - rf_rate) / std_dev

    def sortino_ratio(self, equity_series: Sequence[EquityPoint], risk_free_rate: Optional[float] = None) -> float:
        """ソルティノレシオ（下方偏差の分母は全期間数n）"""
        if len(equity_series) < 2:
            return 0.0

        rf_rate = self.config.risk_free_rate if risk_free_rate is None else risk_free_rate
        returns = self._period_returns(equity_series)
        downside = returns[returns < 0]
        downside_dev = math.sqrt(float(np.sum(downside ** 2)) / len(returns))
        if downside_dev == 0:
            return 0.0
        return (float(returns.mean()) - rf_rate) / downside_dev

    def compute_streaks(self, trades: Iterable[Trade]) -> StreakResult:
        """最長連勝・連敗（損益0は負け扱い）"""
        closed = sorted((t for t in trades if t.is_closed), key=lambda t: _epoch(_exit_time(t)))
        if not closed:
            return StreakResult(longest_win=0, longest_loss=0)

        longest_win = longest_loss = 0
        current_streak = 0
        current_is_win = None

        for trade in closed:
            is_win = self._profit(trade) > 0
            if is_win == current_is_win:
                current_streak += 1
            else:
                current_streak = 1
                current_is_win = is_win

            if is_win:
                longest_win = max(longest_win, current_streak)
            else:
                longest_loss = max(longest_loss, current_streak)

        return StreakResult(longest_win=longest_win, longest_loss=longest_loss)

    # ------------------------------------------------------------------
    # 集計ビュー
    # ------------------------------------------------------------------

    def heatmap(self, trades: Iterable[Trade]) -> Heatmap:
        """曜日×時間ヒートマップ（決済時刻、ローカル時間）"""
        pnl_matrix = np.zeros((7, 24), dtype=float)
        counts = np.zeros((7, 24), dtype=int)

        for trade in trades:
            if trade.exit_timestamp is None:
                continue
            moment = _local(trade.exit_timestamp)
            weekday = (moment.weekday() + 1) % 7  # 0=日曜
            pnl_matrix[weekday, moment.hour] += self._profit(trade)
            counts[weekday, moment.hour] += 1

        return Heatmap(by_weekday_hour=pnl_matrix.tolist(), counts=counts.tolist())

    def hourly_summary(self, trades: Iterable[Trade]) -> List[HourlySummaryItem]:
        """時間帯別集計（損益の降順）"""
        pnl_by_hour = [0.0] * 24
        trades_by_hour = [0] * 24

        for trade in trades:
            if trade.exit_timestamp is None:
                continue
            hour = _local(trade.exit_timestamp).hour
            pnl_by_hour[hour] += self._profit(trade)
            trades_by_hour[hour] += 1

        total_profit = sum(max(0.0, pnl) for pnl in pnl_by_hour)

        summary = [
            HourlySummaryItem(
                hour=hour,
                pnl=pnl_by_hour[hour],
                trades=trades_by_hour[hour],
                percent_of_total=max(0.0, pnl_by_hour[hour]) / total_profit * 100 if total_profit > 0 else 0.0,
            )
            for hour in range(24)
        ]
        return sorted(summary, key=lambda item: item.pnl, reverse=True)

    def daily_summary(self, trades: Iterable[Trade]) -> List[DailySummaryItem]:
        """日別集計（新しい日付順）"""
        rows = [
            {"date": _calendar_date(t.exit_timestamp), "pnl": self._profit(t)}
            for t in trades
            if t.exit_timestamp is not None
        ]
        if not rows:
            return []

        frame = pd.DataFrame(rows)
        daily = frame.groupby("date").agg(pnl=("pnl", "sum"), trades=("pnl", "count"))
        daily = daily.sort_index(ascending=False)

        return [
            DailySummaryItem(date=_display_date(day), pnl=float(row["pnl"]), trades=int(row["trades"]))
            for day, row in daily.iterrows()
        ]

    def strategy_breakdown(self, trades: Iterable[Trade]) -> List[StrategyBreakdownItem]:
        """戦略別集計（決済トレードのない戦略は除外）"""
        groups: Dict[str, List[Trade]] = {}
        for trade in trades:
            groups.setdefault(trade.strategy or DEFAULT_STRATEGY, []).append(trade)

        breakdown = []
        for strategy, strategy_trades in groups.items():
            closed = [t for t in strategy_trades if t.is_closed]
            if not closed:
                continue

            profits = [self._profit(t) for t in closed]
            breakdown.append(StrategyBreakdownItem(
                strategy=strategy,
                trades=len(closed),
                profit=sum(profits),
                win_rate=sum(1 for p in profits if p > 0) / len(closed),
                equity_series=self.equity_curve(closed),
            ))

        return breakdown

    # ------------------------------------------------------------------
    # モンテカルロ
    # ------------------------------------------------------------------

    def monte_carlo_simulation(self,
                               trades: Iterable[Trade],
                               simulations: Optional[int] = None,
                               starting_balance: Optional[float] = None) -> MonteCarloResult:
        """決済損益の復元抽出によるモンテカルロ"""
        settings = MonteCarloSettings(
            simulations=self.config.monte_carlo_simulations if simulations is None else simulations,
            starting_balance=self.config.starting_balance if starting_balance is None else starting_balance,
        )
        simulator = MonteCarloSimulator(self.rng)
        return simulator.run(self._closed_profits(trades), settings)

    def format_currency(self, amount: float, currency: Optional[str] = None) -> str:
        return self.converter.format(amount, currency or self.config.account_currency)
