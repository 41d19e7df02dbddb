from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
import logging

from app.api.deps import get_report_service, get_trade_service
from app.core.config import settings
from app.schemas.analytics import DailySummaryItem, HourlySummaryItem
from app.schemas.report import DashboardKPIs, DashboardSummary
from app.schemas.trade import TradeResponse
from app.services.report_service import ReportService
from app.services.trade_service import TradeService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    """ダッシュボードサマリー"""
    try:
        trades = trade_service.list_trades()
        recent = trades[:settings.recent_trades_limit]
        return report_service.dashboard_summary(trades, recent, trade_service.instrument_map())
    except Exception as e:
        logger.error(f"ダッシュボードサマリーエラー: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"ダッシュボードサマリーエラー: {str(e)}"
        )


@router.get("/kpis", response_model=DashboardKPIs)
async def dashboard_kpis(
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    return report_service.kpis(trade_service.list_trades())


@router.get("/hourly-summary", response_model=List[HourlySummaryItem])
async def hourly_summary(
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    """損益上位の時間帯"""
    return report_service.top_hours(trade_service.list_trades())


@router.get("/recent-trades", response_model=List[TradeResponse])
async def recent_trades(
    limit: Optional[int] = Query(None, ge=1, le=100, description="取得件数"),
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    trades = trade_service.recent_trades(limit or settings.recent_trades_limit)
    return report_service.with_pnl(trades, trade_service.instrument_map())


@router.get("/daily-summary", response_model=List[DailySummaryItem])
async def daily_summary(
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    """直近の日別損益"""
    return report_service.recent_days(trade_service.list_trades())
