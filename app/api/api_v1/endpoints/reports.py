from fastapi import APIRouter, Depends, HTTPException, Query, status
from datetime import datetime
from typing import Optional
import logging

from app.api.deps import get_report_service, get_trade_service
from app.schemas.report import ReportSummary
from app.services.report_service import ReportService
from app.services.trade_service import TradeService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/summary", response_model=ReportSummary)
async def report_summary(
    start_date: Optional[datetime] = Query(None, alias="from", description="エントリー日時（開始）"),
    end_date: Optional[datetime] = Query(None, alias="to", description="エントリー日時（終了）"),
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    """期間レポート（エクイティ・DD・比率・ヒートマップ・戦略別・モンテカルロ）"""
    try:
        trades = trade_service.list_trades(start_date=start_date, end_date=end_date)
        return report_service.report(trades)
    except Exception as e:
        logger.error(f"レポート生成エラー: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"レポート生成エラー: {str(e)}"
        )
