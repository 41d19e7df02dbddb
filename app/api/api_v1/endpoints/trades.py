from fastapi import APIRouter, Depends, HTTPException, Query, status
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from app.api.deps import get_report_service, get_trade_service
from app.schemas.trade import BulkImportResult, Trade, TradeCreate, TradeResponse, TradeUpdate
from app.services.report_service import ReportService
from app.services.trade_service import TradeService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[TradeResponse])
async def list_trades(
    start_date: Optional[datetime] = Query(None, alias="from", description="エントリー日時（開始）"),
    end_date: Optional[datetime] = Query(None, alias="to", description="エントリー日時（終了）"),
    symbol: Optional[str] = Query(None, description="銘柄"),
    strategy: Optional[str] = Query(None, description="戦略名"),
    tag: Optional[str] = Query(None, description="タグ"),
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    """トレード一覧（損益付き、新しい順）"""
    trades = trade_service.list_trades(start_date, end_date, symbol, strategy, tag)
    return report_service.with_pnl(trades, trade_service.instrument_map())


def _response(trade: Trade, trade_service: TradeService, report_service: ReportService) -> TradeResponse:
    """銘柄設定を反映した損益付きレスポンス"""
    instrument = trade_service.get_instrument(trade.symbol)
    return report_service.with_pnl([trade], {trade.symbol: instrument} if instrument else None)[0]


@router.get("/{trade_id}", response_model=TradeResponse)
async def get_trade(
    trade_id: str,
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    trade = trade_service.get_trade(trade_id)
    if trade is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="トレードが見つかりません")
    return _response(trade, trade_service, report_service)


@router.post("/", response_model=TradeResponse, status_code=status.HTTP_201_CREATED)
async def create_trade(
    trade: TradeCreate,
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    """トレード登録"""
    try:
        created = trade_service.create_trade(trade)
    except Exception as e:
        logger.error(f"トレード登録エラー: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"トレード登録エラー: {str(e)}"
        )
    return _response(created, trade_service, report_service)


@router.put("/{trade_id}", response_model=TradeResponse)
async def update_trade(
    trade_id: str,
    update: TradeUpdate,
    trade_service: TradeService = Depends(get_trade_service),
    report_service: ReportService = Depends(get_report_service)
):
    try:
        updated = trade_service.update_trade(trade_id, update)
    except Exception as e:
        logger.error(f"トレード更新エラー: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"トレード更新エラー: {str(e)}"
        )
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="トレードが見つかりません")
    return _response(updated, trade_service, report_service)


@router.delete("/{trade_id}")
async def delete_trade(
    trade_id: str,
    trade_service: TradeService = Depends(get_trade_service)
):
    if not trade_service.delete_trade(trade_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="トレードが見つかりません")
    return {"id": trade_id, "message": "トレードを削除しました"}


@router.post("/bulk", response_model=BulkImportResult)
async def bulk_import(
    payload: List[Dict[str, Any]],
    trade_service: TradeService = Depends(get_trade_service)
):
    """一括取込（失敗行はfailedに記録）"""
    return trade_service.bulk_import(payload)
