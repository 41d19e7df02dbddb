from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.services.currency_converter import CurrencyConverter
from app.services.report_service import ReportService
from app.services.trade_service import TradeService
from app.services.trading_analytics import AnalyticsConfig, TradingAnalytics


def get_trade_service(db: Session = Depends(get_db)) -> TradeService:
    return TradeService(db)


def get_analytics() -> TradingAnalytics:
    return TradingAnalytics(
        config=AnalyticsConfig.from_settings(settings),
        converter=CurrencyConverter(settings.exchange_rates),
    )


def get_report_service(analytics: TradingAnalytics = Depends(get_analytics)) -> ReportService:
    return ReportService(analytics, list_limit=settings.dashboard_list_limit)
