from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from app.schemas.base import CamelModel
from app.schemas.analytics import ComputedPnL


REQUIRED_TRADE_FIELDS = ("timestamp", "symbol", "instrument_type", "side", "entry")


class InstrumentType(str, Enum):
    """商品区分"""
    FOREX = "forex"
    COMMODITY = "commodity"
    STOCK = "stock"
    STOCK_OPTIONS = "stock-options"
    FUTURES = "futures"
    INDEX_OPTION = "index-option"
    INDEX_FUTURE = "index-future"
    CRYPTO = "crypto"


class TradeSide(str, Enum):
    """売買区分"""
    BUY = "buy"
    SELL = "sell"


class Trade(CamelModel):
    """トレード記録（exit未設定はオープン中）"""
    id: Optional[str] = None
    timestamp: datetime
    exit_timestamp: Optional[datetime] = None
    symbol: str
    instrument_type: InstrumentType = InstrumentType.STOCK
    side: TradeSide = TradeSide.BUY

    entry: float
    exit: Optional[float] = None
    sl: Optional[float] = None
    tp: Optional[float] = None

    lot: Optional[float] = None
    volume: Optional[float] = None
    contract_size: Optional[float] = None
    pip_decimal: Optional[float] = None
    pip_value_per_lot: Optional[float] = None
    fees: Optional[float] = None

    tags: List[str] = Field(default_factory=list)
    strategy: Optional[str] = None
    market_condition: Optional[str] = None
    notes: Optional[str] = None
    screenshot_url: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.exit is not None


class TradeCreate(Trade):
    lot: float = Field(default=1.0, gt=0)


class TradeUpdate(CamelModel):
    """部分更新用（未指定フィールドは変更しない）"""
    timestamp: Optional[datetime] = None
    exit_timestamp: Optional[datetime] = None
    symbol: Optional[str] = None
    instrument_type: Optional[InstrumentType] = None
    side: Optional[TradeSide] = None
    entry: Optional[float] = None
    exit: Optional[float] = None
    sl: Optional[float] = None
    tp: Optional[float] = None
    lot: Optional[float] = Field(default=None, gt=0)
    volume: Optional[float] = None
    contract_size: Optional[float] = None
    pip_decimal: Optional[float] = None
    pip_value_per_lot: Optional[float] = None
    fees: Optional[float] = None
    tags: Optional[List[str]] = None
    strategy: Optional[str] = None
    market_condition: Optional[str] = None
    notes: Optional[str] = None
    screenshot_url: Optional[str] = None

    @model_validator(mode="after")
    def reject_null_required(self) -> "TradeUpdate":
        """必須項目へのnull指定は不可"""
        nulls = [
            field for field in REQUIRED_TRADE_FIELDS
            if field in self.model_fields_set and getattr(self, field) is None
        ]
        if nulls:
            raise ValueError(f"必須項目にnullは指定できません: {', '.join(nulls)}")
        return self


class TradeResponse(Trade):
    id: str
    computed_pnl: Optional[ComputedPnL] = Field(default=None, alias="computedPnL")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Instrument(CamelModel):
    """銘柄設定（pip_value_per_lotのみ損益計算に使用）"""
    symbol: str
    name: Optional[str] = None
    instrument_type: InstrumentType = InstrumentType.FOREX
    contract_size: float = 100000.0
    pip_decimal: Optional[float] = None
    pip_value_per_lot: Optional[float] = None
    quote_to_account_rate: float = 1.0


class BulkImportedItem(CamelModel):
    id: str
    original_index: int


class BulkFailedItem(CamelModel):
    original_index: int
    error: str
    data: Dict[str, Any]


class BulkImportResult(CamelModel):
    imported: List[BulkImportedItem] = Field(default_factory=list)
    failed: List[BulkFailedItem] = Field(default_factory=list)
    total: int = 0
