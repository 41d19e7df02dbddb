from sqlalchemy.orm import Session
from pydantic import ValidationError
from datetime import datetime
from typing import Any, Dict, List, Optional
import json
import logging
import uuid

from app.models.trades import Trade as TradeModel, Instrument as InstrumentModel
from app.schemas.trade import (
    BulkFailedItem, BulkImportedItem, BulkImportResult, Instrument, Trade,
    TradeCreate, TradeUpdate
)

logger = logging.getLogger(__name__)

BULK_REQUIRED_FIELDS = ("timestamp", "symbol", "entry", "lot")


def _naive_local(moment: Optional[datetime]) -> Optional[datetime]:
    """タイムゾーン付き時刻はローカル時刻に変換して保存（SQLiteはTZを保持しない）"""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


class TradeService:
    """トレード記録の永続化"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_schema(row: TradeModel) -> Trade:
        return Trade(
            id=row.id,
            timestamp=row.timestamp,
            exit_timestamp=row.exit_timestamp,
            symbol=row.symbol,
            instrument_type=row.instrument_type,
            side=row.side,
            entry=row.entry,
            exit=row.exit,
            sl=row.sl,
            tp=row.tp,
            lot=row.lot,
            volume=row.volume,
            contract_size=row.contract_size,
            pip_decimal=row.pip_decimal,
            pip_value_per_lot=row.pip_value_per_lot,
            fees=row.fees,
            tags=json.loads(row.tags) if row.tags else [],
            strategy=row.strategy,
            market_condition=row.market_condition,
            notes=row.notes,
            screenshot_url=row.screenshot_url,
        )

    @staticmethod
    def _column_values(trade: TradeCreate) -> Dict[str, Any]:
        values = trade.model_dump(exclude={"id", "tags"})
        values["instrument_type"] = trade.instrument_type.value
        values["side"] = trade.side.value
        if values["volume"] is None:
            values["volume"] = trade.lot
        if values["fees"] is None:
            values["fees"] = 0.0
        for field in ("timestamp", "exit_timestamp"):
            values[field] = _naive_local(values[field])
        values["tags"] = json.dumps(trade.tags) if trade.tags else None
        return values

    def list_trades(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        symbol: Optional[str] = None,
        strategy: Optional[str] = None,
        tag: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Trade]:
        query = self.db.query(TradeModel)
        start_date = _naive_local(start_date)
        end_date = _naive_local(end_date)

        if start_date:
            query = query.filter(TradeModel.timestamp >= start_date)
        if end_date:
            query = query.filter(TradeModel.timestamp <= end_date)
        if symbol:
            query = query.filter(TradeModel.symbol == symbol)
        if strategy:
            query = query.filter(TradeModel.strategy == strategy)
        if tag:
            query = query.filter(TradeModel.tags.like(f"%{tag}%"))

        query = query.order_by(TradeModel.timestamp.desc())
        if limit:
            query = query.limit(limit)

        return [self.to_schema(row) for row in query.all()]

    def recent_trades(self, limit: int = 5) -> List[Trade]:
        return self.list_trades(limit=limit)

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        row = self.db.get(TradeModel, trade_id)
        return self.to_schema(row) if row else None

    def create_trade(self, trade: TradeCreate) -> Trade:
        row = TradeModel(id=str(uuid.uuid4()), **self._column_values(trade))
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except Exception as e:
            self.db.rollback()
            logger.error(f"トレード保存エラー: {str(e)}")
            raise

        logger.info(f"トレード登録: {row.id} {row.symbol} {row.side}")
        return self.to_schema(row)

    def update_trade(self, trade_id: str, update: TradeUpdate) -> Optional[Trade]:
        row = self.db.get(TradeModel, trade_id)
        if row is None:
            return None

        changes = update.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if field == "tags":
                value = json.dumps(value) if value else None
            elif field in ("instrument_type", "side") and value is not None:
                value = value.value
            elif field in ("timestamp", "exit_timestamp"):
                value = _naive_local(value)
            setattr(row, field, value)

        try:
            self.db.commit()
            self.db.refresh(row)
        except Exception as e:
            self.db.rollback()
            logger.error(f"トレード更新エラー: {str(e)}")
            raise

        logger.info(f"トレード更新: {trade_id} ({', '.join(changes) or '変更なし'})")
        return self.to_schema(row)

    def delete_trade(self, trade_id: str) -> bool:
        row = self.db.get(TradeModel, trade_id)
        if row is None:
            return False

        self.db.delete(row)
        self.db.commit()
        logger.info(f"トレード削除: {trade_id}")
        return True

    def bulk_import(self, payload: List[Dict[str, Any]]) -> BulkImportResult:
        """一括取込（行単位で検証し、失敗行は記録して続行）"""
        result = BulkImportResult(total=len(payload))

        for index, data in enumerate(payload):
            try:
                missing = [f for f in BULK_REQUIRED_FIELDS if data.get(f) in (None, "")]
                if missing:
                    raise ValueError(f"必須項目が不足しています: {', '.join(missing)}")

                trade = self.create_trade(TradeCreate.model_validate(data))
                result.imported.append(BulkImportedItem(id=trade.id, original_index=index))

            except (ValueError, ValidationError) as e:
                logger.warning(f"一括取込スキップ: {index}行目 {str(e)}")
                result.failed.append(BulkFailedItem(original_index=index, error=str(e), data=data))

        logger.info(f"一括取込完了: {len(result.imported)}/{result.total}件")
        return result

    def upsert_instrument(self, instrument: Instrument) -> Instrument:
        values = instrument.model_dump()
        values["instrument_type"] = instrument.instrument_type.value

        row = self.db.get(InstrumentModel, instrument.symbol)
        if row is None:
            row = InstrumentModel(**values)
            self.db.add(row)
        else:
            for field, value in values.items():
                setattr(row, field, value)

        self.db.commit()
        self.db.refresh(row)
        return Instrument.model_validate(row)

    def get_instrument(self, symbol: str) -> Optional[Instrument]:
        row = self.db.get(InstrumentModel, symbol)
        return Instrument.model_validate(row) if row else None

    def instrument_map(self) -> Dict[str, Instrument]:
        return {
            row.symbol: Instrument.model_validate(row)
            for row in self.db.query(InstrumentModel).all()
        }
