from sqlalchemy import Column, String, DateTime, Float, Text, Index
from sqlalchemy.sql import func
from app.core.database import Base


class Trade(Base):
    """トレード記録テーブル"""
    __tablename__ = "trades"

    id = Column(String(36), primary_key=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    exit_timestamp = Column(DateTime, nullable=True, index=True)
    symbol = Column(String(20), nullable=False, index=True)
    instrument_type = Column(String(20), nullable=False)
    side = Column(String(4), nullable=False)

    # 価格
    entry = Column(Float, nullable=False)
    exit = Column(Float, nullable=True)
    sl = Column(Float, nullable=True)
    tp = Column(Float, nullable=True)

    # サイズ
    lot = Column(Float, nullable=True)
    volume = Column(Float, nullable=True)
    contract_size = Column(Float, nullable=True)
    pip_decimal = Column(Float, nullable=True)
    pip_value_per_lot = Column(Float, nullable=True)
    fees = Column(Float, default=0.0)

    # ジャーナル情報
    tags = Column(Text, nullable=True)  # JSON配列
    strategy = Column(String(100), nullable=True, index=True)
    market_condition = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    screenshot_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Trade(id={self.id}, symbol={self.symbol}, side={self.side}, entry={self.entry}, exit={self.exit})>"


class Instrument(Base):
    """銘柄マスタテーブル"""
    __tablename__ = "instruments"

    symbol = Column(String(20), primary_key=True)
    name = Column(String(100), nullable=True)
    instrument_type = Column(String(20), nullable=False)
    contract_size = Column(Float, default=100000.0)
    pip_decimal = Column(Float, nullable=True)
    pip_value_per_lot = Column(Float, nullable=True)
    quote_to_account_rate = Column(Float, default=1.0)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        Index('idx_instruments_type', 'instrument_type'),
    )
