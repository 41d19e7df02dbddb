import numpy as np
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.main import app
from app.api.deps import get_analytics
from app.core.database import get_db, Base
from app.models import trades  # noqa: F401
from app.schemas.trade import Instrument
from app.services.trade_service import TradeService
from app.services.trading_analytics import AnalyticsConfig, TradingAnalytics

# テスト用データベース
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


def override_get_analytics():
    return TradingAnalytics(
        config=AnalyticsConfig(starting_balance=10000.0, monte_carlo_simulations=500),
        rng=np.random.default_rng(0)
    )


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_analytics] = override_get_analytics


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


client = TestClient(app)


def forex_trade(**overrides):
    data = {
        "timestamp": "2024-01-08T09:00:00",
        "exitTimestamp": "2024-01-08T12:00:00",
        "symbol": "EURUSD",
        "instrumentType": "forex",
        "side": "buy",
        "entry": 1.1000,
        "exit": 1.1050,
        "lot": 1,
        "strategy": "Breakout",
        "tags": ["london"],
    }
    data.update(overrides)
    return data


def test_root_endpoint():
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert "status" in data
    assert "version" in data
    assert data["status"] == "running"
    assert data["accountCurrency"] == "INR"


def test_health_endpoint():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"


def test_api_health_endpoint():
    response = client.get("/api/v1/health/")
    assert response.status_code == 200
    data = response.json()
    assert "status" in data
    assert "timestamp" in data
    assert "service" in data


def test_database_health_endpoint():
    response = client.get("/api/v1/health/database")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestTradesAPI:

    def test_create_trade(self):
        response = client.post("/api/v1/trades/", json=forex_trade())
        assert response.status_code == 201

        data = response.json()
        assert data["id"]
        assert data["instrumentType"] == "forex"
        assert data["computedPnL"]["profitPips"] == pytest.approx(50)
        # 50pips × $10 × 1lot = $500 → ₹41,625
        assert data["computedPnL"]["profitMoney"] == pytest.approx(41625)

    def test_create_trade_validation_error(self):
        response = client.post("/api/v1/trades/", json=forex_trade(instrumentType="bond"))
        assert response.status_code == 422

    def test_get_update_delete_trade(self):
        trade_id = client.post("/api/v1/trades/", json=forex_trade()).json()["id"]

        response = client.get(f"/api/v1/trades/{trade_id}")
        assert response.status_code == 200
        assert response.json()["symbol"] == "EURUSD"

        response = client.put(f"/api/v1/trades/{trade_id}", json={"side": "sell", "notes": "逆指値"})
        assert response.status_code == 200
        data = response.json()
        assert data["side"] == "sell"
        assert data["notes"] == "逆指値"
        assert data["computedPnL"]["profitPips"] == pytest.approx(-50)

        response = client.delete(f"/api/v1/trades/{trade_id}")
        assert response.status_code == 200
        assert client.get(f"/api/v1/trades/{trade_id}").status_code == 404

    def test_missing_trade(self):
        assert client.get("/api/v1/trades/missing").status_code == 404
        assert client.put("/api/v1/trades/missing", json={"exit": 1.2}).status_code == 404
        assert client.delete("/api/v1/trades/missing").status_code == 404

    def test_update_rejects_null_required_fields(self):
        trade_id = client.post("/api/v1/trades/", json=forex_trade()).json()["id"]

        for field in ("symbol", "entry", "timestamp", "instrumentType", "side"):
            response = client.put(f"/api/v1/trades/{trade_id}", json={field: None})
            assert response.status_code == 422

        assert client.put(f"/api/v1/trades/{trade_id}", json={"lot": 0}).status_code == 422
        # 任意項目はnullでクリアできる
        response = client.put(f"/api/v1/trades/{trade_id}", json={"strategy": None})
        assert response.status_code == 200
        assert response.json()["strategy"] is None
        assert response.json()["symbol"] == "EURUSD"

    def test_instrument_pip_value_applies_to_every_response(self):
        db = TestingSessionLocal()
        try:
            TradeService(db).upsert_instrument(
                Instrument(symbol="EURUSD", instrument_type="forex", pip_value_per_lot=5.0)
            )
        finally:
            db.close()

        # 50pips × $5 × 1lot = $250 → ₹20,812.5
        created = client.post("/api/v1/trades/", json=forex_trade()).json()
        assert created["computedPnL"]["profitMoney"] == pytest.approx(20812.5)

        updated = client.put(f"/api/v1/trades/{created['id']}", json={"notes": "更新"}).json()
        fetched = client.get(f"/api/v1/trades/{created['id']}").json()
        assert updated["computedPnL"] == fetched["computedPnL"] == created["computedPnL"]

    def test_list_trades_with_filters(self):
        client.post("/api/v1/trades/", json=forex_trade())
        client.post("/api/v1/trades/", json=forex_trade(
            timestamp="2024-01-09T09:00:00", exitTimestamp="2024-01-09T10:00:00",
            symbol="AAPL", instrumentType="stock", entry=180, exit=185, volume=10, strategy="Swing", tags=[]
        ))

        response = client.get("/api/v1/trades/")
        assert response.status_code == 200
        data = response.json()
        assert [t["symbol"] for t in data] == ["AAPL", "EURUSD"]
        assert data[0]["computedPnL"]["profitMoney"] == pytest.approx(50)

        assert len(client.get("/api/v1/trades/", params={"symbol": "EURUSD"}).json()) == 1
        assert len(client.get("/api/v1/trades/", params={"strategy": "Swing"}).json()) == 1
        assert len(client.get("/api/v1/trades/", params={"tag": "london"}).json()) == 1
        assert len(client.get("/api/v1/trades/", params={"from": "2024-01-09T00:00:00"}).json()) == 1

    def test_bulk_import(self):
        payload = [
            forex_trade(),
            {"timestamp": "2024-01-08T10:00:00", "symbol": "MSFT", "entry": 400.0},
        ]

        response = client.post("/api/v1/trades/bulk", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert len(data["imported"]) == 1
        assert data["imported"][0]["originalIndex"] == 0
        assert data["failed"][0]["originalIndex"] == 1
        assert data["failed"][0]["data"]["symbol"] == "MSFT"


class TestDashboardAPI:

    def test_summary_empty(self):
        response = client.get("/api/v1/dashboard/summary")
        assert response.status_code == 200

        data = response.json()
        assert data["totalTrades"] == 0
        assert data["totalPnL"] == 0
        assert data["profitFactor"] == 0
        assert data["recentTrades"] == []
        assert data["dailySummary"] == []

    def test_summary_with_only_wins(self):
        client.post("/api/v1/trades/", json=forex_trade())

        response = client.get("/api/v1/dashboard/summary")
        assert response.status_code == 200

        data = response.json()
        assert data["totalTrades"] == 1
        assert data["totalPnL"] == pytest.approx(41625)
        assert data["profitFactor"] is None
        assert data["winRate"] == pytest.approx(100)
        assert len(data["recentTrades"]) == 1
        assert data["dailySummary"][0]["date"] == "Jan 8"

    def test_daily_summary_buckets_by_utc_date(self):
        client.post("/api/v1/trades/", json=forex_trade(
            timestamp="2024-01-05T20:00:00Z", exitTimestamp="2024-01-05T23:30:00Z"
        ))

        daily = client.get("/api/v1/dashboard/daily-summary").json()
        assert [item["date"] for item in daily] == ["Jan 5"]

    def test_kpis_and_lists(self):
        client.post("/api/v1/trades/", json=forex_trade())
        client.post("/api/v1/trades/", json=forex_trade(exit=1.0980, exitTimestamp="2024-01-08T13:00:00"))

        kpis = client.get("/api/v1/dashboard/kpis").json()
        assert kpis["closedTrades"] == 2
        assert kpis["profitFactor"] == pytest.approx(2.5)
        assert "totalPnLChange" in kpis

        hours = client.get("/api/v1/dashboard/hourly-summary").json()
        assert len(hours) == 6
        assert hours[0]["hour"] == 12

        recent = client.get("/api/v1/dashboard/recent-trades", params={"limit": 1}).json()
        assert len(recent) == 1

        daily = client.get("/api/v1/dashboard/daily-summary").json()
        assert daily == [{"date": "Jan 8", "pnl": pytest.approx(41625 - 16650), "trades": 2}]


class TestReportsAPI:

    def test_report_summary(self):
        client.post("/api/v1/trades/", json=forex_trade())
        client.post("/api/v1/trades/", json=forex_trade(exit=1.0980, exitTimestamp="2024-01-08T13:00:00"))

        response = client.get("/api/v1/reports/summary")
        assert response.status_code == 200

        data = response.json()
        assert data["currency"] == "INR"
        assert len(data["equityCurve"]) == 3
        assert len(data["heatmap"]["byWeekdayHour"]) == 7
        assert len(data["heatmap"]["counts"][0]) == 24
        assert data["streaks"] == {"longestWin": 1, "longestLoss": 1}
        assert data["monteCarlo"]["simulations"] == 500
        assert data["strategyBreakdown"][0]["strategy"] == "Breakout"
        assert "avgRR" in data

    def test_report_summary_date_range(self):
        client.post("/api/v1/trades/", json=forex_trade())

        response = client.get("/api/v1/reports/summary", params={"from": "2024-02-01T00:00:00"})
        assert response.status_code == 200

        data = response.json()
        assert len(data["equityCurve"]) == 1
        assert data["monteCarlo"]["simulations"] == 0
        assert data["profitFactor"] == 0
