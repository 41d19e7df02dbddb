import pytest
from pydantic import ValidationError

from app.core.config import Settings
from app.core.database import get_db
from app.services.trading_analytics import AnalyticsConfig


def test_settings_default_values():
    settings = Settings()

    assert settings.app_name == "トレードジャーナル分析システム"
    assert settings.account_currency == "INR"
    assert settings.starting_balance == 10000.0
    assert settings.risk_free_rate == 0.0
    assert settings.monte_carlo_simulations == 10000
    assert settings.exchange_rates["USD"] == 83.25
    assert settings.api_v1_str == "/api/v1"


def test_settings_environment_override(monkeypatch):
    monkeypatch.setenv("ACCOUNT_CURRENCY", "usd")
    monkeypatch.setenv("STARTING_BALANCE", "25000")
    monkeypatch.setenv("EXCHANGE_RATES", '{"USD": 80.0, "EUR": 88.0}')

    settings = Settings()

    assert settings.account_currency == "USD"
    assert settings.starting_balance == 25000.0
    assert settings.exchange_rates == {"USD": 80.0, "EUR": 88.0}


def test_settings_rejects_unknown_currency(monkeypatch):
    monkeypatch.setenv("ACCOUNT_CURRENCY", "CHF")

    with pytest.raises(ValidationError):
        Settings()


def test_analytics_config_from_settings(monkeypatch):
    monkeypatch.setenv("RISK_FREE_RATE", "0.01")
    config = AnalyticsConfig.from_settings(Settings())

    assert config.account_currency == "INR"
    assert config.starting_balance == 10000.0
    assert config.risk_free_rate == 0.01


def test_get_db_closes_session():
    generator = get_db()
    session = next(generator)
    assert session is not None
    generator.close()
