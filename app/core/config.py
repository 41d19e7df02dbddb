from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "トレードジャーナル分析システム"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./trade_journal.db"

    # Analytics Settings
    account_currency: str = "INR"
    starting_balance: float = 10000.0
    risk_free_rate: float = 0.0
    monte_carlo_simulations: int = 10000

    # 為替レート（1単位あたりのINR）
    exchange_rates: Dict[str, float] = {
        "USD": 83.25,
        "EUR": 89.5,
        "GBP": 105.2,
        "JPY": 0.55,
    }

    # Dashboard Settings
    dashboard_list_limit: int = 6
    recent_trades_limit: int = 5

    # API Settings
    api_v1_str: str = "/api/v1"
    cors_origins: List[str] = ["*"]

    @field_validator("account_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _check_account_currency(self):
        if self.account_currency != "INR" and self.account_currency not in self.exchange_rates:
            raise ValueError(f"未対応の口座通貨です: {self.account_currency}")
        return self


settings = Settings()
