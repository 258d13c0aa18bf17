# stockledger/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./stockledger.db"

    # Bearer tokens identifying the acting user
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    LOG_LEVEL: str = "INFO"

    # Alerting thresholds
    DEFAULT_MIN_STOCK_LEVEL: int = 10
    EXPIRY_ALERT_DAYS: int = 90
    AGING_DAYS: int = 90

    # Accounts used by the accounting ledger sink
    INVENTORY_ASSET_ACCOUNT: str = "Inventory Asset"
    COGS_ACCOUNT: str = "Cost of Goods Sold"

    FRONTEND_URL: Optional[str] = None

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
