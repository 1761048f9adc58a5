# backoffice/config.py
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./database_backoffice.db"

    FRONTEND_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # Billing
    GST_RATE: Decimal = Decimal("18")
    ORDER_NUMBER_PREFIX: str = "ORD"
    INVOICE_NUMBER_PREFIX: str = "INV"
    SEQUENCE_PAD: int = 4

    # Bounded retries for writes that race on unique constraints
    RETRY_ATTEMPTS: int = 5
    RETRY_BACKOFF_SECONDS: float = 0.05

    # Products at or below this on-hand quantity count as low stock
    LOW_STOCK_THRESHOLD: int = 10

    class Config:
        env_file: ClassVar[str] = str(env_path)

settings = Settings()
