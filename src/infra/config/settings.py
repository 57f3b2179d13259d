from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "IntentTransfer"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",  # Frontend development
        "http://localhost:8081",  # Mobile bundler
        "null"  # For file:// protocol
    ]

    # Intent processing backend
    INTENT_SERVICE_URL: str = "http://localhost:5001"
    INTENT_PROCESS_PATH: str = "/api/enhanced-intent/process"
    BALANCE_CHECK_PATH: str = "/api/wallet/balance"

    # HTTP client settings (seconds)
    HTTP_DEFAULT_TIMEOUT: float = 10.0
    HTTP_INTENT_TIMEOUT: float = 60.0  # classification + execution can be slow
    HTTP_BALANCE_TIMEOUT: float = 10.0
    HTTP_MAX_CONNECTIONS: int = 100
    HTTP_MAX_KEEPALIVE_CONNECTIONS: int = 20

    # Funding wait / auto-retry
    FUNDING_POLL_INTERVAL_SECONDS: float = 5.0
    FUNDING_MAX_WAIT_SECONDS: float = 900.0  # 15 minutes
    TRANSFER_MAX_AUTO_RETRIES: int = 3
    TRANSFER_RETRY_DELAY_SECONDS: float = 0.5
    TRANSFER_MAX_TRACKED_USERS: int = 10000  # finished sessions beyond this are evicted

    # Token inference
    SUPPORTED_TOKENS: List[str] = ["TON", "DUCK", "USDT", "WTON", "SEI", "USDC"]
    NATIVE_TOKEN_SYMBOL: str = "TON"

    # Rate Limiting
    TRANSFER_RATE_LIMIT_ENABLED: bool = False
    TRANSFER_DAILY_LIMIT: int = 50  # submissions per user per day

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10

    # Activity logging (PostgreSQL)
    TRANSFER_ACTIVITY_LOGGING_ENABLED: bool = False
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "intent_transfer"
    POSTGRES_MIN_POOL_SIZE: int = 2
    POSTGRES_MAX_POOL_SIZE: int = 10
    DB_LOGGING_ENABLED: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
