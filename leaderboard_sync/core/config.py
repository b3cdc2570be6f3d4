from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://localhost:5432/leaderboard"
    ENCRYPTION_KEY: str = ""
    SYNC_API_KEY: str = ""
    TRADOVATE_ENVIRONMENT: str = "demo"
    TRADOVATE_DEMO_URL: str = "https://demo.tradovateapi.com/v1"
    TRADOVATE_LIVE_URL: str = "https://live.tradovateapi.com/v1"
    TRADOVATE_APP_ID: str = "ProofOfPips"
    TRADOVATE_APP_VERSION: str = "1.0"
    TRADESYNCER_API_URL: str = "https://api.tradesyncer.com/v1"
    UPSTREAM_TIMEOUT_SECONDS: float = 20.0
    TRADE_HISTORY_LIMIT: int = 500
    SYNC_HISTORY_LIMIT: int = 20
    SYNC_INTERVAL_SECONDS: int = 3600
    SESSION_TTL_SECONDS: int = 3600
    SERVICE_PORT: int = 3001

    @property
    def async_database_url(self) -> str:
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def tradovate_base_url(self) -> str:
        if self.TRADOVATE_ENVIRONMENT == "live":
            return self.TRADOVATE_LIVE_URL
        return self.TRADOVATE_DEMO_URL

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
