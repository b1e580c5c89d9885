from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    # Runtime
    ENV: str = "development"
    SERVICE_NAME: str = "wkit"

    # Logging
    LOG_JSON: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_TIMEZONE: str = "Asia/Shanghai"

    # Outbound HTTP
    HTTP_TIMEOUT: float = 20.0
    HTTP_CONNECT_TIMEOUT: float = 10.0
    HTTP_USER_AGENT: str = "wkit/0.1"
    HTTP_MAX_KEEPALIVE_CONNECTIONS: int = 100
    HTTP_KEEPALIVE_EXPIRY: float = 90.0

    # Token cache
    TOKEN_CLEANUP_INTERVAL_MINUTES: int = 30

    # Observability
    METRICS_ENABLED: bool = False

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

settings = Settings()
