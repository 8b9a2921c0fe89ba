from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "VitalWatch"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "local"  # local, dev, prod (from .env)

    # CORS (from .env, comma-separated)
    BACKEND_CORS_ORIGINS: List[str] = []

    # Logging & Sentry
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float | None = None  # unset: 1.0 local, 0.1 elsewhere
    UVICORN_ACCESS_LOG_LEVEL: str = "WARNING"

    # Monitoring loop
    MONITORING_TICK_SECONDS: float = 3.0
    MONITORING_AUTOSTART: bool = False
    SIMULATION_SEED: int | None = None

    # Thresholds (JSON file; unset or missing uses built-in defaults)
    THRESHOLDS_FILE: str | None = None

    # Engine state bounds
    HISTORY_CAPACITY: int = 100
    HISTORY_DEFAULT_LIMIT: int = 50
    ALERT_RETENTION_LIMIT: int = 100

    # Subscriber delivery
    SUBSCRIBER_TIMEOUT_SECONDS: float = 1.0
    SSE_QUEUE_SIZE: int = 100
    SSE_KEEPALIVE_SECONDS: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()
