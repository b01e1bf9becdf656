from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///data/portwatch.db"
    ALERT_RULES_CONFIG: str = "config/alert_rules.yaml"
    NOTIFY_CONFIG: str = "config/notify.yaml"
    LOG_LEVEL: str = "INFO"
    # Durable JSON-lines log of high/critical congestion computations
    CONGESTION_ALERT_LOG: str = "data/congestion-alerts.jsonl"
    # Also push high/critical congestion summaries straight to the notifier
    CONGESTION_DIRECT_NOTIFY: bool = False
    # Connection pool
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    # Upper bound on a single position/document query
    DB_STATEMENT_TIMEOUT_SECONDS: float = 10.0

    # Congestion classifier
    CONGESTION_WINDOW_HOURS: float = 6.0
    CONGESTION_SCAN_RADIUS_NM: float = 25.0
    ANCHORAGE_RADIUS_NM: float = 8.0
    ANCHORAGE_MAX_SPEED_KN: float = 2.0
    APPROACH_RADIUS_NM: float = 20.0
    APPROACH_MAX_SPEED_KN: float = 5.0
    ANCHORAGE_SCORE_WEIGHT: int = 15
    APPROACH_SCORE_WEIGHT: int = 5
    LEVEL_MODERATE_SCORE: int = 10
    LEVEL_HIGH_SCORE: int = 25
    LEVEL_CRITICAL_SCORE: int = 50
    WAIT_HOURS_PER_ANCHORED: float = 6.0
    WAIT_HOURS_PER_APPROACHING: float = 2.0
    DETENTION_COST_PER_HOUR: float = 500.0
    CONGESTION_VESSEL_LIST_LIMIT: int = 25
    CONGESTION_POSITION_LIMIT: int = 5000

    # Pre-arrival predictor
    PRE_ARRIVAL_RECENCY_HOURS: float = 12.0
    PRE_ARRIVAL_WINDOW_HOURS: float = 48.0
    PRE_ARRIVAL_SEARCH_RADIUS_NM: float = 200.0
    PRE_ARRIVAL_MIN_SPEED_KN: float = 3.0
    INBOUND_MAX_HEADING_DIFF_DEG: float = 45.0
    CONFIDENCE_HIGH_MAX_DIFF_DEG: float = 15.0
    CONFIDENCE_MEDIUM_MAX_DIFF_DEG: float = 30.0
    PRE_ARRIVAL_POSITION_LIMIT: int = 8000

    # Alert engine
    ALERT_DEDUP_WINDOW_MINUTES: float = 60.0
    ALERT_HISTORY_LIMIT: int = 500
    ETA_CRITICAL_HOURS: float = 2.0
    SNAPSHOT_CACHE_TTL_SECONDS: float = 60.0
    NOTIFY_TIMEOUT_SECONDS: float = 5.0
    NOTIFY_MAX_WORKERS: int = 4

    # Scheduler
    SWEEP_INTERVAL_MINUTES: float = 15.0
    SWEEP_MAX_WORKERS: int = 4

    # API authentication (if unset, all requests pass, as in local dev)
    PORTWATCH_API_KEY: str | None = None
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:5173"
    # Per-client request limit applied to every route
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "60/minute"


settings = Settings()
