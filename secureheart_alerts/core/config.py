from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = Field("SecureHeart Alerts", env="APP_NAME")
    app_version: str = Field("0.1.0", env="APP_VERSION")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    database_url: str = Field("sqlite:///./data/secureheart.db", env="DATABASE_URL")

    # Push provider credentials are supplied by the deployment environment.
    fcm_project_id: str | None = Field(default=None, env="FCM_PROJECT_ID")
    fcm_access_token: str | None = Field(default=None, env="FCM_ACCESS_TOKEN")
    fcm_endpoint: str = Field("https://fcm.googleapis.com/v1", env="FCM_ENDPOINT")

    push_timeout_seconds: float = Field(default=5.0, env="PUSH_TIMEOUT_SECONDS")
    push_max_concurrency: int = Field(default=10, env="PUSH_MAX_CONCURRENCY")
    push_max_retries: int = Field(default=0, env="PUSH_MAX_RETRIES")
    push_retry_backoff_seconds: float = Field(default=0.5, env="PUSH_RETRY_BACKOFF_SECONDS")

    invitation_ttl_hours: int = Field(default=24, env="INVITATION_TTL_HOURS")
    notification_retention_days: int = Field(default=7, env="NOTIFICATION_RETENTION_DAYS")
    invitation_sweep_interval_hours: float = Field(default=6, env="INVITATION_SWEEP_INTERVAL_HOURS")
    notification_sweep_interval_hours: float = Field(default=24, env="NOTIFICATION_SWEEP_INTERVAL_HOURS")
    sweep_batch_size: int = Field(default=500, env="SWEEP_BATCH_SIZE")
    scheduler_enabled: bool = Field(default=True, env="SCHEDULER_ENABLED")

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
