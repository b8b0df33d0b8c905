"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Relational store (MySQL-protocol compatible) ───────────────────────
    db_host: str = "db"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "network32"
    # Full SQLAlchemy URL; takes precedence over the individual parts above
    database_url_override: Optional[str] = None

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Redis (feed preferences) ───────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    feed_settings_ttl: int = 90 * 86400  # refreshed on every save

    # ── MinIO (S3-compatible) ──────────────────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "media"
    media_url_ttl: int = 3600

    # ── Feed ───────────────────────────────────────────────────────────────
    feed_page_size: int = 20
    feed_max_page_size: int = 100
    sidebar_limit: int = 5
    # Newest rows per type ranked for every page; pages beyond it widen the set
    feed_candidate_window: int = 200
    trending_window_days: int = 30
    # Activity score weights: case = views + w*saves, thread = views + w*replies
    feed_case_save_weight: int = 2
    feed_thread_reply_weight: int = 3

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    tracing_enabled: bool = True
    service_name: str = "network32-feed"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
