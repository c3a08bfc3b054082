"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Postgres ───────────────────────────────────────────────────────────
    postgres_host: str = "postgres"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_database: str = "geo_feed"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_database}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379

    # ── Kafka ──────────────────────────────────────────────────────────────
    kafka_bootstrap_servers: str = "kafka:9092"
    kafka_topic_notifications: str = "notifications"

    # ── Feed composition ───────────────────────────────────────────────────
    home_country: str = "Moldova"
    feed_default_page_size: int = 10
    explorer_window_days: int = 7          # explorer buckets only see recent posts
    explorer_nearby_min_m: float = 10_000
    explorer_nearby_max_m: float = 50_000
    explorer_nearby_candidates: int = 100  # geo-tagged posts scanned for "nearby"
    explorer_default_minutes: int = 60

    # ── Recommendation settings ────────────────────────────────────────────
    max_recommendation_locations: int = 3
    suggestion_lookback_days: int = 30
    suggestion_limit: int = 3

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "geo-feed-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
