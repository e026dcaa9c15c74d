"""
Configuration and settings for the Around service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service and worker."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="")
    cors_origins: list[str] = Field(default=["*"])

    # Bearer tokens (HS256)
    jwt_signing_key: str = Field(default="secret", alias="JWT_SIGNING_KEY")
    jwt_username_claim: str = Field(default="username")

    # Geo index (Elasticsearch)
    es_url: str = Field(default="http://localhost:9200", alias="ES_URL")
    es_index: str = Field(default="around", alias="ES_INDEX")
    es_request_timeout: float = Field(default=10.0, alias="ES_REQUEST_TIMEOUT")

    # Object store (S3-compatible)
    s3_endpoint: Optional[str] = Field(default=None, alias="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, alias="S3_REGION")
    s3_bucket: Optional[str] = Field(default=None, alias="S3_BUCKET")
    s3_public_base_url: Optional[str] = Field(
        default=None, alias="S3_PUBLIC_BASE_URL"
    )
    aws_access_key_id: Optional[str] = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )

    # Wide-column store (Bigtable)
    bigtable_project_id: Optional[str] = Field(
        default=None, alias="BIGTABLE_PROJECT_ID"
    )
    bigtable_instance_id: Optional[str] = Field(
        default=None, alias="BIGTABLE_INSTANCE_ID"
    )
    bigtable_table_id: str = Field(default="post", alias="BIGTABLE_TABLE_ID")

    # Ingestion outbox (any SQLAlchemy URL)
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # Reconcile queue (Redis)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    redis_queue_key: str = Field(
        default="around:reconcile", alias="REDIS_QUEUE_KEY"
    )

    # Search
    default_search_radius_km: float = Field(default=200.0, gt=0)
    max_page_size: int = Field(default=1000, ge=1)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="AROUND_USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
