"""Application settings using Pydantic Settings.

Every field can be overridden by an environment variable of the same name
(case-insensitive) or a line in ``.env``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings of the comments API and its thread client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="vidtalk", description="Service name, also the log file stem")
    app_version: str = Field(default="0.1.0")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development"
    )
    debug: bool = Field(default=True)

    # Viewer identity (tokens are issued by the account service)
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        min_length=32,
        description="Shared HS256 key used to verify access tokens",
    )
    auth_algorithm: str = Field(default="HS256")
    auth_access_token_expire_minutes: int = Field(
        default=15, description="Lifetime of tokens minted by tests and tooling"
    )

    # Cassandra: comments, vote ledger, like counters, author profiles
    cassandra_hosts: list[str] = Field(default=["localhost"])
    cassandra_port: int = Field(default=9042)
    cassandra_keyspace: str = Field(default="vidtalk")
    cassandra_username: str | None = Field(default=None)
    cassandra_password: str | None = Field(default=None)
    cassandra_protocol_version: int = Field(default=4)
    cassandra_local_dc: str | None = Field(
        default=None, description="Local datacenter for routing and replication"
    )
    cassandra_replication_factor: int = Field(
        default=1, ge=1, description="Replicas per datacenter when creating the keyspace"
    )
    cassandra_consistency: Literal["ONE", "LOCAL_ONE", "QUORUM", "LOCAL_QUORUM"] = Field(
        default="LOCAL_QUORUM", description="Consistency of plain reads and writes"
    )
    cassandra_serial_consistency: Literal["SERIAL", "LOCAL_SERIAL"] = Field(
        default="LOCAL_SERIAL", description="Paxos consistency of vote ledger writes"
    )
    cassandra_connect_timeout: float = Field(default=10.0)
    cassandra_request_timeout: float = Field(default=10.0)
    cassandra_create_schema: bool = Field(
        default=True, description="Create the keyspace and tables on startup"
    )

    # Redis: optional author profile cache
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_max_connections: int = Field(default=10)
    redis_socket_timeout: float = Field(default=2.0)
    redis_socket_connect_timeout: float = Field(default=2.0)
    redis_health_check_interval: int = Field(default=30)

    # Comment threads
    comment_page_size: int = Field(
        default=50, ge=1, le=500, description="Top-level comments per thread load"
    )
    comment_reply_limit: int = Field(
        default=200, ge=1, description="Maximum replies loaded per top-level comment"
    )
    comment_max_length: int = Field(
        default=10000, ge=1, description="Maximum comment body length"
    )
    vote_cas_max_attempts: int = Field(
        default=5, ge=1, description="Retries for a contended vote compare-and-swap"
    )
    profile_cache_ttl_seconds: int = Field(
        default=300, ge=0, description="Author profile cache TTL (0 disables)"
    )

    # Moderation
    moderation_page_size: int = Field(default=50, ge=1, le=200)
    moderation_lookback_months: int = Field(
        default=12, ge=1, description="Months of history scanned by moderation"
    )

    # Thread client (src.threads.backend)
    client_base_url: str = Field(default="http://localhost:8000")
    client_timeout_seconds: float = Field(default=10.0, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Console renderer or JSON lines on stdout"
    )
    log_include_caller_info: bool = Field(default=True)
    log_dir: str = Field(default="logs")
    log_to_file: bool = Field(default=True, description="Write rotating log files")
    log_file_max_bytes: int = Field(default=10 * 1024 * 1024)
    log_file_backup_count: int = Field(default=5)
    log_requests: bool = Field(default=True, description="Log HTTP request start/finish")
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths never logged by the request middleware",
    )

    # CORS (the player and studio front-ends call the API cross-origin)
    cors_origins: list[str] = Field(default=["*"])
    cors_allow_credentials: bool = Field(default=True)
    cors_max_age: int = Field(default=600)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
