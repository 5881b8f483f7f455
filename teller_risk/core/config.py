"""Configuration management for the Teller Risk Ledger service.

Configuration is loaded from environment variables. Detection thresholds
and severity weights are configuration data so they can be tuned without
touching detector logic.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Constants for database URL construction
POSTGRESQL_PREFIX = "postgresql://"
ASYNCPG_DRIVER = "+asyncpg"
PSYCOPG_DRIVER = "+psycopg"


class AppEnvironment(str, Enum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseSettings):
    name: str = Field(default="teller-risk-ledger")
    env: AppEnvironment = Field(default=AppEnvironment.LOCAL)
    version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    log_level: LogLevel = Field(default=LogLevel.INFO)

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        if isinstance(v, AppEnvironment):
            return v
        return AppEnvironment(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        return LogLevel(v)


class ServerConfig(BaseSettings):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    workers: int = Field(default=4)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class DatabaseConfig(BaseSettings):
    # Primary: Full connection URL
    url_app: str = Field(default="", alias="database_url_app")

    # Admin URL for schema setup (optional)
    url_admin: str = Field(default="", alias="database_url_admin")

    # Fallback: Individual components
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    name: str = Field(default="teller_risk")
    user: str = Field(default="postgres")
    password: SecretStr = Field(default=SecretStr(""))
    pool_size: int = Field(default=10)
    max_overflow: int = Field(default=20)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)
    echo: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        populate_by_name=True,
    )

    @property
    def async_url(self) -> str:
        """Build async database URL."""
        if self.url_app:
            url = self.url_app
            if url.startswith(POSTGRESQL_PREFIX) and ASYNCPG_DRIVER not in url:
                new_prefix = POSTGRESQL_PREFIX.removesuffix("://") + ASYNCPG_DRIVER + "://"
                url = url.replace(POSTGRESQL_PREFIX, new_prefix, 1)
            return url
        password = self.password.get_secret_value()
        return f"postgresql{ASYNCPG_DRIVER}://{self.user}:{password}@{self.host}:{self.port}/{self.name}"

    @property
    def sync_url(self) -> str:
        """Build sync database URL for schema setup."""
        url = self.url_admin or self.url_app
        if url:
            if ASYNCPG_DRIVER in url:
                url = url.replace(ASYNCPG_DRIVER, PSYCOPG_DRIVER, 1)
            elif PSYCOPG_DRIVER not in url:
                url = url.replace(POSTGRESQL_PREFIX, "postgresql+psycopg://", 1)
            return url
        password = self.password.get_secret_value()
        return f"postgresql{PSYCOPG_DRIVER}://{self.user}:{password}@{self.host}:{self.port}/{self.name}"


class StoreConfig(BaseSettings):
    """Retry policy and lock bounds for store round trips."""

    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay_ms: int = Field(default=50, ge=0)
    retry_max_delay_ms: int = Field(default=1000, ge=0)
    lock_timeout_ms: int = Field(default=5000, ge=0)
    statement_timeout_ms: int = Field(default=30000, ge=0)
    verify_batch_size: int = Field(default=500, ge=1)
    history_limit: int = Field(default=500, ge=1)

    model_config = SettingsConfigDict(env_prefix="STORE_")


class HistoryThresholds(BaseSettings):
    """Minimum observations each detector needs before it will speak."""

    profile_min_observations: int = Field(default=2)
    statistical_min_history: int = Field(default=5)
    behavioral_min_history: int = Field(default=10)
    transaction_type_min_history: int = Field(default=15)
    weekday_min_history: int = Field(default=20)
    peer_min_members: int = Field(default=3)

    model_config = SettingsConfigDict(env_prefix="DETECTION_HISTORY_")


class DetectionConfig(BaseSettings):
    zscore_threshold: float = Field(default=2.5)
    business_hours_start: int = Field(default=8, ge=0, le=23)
    business_hours_end: int = Field(default=18, ge=0, le=23)
    early_morning_end: int = Field(default=5, ge=0, le=23)
    late_night_start: int = Field(default=22, ge=0, le=23)
    rapid_withdrawal_count: int = Field(default=3, ge=1)
    rapid_withdrawal_window_minutes: int = Field(default=60, ge=1)
    large_transaction_threshold: float = Field(default=100000.0, gt=0)
    layering_deposit_ratio: float = Field(default=0.5)
    layering_withdrawal_ratio: float = Field(default=0.8)
    layering_window_hours: int = Field(default=24, ge=1)
    statistical_zscore_threshold: float = Field(default=2.0)
    volume_spike_multiplier: float = Field(default=2.0)
    volume_baseline_days: int = Field(default=30, ge=1)
    peer_similarity_ratio: float = Field(default=0.5)
    peer_risk_multiplier: float = Field(default=2.0)
    peer_risk_floor: float = Field(default=0.5)
    timezone: str = Field(default="UTC")
    history: HistoryThresholds = Field(default_factory=HistoryThresholds)

    model_config = SettingsConfigDict(env_prefix="DETECTION_")

    @model_validator(mode="after")
    def validate_business_hours(self) -> DetectionConfig:
        if self.business_hours_start > self.business_hours_end:
            raise ValueError("business_hours_start must not be after business_hours_end")
        return self


class RiskConfig(BaseSettings):
    # Per-severity overrides of the aggregator's weight table; unset keeps the table value
    weight_low: float | None = Field(default=None, ge=0)
    weight_medium: float | None = Field(default=None, ge=0)
    weight_high: float | None = Field(default=None, ge=0)
    weight_critical: float | None = Field(default=None, ge=0)
    hold_threshold: float = Field(default=50.0)
    max_score: float = Field(default=100.0)

    model_config = SettingsConfigDict(env_prefix="RISK_")


class Auth0Config(BaseSettings):
    domain: str = Field(default="")
    audience: str = Field(default="")
    algorithms: str = Field(default="RS256")
    jwks_cache_ttl: int = Field(default=600)

    model_config = SettingsConfigDict(env_prefix="AUTH0_")

    @property
    def jwks_url(self) -> str:
        """Build JWKS URL."""
        return f"https://{self.domain}/.well-known/jwks.json"

    @property
    def issuer_url(self) -> str:
        """Build issuer URL."""
        return f"https://{self.domain}/"

    @property
    def algorithms_list(self) -> list[str]:
        """Parse Auth0 algorithms string into a list."""
        return [algo.strip() for algo in self.algorithms.split(",")]


class ObservabilityConfig(BaseSettings):
    service_name: str = Field(default="teller-risk-ledger")
    otlp_endpoint: str | None = Field(default=None)
    otlp_insecure: bool = Field(default=True)
    log_record_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="OTEL_")


class SecurityConfig(BaseSettings):
    cors_allowed_origins: str = Field(default="http://localhost:3000,http://localhost:8080")
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["GET", "POST"])
    cors_allow_headers: list[str] = Field(default=["Authorization", "Content-Type", "X-Request-ID"])
    sanitize_errors: bool = Field(default=True)

    # SECURITY: ONLY allowed in local environment. Will raise error in test/prod.
    skip_jwt_validation: bool = Field(default=False)

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    @field_validator("cors_allowed_origins", mode="after")
    @classmethod
    def validate_cors_allowed_origins(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated string into list of origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("skip_jwt_validation", mode="before")
    @classmethod
    def parse_skip_jwt_validation(cls, v: bool | str) -> bool:
        """Parse boolean from environment variable (string "true"/"false")."""
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return v


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    auth0: Auth0Config = Field(default_factory=Auth0Config)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    @model_validator(mode="after")
    def validate_security_settings(self) -> Settings:
        """Validate security settings after all configs are loaded."""
        if self.security.skip_jwt_validation and self.app.env != AppEnvironment.LOCAL:
            raise ValueError(
                "SECURITY_SKIP_JWT_VALIDATION can only be set in local environment. "
                f"Current environment: {self.app.env.value}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    get_settings.cache_clear()
    return get_settings()
