# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Environment-driven settings for the SIAKAD enrollment service.

Each concern has its own BaseSettings class with an environment prefix:

- ``DB_*`` (plus ``DATABASE_URL``): academic database
- ``ENROLLMENT_*``: KRS engine behaviour
- ``CORS_*`` and ``API_*``: HTTP surface

Settings reads them once and get_settings() hands out the cached
instance, so FastAPI dependencies and the CLI share one configuration.

Example:
    >>> from siakad.core.config.settings import get_settings
    >>> get_settings().enrollment.max_commit_attempts
    3
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PASSWORD = "siakad_password"


class DatabaseSettings(BaseSettings):
    """Academic database holding students, the catalog and KRS records.

    Attributes:
        user: PostgreSQL role.
        password: PostgreSQL password.
        host: Server host.
        port: Server port.
        database: Database name.
        url_override: Complete async URL used instead of the parts above,
            e.g. ``sqlite+aiosqlite:///./siakad.db`` for a laptop run.
        pool_size: Persistent connections kept by the pool.
        max_overflow: Extra connections allowed under load.
        lock_timeout_ms: How long a commit waits for a seat row lock.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "siakad"
    password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)
    host: str = "localhost"
    port: int = 5432
    database: str = "siakad"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20
    lock_timeout_ms: int = 2000

    @property
    def url(self) -> str:
        """SQLAlchemy async URL for the configured database."""
        if self.url_override:
            return self.url_override
        secret = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{secret}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class EnrollmentSettings(BaseSettings):
    """KRS engine behaviour.

    Attributes:
        default_max_credits: SKS ceiling for terms that do not set one.
        max_commit_attempts: Commits tried per submission before a
            concurrent writer makes it give up.
        minimum_passing_grade: Lowest letter grade that clears a
            prerequisite.
        terms_file: Academic term calendar (YAML).
    """

    model_config = SettingsConfigDict(
        env_prefix="ENROLLMENT_",
        extra="ignore",
    )

    default_max_credits: int = Field(default=24, ge=1)
    max_commit_attempts: int = Field(default=3, ge=1)
    minimum_passing_grade: Literal["A", "AB", "B", "BC", "C", "D"] = "C"
    terms_file: Path = Path("config/terms.yaml")


class CORSSettings(BaseSettings):
    """Browser origins allowed to call the API (the SIAKAD web portal)."""

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000"
    allow_credentials: bool = True
    allow_methods: list[str] = ["GET", "POST", "DELETE"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Origins from the comma-separated setting, blanks dropped."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """Uvicorn bind address and process options."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 2
    reload: bool = False


class Settings(BaseSettings):
    """Top-level settings; obtain it through get_settings().

    Attributes:
        environment: Deployment stage.
        debug: Exposes API docs and SQL echo.
        log_level: Root log level.
        database: Database settings.
        enrollment: KRS engine settings.
        cors: CORS settings.
        api: Server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    enrollment: EnrollmentSettings = Field(default_factory=EnrollmentSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def check_production(self) -> Self:
        """Refuse production deployments that cannot enroll safely.

        Raises:
            ValueError: On SQLite, or with the default database password.
        """
        if not self.is_production:
            return self

        if self.database.is_sqlite:
            raise ValueError(
                "SQLite cannot serve concurrent KRS submissions in production. "
                "Set DATABASE_URL to a PostgreSQL URL."
            )
        if self.database.password.get_secret_value() == DEFAULT_DB_PASSWORD:
            raise ValueError(
                "Database password must be changed from default in production. "
                "Set DB_PASSWORD environment variable."
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide Settings, reading the environment on first use."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached Settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
