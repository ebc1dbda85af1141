"""
Application settings and logging setup.

Everything is read from the process environment (or a local .env file) once
at startup.
"""

import logging
from functools import lru_cache

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    database_url: str = Field("mongodb://localhost:27017", validation_alias="DATABASE_URL")
    database_name: str = Field("storefront", validation_alias="DATABASE_NAME")

    jwt_secret: str = Field("dev-secret-change", validation_alias="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60 * 24 * 7, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    cors_origin: str = Field("http://localhost:3000", validation_alias="CORS_ORIGIN")
    rate_limit_window_ms: int = Field(15 * 60 * 1000, validation_alias="RATE_LIMIT_WINDOW_MS")
    rate_limit_max_requests: int = Field(100, validation_alias="RATE_LIMIT_MAX_REQUESTS")

    port: int = Field(8000, validation_alias="PORT")
    environment: str = Field("development", validation_alias="ENVIRONMENT")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(False, validation_alias="LOG_JSON")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
