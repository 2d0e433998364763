"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./vereinsknete.db", alias="DATABASE_URL"
    )
    invoice_dir: str = Field(default="invoices", alias="INVOICE_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    env_mode: str = Field(default="dev", alias="APP_ENV")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, ge=1, le=65535, alias="PORT")
    currency: str = Field(default="EUR", alias="CURRENCY")
    invoice_due_days: int = Field(default=30, ge=0, alias="INVOICE_DUE_DAYS")
    invoice_sequence_max_attempts: int = Field(
        default=5, ge=1, alias="INVOICE_SEQUENCE_MAX_ATTEMPTS"
    )
    billing_max_attempts: int = Field(default=3, ge=1, alias="BILLING_MAX_ATTEMPTS")
    max_billing_period_days: int = Field(
        default=366, ge=1, alias="MAX_BILLING_PERIOD_DAYS"
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    def get(self, key: str, default: object | None = None) -> object | None:
        """Dictionary-style access to configuration values."""

        return self.model_dump(by_alias=True).get(key, default)

    @property
    def is_production(self) -> bool:
        """Return ``True`` when running with a production profile."""

        return self.env_mode.strip().lower() in {"prod", "production"}


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
