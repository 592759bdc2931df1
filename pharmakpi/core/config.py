"""Configuration management with pydantic-settings.

Provides type-safe configuration with environment variable validation.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Database ===
    database_url: str = Field(
        "sqlite:///./pharmakpi.db",
        description="SQLAlchemy URL of the pharmacy data store",
    )
    db_echo: bool = Field(False, description="Echo SQL statements (debug)")
    repository_chunk_size: int = Field(
        500, ge=1, description="Max product ids per IN (...) clause"
    )

    # === Catalog rules ===
    active_product_status: str = Field("ACTIF", description="Status of products to analyse")
    default_vat_rate: float = Field(20.0, description="VAT rate (%) when a product has none")

    # === Margin / stock analyses ===
    trailing_window_months: int = Field(
        12, ge=1, description="Trailing window used by the margin and stock analyses"
    )

    # === ABC/XYZ defaults ===
    abc_threshold_a: float = Field(80.0, description="Cumulative revenue % upper bound of class A")
    abc_threshold_b: float = Field(95.0, description="Cumulative revenue % upper bound of class B")
    xyz_threshold_x: float = Field(0.5, description="CV upper bound of class X")
    xyz_threshold_y: float = Field(1.0, description="CV upper bound of class Y")

    # === Seasonality defaults ===
    seasonality_history_years: int = Field(3, description="Years of history to analyse")
    seasonality_strong_amplitude: float = Field(1.5, description="Amplitude of a FORTE profile")
    seasonality_medium_amplitude: float = Field(0.8, description="Amplitude of a MOYENNE profile")
    seasonality_forecast_months: int = Field(6, description="Forecast horizon in months")

    # === Logging ===
    log_level: str = Field("INFO", description="Root log level")
    log_to_stdout: bool = Field(True, description="Write JSON logs to stdout")
    log_file_path: str | None = Field(
        None, description="Rotating JSON log file (None disables file logging)"
    )

    # === Web API ===
    api_host: str = Field("0.0.0.0", description="Bind address of the API server")
    api_port: int = Field(8000, ge=1, le=65535, description="Listening port of the API server")
    cors_origins: str = Field("*", description="Comma-separated allowed CORS origins")

    @property
    def cors_origin_list(self) -> list[str]:
        """Get allowed CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        RuntimeError: If environment variables hold invalid values.

    """
    try:
        return Settings()
    except ValidationError as e:
        bad_fields = [str(error["loc"][0]).upper() for error in e.errors() if error["loc"]]

        error_msg = (
            f"Configuration error: invalid environment variables: "
            f"{', '.join(bad_fields)}\n"
            f"Please fix them in .env file or in the environment.\n"
            f"Details: {e}"
        )
        raise RuntimeError(error_msg) from e
