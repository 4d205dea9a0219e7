"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from rich.console import Console

# Load environment variables from .env file
load_dotenv()


class StorageConfig(BaseModel):
    """Where the four JSON documents are kept."""

    data_dir: str = Field(default="./epifriend_data", description="Directory for the JSON files")
    key_prefix: str = Field(default="epifriend_", description="Prefix for every storage key")


class ReportConfig(BaseModel):
    """PDF report export settings."""

    output_dir: str = Field(default="./reports", description="Directory reports are written to")
    locale: Literal["nl", "en"] = Field(default="nl", description="Language of the report")
    file_prefix: str = Field(default="EpiFriend_Report", description="File name prefix")

    @field_validator("file_prefix")
    def validate_file_prefix(cls, v):
        if not v or "/" in v or "\\" in v:
            raise ValueError("file_prefix must be a plain, non-empty file name")
        return v


class ToastConfig(BaseModel):
    """Notification queue settings."""

    default_duration_ms: int = Field(default=3000, gt=0, description="Toast lifetime")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    storage: StorageConfig = Field(default_factory=StorageConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    toast: ToastConfig = Field(default_factory=ToastConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _locale_to_literal(val: str) -> Literal["nl", "en"]:
        return "en" if val.strip().lower().startswith("en") else "nl"

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    storage_config = StorageConfig(
        data_dir=os.getenv("EPIFRIEND_DATA_DIR", "./epifriend_data"),
        key_prefix=os.getenv("EPIFRIEND_KEY_PREFIX", "epifriend_"),
    )

    report_config = ReportConfig(
        output_dir=os.getenv("EPIFRIEND_REPORT_DIR", "./reports"),
        locale=_locale_to_literal(os.getenv("EPIFRIEND_LOCALE", "nl")),
    )

    toast_config = ToastConfig(
        default_duration_ms=int(os.getenv("EPIFRIEND_TOAST_DURATION_MS", "3000")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        storage=storage_config,
        report=report_config,
        toast=toast_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def print_config_summary(console: Console | None = None) -> None:
    """Print configuration summary for debugging."""
    console = console or Console()
    config = get_config()

    console.print("\n[bold]CONFIGURATION SUMMARY[/bold]")
    console.print(f"Environment: {config.environment}")
    console.print(f"Debug Mode: {config.debug}")
    console.print(f"Log Level: {config.logging.level}")

    console.print("\n[bold]STORAGE[/bold]")
    console.print(f"Data Directory: {config.storage.data_dir}")
    console.print(f"Key Prefix: {config.storage.key_prefix}")

    console.print("\n[bold]REPORTS[/bold]")
    console.print(f"Output Directory: {config.report.output_dir}")
    console.print(f"Locale: {config.report.locale}")


if __name__ == "__main__":
    print_config_summary()
