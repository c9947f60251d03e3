"""Configuration settings for bonnibel.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_dir() -> Path:
    """Return the default overlay cache directory."""
    return Path.home() / ".cache" / "bonnibel" / "overlays"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the BONNIBEL_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="BONNIBEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    config_file: Path = Field(
        default=Path("modules.yaml"),
        description="Project modules file",
    )
    build_dir: Path | None = Field(
        default=None,
        description="Build directory (defaults to <project root>/build)",
    )
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Root directory for the overlay cache",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )

    # Downloads
    max_concurrent_downloads: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum concurrent overlay downloads",
    )
    download_timeout: int = Field(
        default=600,
        ge=1,
        description="Timeout for overlay downloads (seconds)",
    )
    download_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Retries for failed overlay downloads",
    )

    # External tools
    ninja_path: str = Field(default="ninja", description="Ninja executable")
    tar_path: str = Field(default="tar", description="Archive extraction tool")


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
