"""Configuration settings for monobuild.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from monobuild.types import Env


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the MONOBUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONOBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Workspace layout
    workspace_file: str = Field(
        default="monobuild.yaml",
        description="Workspace file at the root listing package globs",
    )
    manifest_name: str = Field(
        default="package.json",
        description="Package manifest file name",
    )
    build_config_name: str = Field(
        default="build.config.py",
        description="Build-config module file name inside a package",
    )

    # Build options
    env: Env = Field(
        default=Env.DEVELOPMENT,
        description="Environment packages are built for",
    )
    debug: bool = Field(
        default=False,
        description="Debug mode - verbose reporting and tracebacks",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Bundler
    bundler_command: list[str] = Field(
        default_factory=lambda: ["esbuild"],
        description="Default bundler command (JSON list in the environment)",
    )
    bundle_timeout: int = Field(
        default=600,
        ge=1,
        description="Timeout for a single bundler invocation, in seconds",
    )

    # Concurrency
    max_concurrent_builds: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum packages built concurrently",
    )

    # Watch mode
    watch_debounce_ms: int = Field(
        default=100,
        ge=0,
        le=10000,
        description="Delay between a file change and the rebuild it triggers",
    )


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
