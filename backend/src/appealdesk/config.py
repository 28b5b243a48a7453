"""Configuration management for the appealdesk report service.

Uses pydantic-settings to load configuration from environment variables.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> Path | None:
    """Search for .env file in common locations."""
    # Check current working directory first
    cwd = Path.cwd()
    if (cwd / ".env").exists():
        return cwd / ".env"

    # Check parent directories (up to 5 levels) for project root .env
    check_dir = cwd
    for _ in range(5):
        if (check_dir / ".env").exists():
            return check_dir / ".env"
        parent = check_dir.parent
        if parent == check_dir:
            break
        check_dir = parent

    # backend/src/appealdesk/config.py -> project root
    project_root = Path(__file__).resolve().parent.parent.parent.parent
    if (project_root / ".env").exists():
        return project_root / ".env"

    return None


_env_file = _find_env_file()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_env_file) if _env_file else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================
    # Environment
    # =========================
    environment: Literal["development", "staging", "production"] = "development"

    # =========================
    # API Settings
    # =========================
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_debug: bool = False
    api_prefix: str = "/api"
    cors_origins: str = "*"

    # =========================
    # Reports
    # =========================
    reports_dir: Path = Field(
        default=Path("storage/reports"),
        description="Flat directory populated by the report generation job",
    )
    report_extensions: list[str] = Field(
        default_factory=lambda: [".xlsx"],
        description="File name suffixes that identify a downloadable report",
    )
    archive_filename: str = "reports.zip"
    archive_compression_level: int = Field(default=9, ge=0, le=9)
    archive_chunk_size: int = Field(default=64 * 1024, gt=0)
    max_concurrent_archives: int = Field(
        default=4,
        ge=0,
        description="Archive downloads allowed in flight at once (0 = unlimited)",
    )

    # =========================
    # Logging
    # =========================
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @field_validator("report_extensions")
    @classmethod
    def _check_extensions(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one report extension is required")
        for ext in value:
            if not ext.startswith(".") or len(ext) < 2:
                raise ValueError(f"report extension must look like '.xlsx', got {ext!r}")
            if "/" in ext or "\\" in ext:
                raise ValueError(f"report extension may not contain a separator: {ext!r}")
        return value

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
