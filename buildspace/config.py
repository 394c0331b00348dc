"""Application settings using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "Buildspace"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # Workspaces
    # ==========================================================================
    # "local" keeps workspaces next to the process, "cloud" puts them on
    # the host's ephemeral disk.
    mode: Literal["local", "cloud"] = "local"
    workspace_root: Path | None = None
    legacy_path_prefix: str = "/workspace"

    # ==========================================================================
    # Registry
    # ==========================================================================
    registry_backend: Literal["memory", "sql"] = "memory"
    registry_database_url: str = "sqlite:///./buildspace.db"

    # ==========================================================================
    # Sandbox
    # ==========================================================================
    sandbox_timeout_seconds: int = 60
    sandbox_max_output_bytes: int = 10 * 1024 * 1024

    # ==========================================================================
    # Scaffolding
    # ==========================================================================
    scaffold_settle_seconds: float = 1.0
    default_project_name: str = "my-app"
    default_template: str = "react-ts"

    # ==========================================================================
    # Files / preview
    # ==========================================================================
    max_listed_files: int = 50
    preview_ports: list[int] = Field(default=[5173, 3000, 8080, 4000, 5000])
    preview_probe_timeout: float = 0.5

    # ==========================================================================
    # API
    # ==========================================================================
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"]
    )

    @property
    def resolved_workspace_root(self) -> Path:
        """Process-wide workspace root, derived from the operating mode."""
        if self.workspace_root is not None:
            root = Path(self.workspace_root)
        elif self.mode == "cloud":
            root = Path("/tmp/buildspace/workspace")
        else:
            root = Path("./workspace")
        return root.expanduser().resolve()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
