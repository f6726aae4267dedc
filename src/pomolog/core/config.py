"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimerDefaults(BaseModel):
    """Default session lengths offered at setup time."""

    total_session_minutes: int = Field(default=30, ge=1, le=600)
    focus_minutes: int = Field(default=25, ge=1, le=600)
    tick_interval_seconds: float = Field(
        default=1.0, gt=0, description="Real seconds between countdown ticks"
    )

    @model_validator(mode="after")
    def _focus_within_total(self) -> TimerDefaults:
        if self.focus_minutes > self.total_session_minutes:
            raise ValueError("focus_minutes cannot exceed total_session_minutes")
        return self


class StoreConfig(BaseModel):
    """Where completed sessions are saved."""

    backend: str = Field(default="local", pattern="^(local|remote)$")
    remote_url: str = Field(default="", description="Base URL of the hosted REST backend")
    remote_api_key: str | None = Field(default=None, description="Anon/service key for the backend")
    remote_access_token: str | None = Field(default=None, description="Signed-in user's access token")
    remote_table: str = Field(default="sessions")
    timeout_seconds: float = Field(default=10.0, gt=0)


class WebConfig(BaseModel):
    """Web API configuration."""

    enabled: bool = True
    host: str = Field(default="127.0.0.1", description="Bind to localhost only")
    port: int = Field(default=8080, ge=1024, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POMOLOG_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/pomolog")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/pomolog")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/pomolog")

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Identity used to stamp saved sessions; empty means nobody is signed in
    user_id: str | None = Field(default=None)

    timer: TimerDefaults = Field(default_factory=TimerDefaults)
    store: StoreConfig = Field(default_factory=StoreConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "pomolog.db"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. YAML config file (passed as init data)
        2. Environment variables
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/pomolog/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        # Identity, keys and tokens stay in the environment
        data = self.model_dump(
            exclude={
                "user_id": True,
                "store": {"remote_api_key", "remote_access_token"},
            },
            exclude_none=True,
        )

        for key in ["data_dir", "log_dir", "config_dir"]:
            if key in data:
                data[key] = str(data[key])

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        os.chmod(config_path, 0o600)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
