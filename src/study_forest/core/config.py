"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimerConfig(BaseModel):
    """Focus/break cadence."""

    focus_minutes: int = Field(default=120, ge=1, description="Length of a focus phase")
    break_minutes: int = Field(default=30, ge=1, description="Length of a break phase")

    @property
    def focus_duration_ms(self) -> int:
        return self.focus_minutes * 60 * 1000

    @property
    def break_duration_ms(self) -> int:
        return self.break_minutes * 60 * 1000


class ReminderConfig(BaseModel):
    """Break and eye-strain reminder periods."""

    break_interval_minutes: int = Field(default=120, ge=1)
    eye_interval_minutes: int = Field(default=30, ge=1, description="30-30-30 rule reminder period")
    eye_countdown_seconds: int = Field(default=30, ge=1, description="Auto-dismiss eye reminder after")

    @property
    def break_interval_ms(self) -> int:
        return self.break_interval_minutes * 60 * 1000

    @property
    def eye_interval_ms(self) -> int:
        return self.eye_interval_minutes * 60 * 1000


class HistoryConfig(BaseModel):
    """Session history retention."""

    max_entries: int = Field(default=20, ge=10, le=100)


class SyncConfig(BaseModel):
    """Cross-device replication configuration."""

    enabled: bool = False
    api_url: str = Field(default="http://127.0.0.1:8787", description="Key/value replication endpoint")
    space_id: str | None = Field(default=None, description="Override the generated space id")
    pull_timeout_seconds: float = Field(default=5.0, gt=0)


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STUDY_FOREST_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/study-forest")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/study-forest")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/study-forest")

    log_level: str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    timer: TimerConfig = Field(default_factory=TimerConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "study_forest.db"

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

        Values from the YAML file are passed as init data, so they take
        precedence over environment variables, which in turn override defaults.
        """
        config_path = config_path or Path.home() / ".config/study-forest/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        # Convert Path objects to strings for YAML
        for key in ["data_dir", "log_dir", "config_dir"]:
            if key in data:
                data[key] = str(data[key])

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
