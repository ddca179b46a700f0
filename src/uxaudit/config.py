"""Configuration management for uxaudit."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path(".uxaudit/config.yaml")


class NotificationConfig(BaseModel):
    """Notification settings."""

    enabled: bool = True
    provider: Literal["console", "ntfy", "none"] = "console"
    ntfy_server: str = "https://ntfy.sh"
    ntfy_topic: str = "uxaudit"


class InstallConfig(BaseModel):
    """Installation phase settings."""

    enabled: bool = Field(default=True, description="Actually run the target's install command")
    timeout: int = Field(default=120, description="Install command timeout in seconds")


class ValidationConfig(BaseModel):
    """Validation protocol settings."""

    reviewer: Literal["heuristic", "claude"] = Field(
        default="heuristic",
        description="Reviewer backend: heuristic (offline, deterministic) or claude (Claude CLI)",
    )
    model: str = Field(default="sonnet", description="Claude model for the claude reviewer")
    cycle_timeout: int = Field(default=120, description="Per-cycle timeout in seconds")
    passing_score: float = Field(default=6.0, description="Arbiter score needed to pass validation")


class Config(BaseModel):
    """uxaudit configuration."""

    phase_timeout: int = Field(default=300, description="Per-phase timeout in seconds (default: 5 min)")
    command_timeout: int = Field(default=30, description="Timeout for each probe command run against the target")
    min_passing_score: float = Field(default=6.0, description="CLI exits non-zero below this score")
    install: InstallConfig = Field(default_factory=InstallConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    usage_file: Path = Field(
        default_factory=lambda: Path.home() / ".uxaudit" / "usage.json",
        description="Where the local usage tracker keeps its monthly counters",
    )

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from file or use defaults."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        if config_path.exists():
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path) -> None:
        """Save configuration to file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)


def get_audit_dir(project_root: Path | None = None) -> Path:
    """Get the .uxaudit directory, creating if needed."""
    if project_root is None:
        project_root = Path.cwd()
    audit_dir = project_root / ".uxaudit"
    audit_dir.mkdir(parents=True, exist_ok=True)
    return audit_dir
