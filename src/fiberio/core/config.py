"""Configuration models for the fiberio runtime.

Pydantic v2 models for clock selection, fetch transport settings, a
step guard and logging. Configs are usually loaded from YAML:

    clock: virtual
    max_steps: 100000
    fetch:
      timeout: 10
      headers:
        Accept: text/html
    log:
      level: DEBUG
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from fiberio.core.errors import ConfigError
from fiberio.core.logging import LogFormat, LogLevel


class LogConfig(BaseModel):
    """Where scheduler and fiber log events go; see configure_logging()."""

    level: LogLevel = Field(
        default="WARNING",
        description="Events below this level are dropped. DEBUG shows every "
        "spawn, suspension, timer and fetch",
    )
    format: LogFormat = Field(
        default="console",
        description="console: readable lines on stderr; json: one object per "
        "line (to file_path if set, else stderr); both: console plus a JSON file",
    )
    file_path: Path | None = Field(
        default=None,
        description="JSON log file. Needed when format is 'both'",
    )
    max_file_size_mb: int = Field(
        default=50,
        gt=0,
        le=1000,
        description="Rotate the log file once it reaches this size",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Rotated log files kept alongside file_path",
    )
    include_timestamps: bool = Field(
        default=True,
        description="Stamp entries with wall-clock UTC time (not the scheduler clock)",
    )
    include_context: bool = Field(
        default=True,
        description="Tag entries with run_id and the running fiber_id",
    )

    @model_validator(mode="after")
    def _json_file_for_both(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format is 'both'")
        return self


class FetchConfig(BaseModel):
    """Settings for the HTTP fetch provider."""

    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout in seconds",
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Worker threads performing blocking HTTP requests",
    )
    follow_redirects: bool = Field(
        default=True,
        description="Follow HTTP redirects",
    )
    user_agent: str = Field(
        default="fiberio",
        description="User-Agent header sent with every request",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra headers sent with every request",
    )

    @field_validator("user_agent")
    @classmethod
    def _validate_user_agent(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_agent must not be blank")
        return v


class RuntimeConfig(BaseModel):
    """Top-level configuration for a scheduler run."""

    clock: Literal["real", "virtual"] = Field(
        default="real",
        description="real sleeps in wall-clock time; virtual jumps straight "
        "to the next due timer (deterministic, for tests and simulation)",
    )
    max_steps: int | None = Field(
        default=None,
        ge=1,
        description="Abort a run that has not drained after this many fiber "
        "resumptions. None means unbounded.",
    )
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    log: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> RuntimeConfig:
        """Load runtime configuration from a YAML file.

        Raises:
            ConfigError: If the file is unreadable, not YAML, or invalid.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read config {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> RuntimeConfig:
        """Load runtime configuration from a YAML string.

        An empty document yields the defaults.
        """
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("config root must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
