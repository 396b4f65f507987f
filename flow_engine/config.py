"""Environment-driven engine settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from flow_engine.steps import RetryPolicy

ENV_PREFIX = "FLOW_"


class EngineSettings(BaseModel):
    """Tunables for step retries, journals, HTTP calls and logging."""

    step_max_attempts: int = Field(default=4, ge=1)
    step_backoff_base: float = Field(default=1.0, ge=0)
    step_backoff_max: float = Field(default=30.0, ge=0)
    journal_dir: Path = Path(".flow-journal")
    http_timeout: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"

    model_config = ConfigDict(extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level '{value}'.")
        return level

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.step_max_attempts,
            backoff_base=self.step_backoff_base,
            backoff_max=self.step_backoff_max,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        environ = os.environ if environ is None else environ
        values = {
            name: environ[f"{ENV_PREFIX}{name.upper()}"]
            for name in cls.model_fields
            if f"{ENV_PREFIX}{name.upper()}" in environ
        }
        return cls.model_validate(values)


def _load_env(start: Path) -> None:
    """Load the nearest .env file walking up from ``start``."""
    candidates = [start / ".env", start.parent / ".env", start.parent.parent / ".env"]
    for env_path in candidates:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            break


def load_settings(start: Path | str | None = None) -> EngineSettings:
    """Load .env (without overriding the real environment) and build settings."""
    _load_env(Path(start) if start is not None else Path.cwd())
    return EngineSettings.from_env()
