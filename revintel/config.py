from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .constants import DEFAULT_APP_ID, DEFAULT_GEMINI_BASE_URL, DEFAULT_GEMINI_MODEL


class CompletionConfig(BaseModel):
    """Completion service settings."""

    backend: Literal["gemini", "inmemory"] = "gemini"
    api_key: Optional[str] = None
    model: str = DEFAULT_GEMINI_MODEL
    base_url: str = DEFAULT_GEMINI_BASE_URL
    timeout: float = 60.0
    fault_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class SimulationConfig(BaseModel):
    """Artificial latency applied to simulated workflows, in seconds."""

    min_delay: float = Field(default=1.5, ge=0.0)
    max_delay: float = Field(default=2.5, ge=0.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SimulationConfig":
        if self.max_delay < self.min_delay:
            raise ValueError("simulation.max_delay must not be below min_delay")
        return self


class RetryConfig(BaseModel):
    """Backoff settings. Attempt ``n`` waits ``2**n * base_delay`` seconds."""

    base_delay: float = Field(default=1.0, ge=0.0)


class HistoryConfig(BaseModel):
    """History store settings."""

    database_url: Optional[str] = None
    app_id: str = DEFAULT_APP_ID
    poll_interval: Optional[float] = Field(default=1.0, gt=0.0)


class RevintelConfig(BaseModel):
    """Top-level configuration model."""

    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    identity: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> RevintelConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to REVINTEL_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("REVINTEL_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = RevintelConfig(**data)
    else:
        config = RevintelConfig()

    api_key = os.getenv("REVINTEL_GEMINI_API_KEY") or os.getenv("GEMINI_API_KEY")
    if api_key:
        config.completion.api_key = api_key

    env_db_url = os.getenv("REVINTEL_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.history.database_url = env_db_url

    app_id = os.getenv("REVINTEL_APP_ID")
    if app_id:
        config.history.app_id = app_id

    identity = os.getenv("REVINTEL_IDENTITY")
    if identity:
        config.identity = identity
    return config
