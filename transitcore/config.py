"""
Configuration loading for transitcore.

Loads non-secret settings from config.yaml, secrets from environment variables.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


class StopPreferencesConfig(BaseModel):
    """Rider preferences for one stop."""

    key: str
    stop_id: str
    hidden_route_ids: list[str] = Field(default_factory=list)
    sort: Literal["time", "route"] = "time"


class AppConfig(BaseModel):
    """Application configuration. Secrets come from env vars, rest from YAML."""

    # Secrets (from environment only)
    api_key: Optional[str] = None
    survey_user_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Surveys
    survey_reminder_interval: int = Field(default=3, ge=1)

    # Arrivals
    deduplicate_terminals: bool = True

    # Configured stops
    stops: list[StopPreferencesConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_keys(self) -> "AppConfig":
        keys = [stop.key for stop in self.stops]
        duplicates = [k for k in keys if keys.count(k) > 1]
        if duplicates:
            raise ValueError(f"Duplicate stop keys: {set(duplicates)}")
        return self

    def get_stop(self, key: str) -> StopPreferencesConfig | None:
        """Look up stop preferences by key."""
        for stop in self.stops:
            if stop.key == key:
                return stop
        return None

    def preferences_for_stop(self, stop_id: str) -> StopPreferencesConfig | None:
        """Look up stop preferences by transit stop ID. First match wins."""
        for stop in self.stops:
            if stop.stop_id == stop_id:
                return stop
        return None


def load_config(config_path: str | None = None) -> AppConfig:
    """
    Load configuration from YAML file + environment variables.

    Args:
        config_path: Path to config.yaml. If None, reads CONFIG_PATH env var
                     (default: config.yaml in current directory).

    Returns:
        Validated AppConfig instance.
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config.yaml")

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}

    # Secrets never come from YAML
    config_data = {**raw, "api_key": os.environ.get("API_KEY")}
    config_data.pop("survey_user_id", None)
    survey_user_id = os.environ.get("SURVEY_USER_ID")
    if survey_user_id:
        config_data["survey_user_id"] = survey_user_id

    return AppConfig(**config_data)
