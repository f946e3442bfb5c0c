"""Configuration management using Pydantic Settings with YAML overlay.

Loading priority: .env → config/settings.yaml → config/settings.{MODE}.yaml
Environment variables win over both YAML files.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_CONFIG_DIR = _PROJECT_ROOT / "config"


# --- Nested config models ---


class WeatherApiConfig(BaseModel):
    """WeatherAPI.com connector configuration."""

    base_url: str = "https://api.weatherapi.com/v1"
    timeout_seconds: int = 15
    forecast_days: int = 7
    hourly_limit: int = 12  # Upcoming hours kept in the hourly series


class SearchConfig(BaseModel):
    """Place search behaviour."""

    debounce_s: float = 0.5


class LocationConfig(BaseModel):
    """Location provider selection.

    ``static`` reports the configured coordinates, ``ip`` resolves the
    position from the public IP address.
    """

    provider: Literal["static", "ip"] = "static"
    permission_granted: bool = True
    enabled: bool = True
    latitude: float | None = None
    longitude: float | None = None
    ip_lookup_url: str = "http://ip-api.com/json"


# --- Main config class ---


class ForecastWeatherConfig(BaseSettings):
    # Runtime
    mode: str = Field(default="prod", alias="MODE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Credentials
    weather_api_key: str = Field(default="", alias="WEATHER_API_KEY")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///forecastweather.db",
        alias="DATABASE_URL",
    )

    # Nested config (loaded from YAML)
    weather_api: WeatherApiConfig = WeatherApiConfig()
    search: SearchConfig = SearchConfig()
    location: LocationConfig = LocationConfig()

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge overlay into base dict. Overlay values win."""
    merged = base.copy()
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found."""
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


@lru_cache(maxsize=1)
def get_config() -> ForecastWeatherConfig:
    """Load and return the cached ForecastWeatherConfig.

    Loading priority: .env → settings.yaml → settings.{MODE}.yaml
    """
    mode = os.getenv("MODE", "prod")

    base_yaml = _load_yaml(_CONFIG_DIR / "settings.yaml")
    mode_yaml = _load_yaml(_CONFIG_DIR / f"settings.{mode}.yaml")

    merged = _deep_merge(base_yaml, mode_yaml)

    # Env vars take priority via pydantic-settings
    return ForecastWeatherConfig(**merged)
