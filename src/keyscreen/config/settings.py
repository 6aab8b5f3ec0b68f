"""Configuration management for keyscreen.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/keyscreen.yaml")


class DeviceConfig(BaseModel):
    product: str = Field(default="Kyria Keyboard", description="USB product string")
    usage: int = Field(default=0x61, ge=0)
    usage_page: int = Field(default=0xFF60, ge=0)


class SchedulerConfig(BaseModel):
    tick_interval: float = Field(default=1.0, gt=0)
    poll_interval: float = Field(default=0.05, gt=0)


class TransportConfig(BaseModel):
    packet_delay: float | None = Field(
        default=None, gt=0, description="Seconds between packets; platform default if unset"
    )


class ScreenConfig(BaseModel):
    enabled: bool = Field(default=True)
    active_interval: float = Field(default=60.0, gt=0)
    background_multiplier: float = Field(default=10.0, ge=1)


class PerfConfig(ScreenConfig):
    active_interval: float = Field(default=1.0, gt=0)
    background_multiplier: float = Field(default=10.0, ge=1)


class StockConfig(BaseModel):
    """One Alpha Vantage quote to show on the stocks screen."""

    function: Literal["GLOBAL_QUOTE", "CURRENCY_EXCHANGE_RATE"] = Field(default="GLOBAL_QUOTE")
    symbol: str | None = Field(default=None)
    from_currency: str | None = Field(default=None)
    to_currency: str = Field(default="USD")
    unit: str = Field(default="")

    @model_validator(mode="after")
    def _check_identifier(self) -> StockConfig:
        if self.function == "GLOBAL_QUOTE" and not self.symbol:
            raise ValueError("GLOBAL_QUOTE requires a symbol")
        if self.function == "CURRENCY_EXCHANGE_RATE" and not self.from_currency:
            raise ValueError("CURRENCY_EXCHANGE_RATE requires from_currency")
        return self

    @property
    def key(self) -> str:
        """Label shown on screen."""
        if self.function == "GLOBAL_QUOTE":
            return self.symbol or ""
        return self.from_currency or ""

    def query_params(self) -> dict[str, str]:
        if self.function == "GLOBAL_QUOTE":
            return {"function": self.function, "symbol": self.symbol or ""}
        return {
            "function": self.function,
            "from_currency": self.from_currency or "",
            "to_currency": self.to_currency,
        }


class StocksConfig(ScreenConfig):
    active_interval: float = Field(default=60.0, gt=0)
    background_multiplier: float = Field(default=30.0, ge=1)
    quotes: list[StockConfig] = Field(default_factory=list)


class WeatherConfig(ScreenConfig):
    active_interval: float = Field(default=60.0, gt=0)
    background_multiplier: float = Field(default=10.0, ge=1)
    city: str = Field(default="Seattle")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the keyscreen system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "KEYSCREEN_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    alphavantage_api_key: SecretStr = Field(default=SecretStr(""))
    openweathermap_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    perf: PerfConfig = Field(default_factory=PerfConfig)
    stocks: StocksConfig = Field(default_factory=StocksConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # load_settings() passes the YAML as init kwargs; env must win over it
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Accept the API keys under their provider's usual variable names."""
    av_key = os.environ.get("ALPHAVANTAGE_API_KEY", "")
    owm_key = os.environ.get("OPENWEATHERMAP_API_KEY", "")

    if av_key and not yaml_data.get("alphavantage_api_key"):
        yaml_data["alphavantage_api_key"] = av_key
    if owm_key and not yaml_data.get("openweathermap_api_key"):
        yaml_data["openweathermap_api_key"] = owm_key
