"""Configuration loading and validation."""

from decimal import Decimal
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ExchangeConfig(BaseModel):
    """CLOB endpoint and signing configuration."""

    host: str = "https://clob.polymarket.com"
    chain_id: int = 137
    signature_type: int | None = None
    private_key_env: str = "POLYMARKET_PRIVATE_KEY"
    funder_env: str = "POLYMARKET_FUNDER"


class MonitorConfig(BaseModel):
    """Stop-order monitoring configuration."""

    enabled: bool = True
    poll_interval: float = Field(default=5.0, gt=0)


class StorageConfig(BaseModel):
    """Where stop orders are persisted."""

    backend: Literal["json", "sqlite", "memory"] = "json"
    path: str = "polymarket_orders.json"
    key: str = "polymarket_stop_orders"


class FeedConfig(BaseModel):
    """Order-book push channel configuration."""

    enabled: bool = False
    ws_url: str = "wss://ws-subscriptions-clob.polymarket.com/ws/market"
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 1.0


class PaperConfig(BaseModel):
    """Paper trading configuration."""

    starting_balance: Decimal = Decimal("1000")
    funding_address: str = "0xpaper"


class MonitoringConfig(BaseModel):
    """Logging, alerting and dashboard configuration."""

    log_level: str = "INFO"
    structured_logging: bool = False
    log_file: str | None = None
    alert_webhooks: list[str] = Field(default_factory=list)
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8080


class AppConfig(BaseModel):
    """Top-level application configuration."""

    mode: Literal["paper", "live"] = "paper"
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    paper: PaperConfig = Field(default_factory=PaperConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)


def load_config(path: Path) -> AppConfig:
    """Load config from a YAML file."""
    load_dotenv(path.parent / ".env", override=False)
    return AppConfig(**(yaml.safe_load(path.read_text()) or {}))
