"""Configuration system using pydantic-settings with environment variable loading."""

from datetime import datetime, timezone
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Request limits for the address and history endpoints."""

    model_config = SettingsConfigDict(env_prefix="API_")

    addresses_request_limit: int = 50
    history_response_limit: int = 20
    # Inclusive lower bound keeps wire compatibility with existing wallets
    history_exclusive_lower_bound: bool = False


class DatabaseSettings(BaseSettings):
    """Chain-sync database connection settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    backend: Literal["sqlite"] = "sqlite"
    path: str = "data/chain.db"
    read_only: bool = True


class StakingSettings(BaseSettings):
    """Reward schedule constants.

    Rewards for an epoch are paid out with a fixed protocol delay. Reward
    dates are extrapolated from a known epoch boundary using a fixed epoch
    length.
    """

    model_config = SettingsConfigDict(env_prefix="STAKING_")

    reward_delay_epochs: int = 3
    epoch_length_days: int = 5
    anchor_epoch: int = 209
    anchor_date: datetime = datetime(2020, 8, 23, 21, 44, tzinfo=timezone.utc)


class SubmitSettings(BaseSettings):
    """Transaction submission proxy settings."""

    model_config = SettingsConfigDict(env_prefix="SUBMIT_")

    url: str = "http://localhost:8090"
    timeout_seconds: float = 10.0


class HealthSettings(BaseSettings):
    """Health status refresher configuration."""

    model_config = SettingsConfigDict(env_prefix="HEALTH_")

    enabled: bool = True
    refresh_interval: int = 70  # seconds between probes
    max_block_lag: int = 5
    submit_status_path: str = "/api/submit/status"
    # GraphQL endpoint reporting the network tip; lag is not checked when unset
    tip_url: str | None = None
    tip_timeout_seconds: float = 10.0


class ServerSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    app_name: str = "explorer-backend-service"
    version: str = "1.0.0"
    log_level: str = "INFO"
    api: ApiSettings = ApiSettings()
    database: DatabaseSettings = DatabaseSettings()
    staking: StakingSettings = StakingSettings()
    submit: SubmitSettings = SubmitSettings()
    health: HealthSettings = HealthSettings()
    server: ServerSettings = ServerSettings()
