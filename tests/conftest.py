"""Shared test fixtures for the explorer backend."""

from datetime import datetime, timezone

import pytest

from explorer_api.config import ApiSettings, AppSettings, HealthSettings, StakingSettings
from explorer_api.models import Amount, Movement, TxRef

BASE_TIME = datetime(2020, 9, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_tx(
    internal_id: int,
    minute: int = 0,
    hash_hex: str | None = None,
    block_height: int | None = None,
    ordinal: int = 0,
) -> TxRef:
    """Create a TxRef whose time is BASE_TIME plus the given minutes."""
    return TxRef(
        internal_id=internal_id,
        hash=hash_hex or f"{internal_id:064x}",
        time=BASE_TIME.replace(minute=minute),
        block_height=block_height if block_height is not None else 100 + internal_id,
        block_hash=f"b{internal_id:063x}",
        ordinal=ordinal,
    )


def make_movement(
    tx_internal_id: int,
    address: str,
    amount: int,
    index: int = 0,
    originating_tx_hash: str | None = None,
) -> Movement:
    """Create a Movement with an integer lovelace amount."""
    return Movement(
        tx_internal_id=tx_internal_id,
        address=address,
        amount=Amount(amount),
        index=index,
        originating_tx_hash=originating_tx_hash,
    )


@pytest.fixture
def api_settings() -> ApiSettings:
    """API limits with the production defaults."""
    return ApiSettings(addresses_request_limit=50, history_response_limit=20)


@pytest.fixture
def staking_settings() -> StakingSettings:
    """Reward calendar with the production anchor (epoch 209)."""
    return StakingSettings()


@pytest.fixture
def mock_settings() -> AppSettings:
    """AppSettings with test defaults (health refresher disabled)."""
    return AppSettings(
        log_level="DEBUG",
        api=ApiSettings(addresses_request_limit=50, history_response_limit=20),
        health=HealthSettings(enabled=False),
    )
