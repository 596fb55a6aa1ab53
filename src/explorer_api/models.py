"""Shared data models for the explorer backend.

CRITICAL: All lovelace values use Amount (an exact integer). Never use float
for amounts, sums, fees or balances.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from explorer_api.exceptions import DataConsistencyError


@dataclass(frozen=True, order=True)
class Amount:
    """Non-negative lovelace amount with exact arithmetic.

    Backed by a Python int, so there is no upper bound and no rounding.
    Subtraction that would go below zero raises DataConsistencyError:
    a negative amount can only come from inconsistent chain data.
    """

    value: int

    ZERO: ClassVar[Amount]

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"Amount requires an int, got {type(self.value).__name__}")
        if self.value < 0:
            raise ValueError(f"Amount cannot be negative: {self.value}")

    @classmethod
    def parse(cls, raw: int | str | Amount) -> Amount:
        """Build an Amount from an int or a base-10 string."""
        if isinstance(raw, Amount):
            return raw
        if isinstance(raw, str):
            text = raw.strip()
            if not (text.isascii() and text.isdigit()):
                raise ValueError(f"Not a decimal lovelace amount: {raw!r}")
            return cls(int(text))
        return cls(raw)

    @classmethod
    def total(cls, amounts: Iterable[Amount]) -> Amount:
        """Sum amounts exactly. An empty iterable sums to zero."""
        result = 0
        for amount in amounts:
            result += amount.value
        return cls(result)

    def __add__(self, other: Amount) -> Amount:
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.value + other.value)

    def __sub__(self, other: Amount) -> Amount:
        if not isinstance(other, Amount):
            return NotImplemented
        if other.value > self.value:
            raise DataConsistencyError(
                f"Amount underflow: {self.value} - {other.value}"
            )
        return Amount(self.value - other.value)

    def to_decimal_string(self) -> str:
        return str(self.value)

    def __str__(self) -> str:
        return self.to_decimal_string()


Amount.ZERO = Amount(0)


class Direction(str, Enum):
    """Side of a transaction a movement belongs to."""

    INPUT = "input"
    OUTPUT = "output"


@dataclass(frozen=True)
class TxRef:
    """A transaction as stored by chain-sync, with its block placement.

    internal_id is the database surrogate key and is only used for joins.
    """

    internal_id: int
    hash: str
    time: datetime  # aware, UTC
    block_height: int | None
    block_hash: str
    ordinal: int


@dataclass(frozen=True)
class Movement:
    """A single input or output of a transaction.

    index is the position inside the owning transaction's input or output
    list. Inputs also name the output they spend via originating_tx_hash
    and originating_index.
    """

    tx_internal_id: int
    address: str
    amount: Amount
    index: int
    originating_tx_hash: str | None = None
    originating_index: int | None = None


@dataclass(frozen=True)
class BlockInfo:
    height: int | None
    hash: str
    time: datetime


@dataclass
class TxHistoryEntry:
    """Assembled, externally visible view of one transaction."""

    hash: str
    inputs: list[Movement]
    outputs: list[Movement]
    input_sum: Amount
    output_sum: Amount
    fee: Amount | None
    block: BlockInfo
    ordinal: int
    last_update: datetime
    best_block_height: int | None = None


@dataclass
class AddressSummary:
    """Balance and full transaction list for a set of addresses."""

    addresses: list[str]
    tx_count: int
    balance: Amount
    tx_list: list[TxHistoryEntry] = field(default_factory=list)


@dataclass(frozen=True)
class Utxo:
    """An output not yet consumed by any input."""

    tx_hash: str
    index: int
    address: str
    amount: Amount
    block_height: int | None


@dataclass
class TxSummary:
    """Detail view of a single transaction (legacy explorer format)."""

    hash: str
    time: datetime
    block_height: int | None
    block_hash: str
    epoch: int
    slot: int
    inputs: list[Movement]
    outputs: list[Movement]
    total_input: Amount
    total_output: Amount
    fee: Amount | None


@dataclass(frozen=True)
class PoolRef:
    """Latest registered parameters of a stake pool."""

    pool_hash_id: int
    pool_hash: str
    pledge: Amount
    margin: Decimal
    fixed_cost: Amount
    metadata_url: str | None = None


@dataclass(frozen=True)
class DelegationEpoch:
    """The pool an account was delegated to in a given epoch."""

    epoch: int
    pool_hash_id: int
    pool_hash: str | None = None


@dataclass(frozen=True)
class DelegationEvent:
    """One stake delegation certificate as it appeared on chain."""

    tx_hash: str
    epoch: int | None
    slot: int | None
    time: datetime
    pool_hash: str | None


@dataclass(frozen=True)
class RewardLedgerEntry:
    """One historical reward payout.

    kind is "reward" for regular epoch rewards and "reserve" for one-time
    payouts from the reserves/treasury.
    """

    epoch: int | None
    amount: Amount
    pool_hash: str | None
    kind: str


@dataclass(frozen=True)
class RewardProjection:
    """Expected reward payout for one epoch."""

    for_epoch: int
    reward_date: str
    pool_hash: str | None = None


@dataclass
class StakeAccount:
    """Delegation and reward state for a staking address.

    account_internal_id is None when the address has never been seen on
    chain; every other field then holds its default.
    """

    staking_address: str
    current_epoch: int
    account_internal_id: int | None = None
    current_delegation_target: PoolRef | None = None
    has_active_key: bool = False
    total_rewards: Amount = Amount.ZERO
    next_reward_schedule: list[RewardProjection] = field(default_factory=list)
