"""Abstract chain database gateway interface.

Defines the query contract the address and staking engines are written
against. Storage-specific details (SQL dialect, hash encoding, row
shapes) stay inside the concrete implementation; every method returns
typed models with hashes already decoded to plain hex.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from explorer_api.models import (
    DelegationEpoch,
    DelegationEvent,
    Direction,
    Movement,
    PoolRef,
    RewardLedgerEntry,
    TxRef,
    Utxo,
)


class ChainGateway(ABC):
    """Abstract base class for read-only chain-sync database access."""

    @abstractmethod
    async def transactions_touching(
        self,
        addresses: list[str],
        since: datetime | None = None,
        limit: int | None = None,
        exclusive: bool = False,
    ) -> list[TxRef]:
        """Return transactions with an input or output at any of the addresses.

        When since is given only transactions at or after it are returned
        (strictly after when exclusive is set). Results are ordered by time
        ascending, then internal id, and capped at limit.
        """
        ...

    @abstractmethod
    async def movements_for_transactions(
        self, tx_ids: list[int], direction: Direction
    ) -> list[Movement]:
        """Return all inputs or all outputs of the given transactions."""
        ...

    @abstractmethod
    async def transaction_by_hash(self, tx_hash: str) -> TxRef | None:
        """Look up a single transaction by its hex hash."""
        ...

    @abstractmethod
    async def raw_transaction(self, tx_hash: str) -> str | None:
        """Return the hex encoded body of a transaction, or None if unknown."""
        ...

    @abstractmethod
    async def unspent_outputs(self, addresses: list[str]) -> list[Utxo]:
        """Return outputs at the addresses not consumed by any input."""
        ...

    @abstractmethod
    async def used_addresses(self, addresses: list[str]) -> list[str]:
        """Return the subset of addresses that received at least one output."""
        ...

    @abstractmethod
    async def resolve_stake_account(self, stake_address: str) -> int | None:
        """Return the internal id of a staking address, or None if never seen."""
        ...

    @abstractmethod
    async def current_delegation_target(self, account_id: int) -> PoolRef | None:
        """Return the pool of the most recent delegation, if it is still active."""
        ...

    @abstractmethod
    async def pool_info(self, pool_hash_id: int) -> PoolRef | None:
        """Return latest parameters of a pool, or None if retired or unknown."""
        ...

    @abstractmethod
    async def stake_pools(self) -> list[PoolRef]:
        """Return all pools that are not retired."""
        ...

    @abstractmethod
    async def delegation_history(self, account_id: int) -> list[DelegationEpoch]:
        """Return one entry per epoch in which the account delegated.

        When several delegations happened in one epoch the latest by slot
        wins. Ordered by epoch ascending.
        """
        ...

    @abstractmethod
    async def delegations(
        self, account_id: int, limit: int | None = None
    ) -> list[DelegationEvent]:
        """Return individual delegation certificates of the account.

        Unlike delegation_history nothing is collapsed per epoch. Ordered
        newest first and capped at limit.
        """
        ...

    @abstractmethod
    async def reward_ledger(self, account_id: int) -> list[RewardLedgerEntry]:
        """Return every reward payout recorded for the account."""
        ...

    @abstractmethod
    async def has_active_staking_key(self, account_id: int) -> bool:
        """Return True if the latest key registration is newer than any deregistration."""
        ...

    @abstractmethod
    async def current_epoch(self) -> int:
        """Return the newest epoch number known to chain-sync."""
        ...

    @abstractmethod
    async def best_block_height(self) -> int:
        """Return the chain tip height stored in the database (0 when empty)."""
        ...
