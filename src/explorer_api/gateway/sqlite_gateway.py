"""Typed SQLite read access to chain-sync data.

Provides SqliteChainGateway, the ChainGateway implementation used by the
service. All SQL is isolated behind this class. Rows are converted into
model dataclasses at this boundary: hashes are unwrapped, lovelace TEXT
columns are restored as Amount and times as aware UTC datetimes.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import aiosqlite

from explorer_api.exceptions import DataConsistencyError, UpstreamUnavailableError
from explorer_api.gateway.base import ChainGateway
from explorer_api.gateway.database import ChainDatabase
from explorer_api.gateway.hashes import unwrap_hash, wrap_hash
from explorer_api.logging import get_logger
from explorer_api.models import (
    Amount,
    DelegationEpoch,
    DelegationEvent,
    Direction,
    Movement,
    PoolRef,
    RewardLedgerEntry,
    TxRef,
    Utxo,
)

logger = get_logger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Keeps IN (...) lists well under SQLite's bound-parameter limit
_ID_BATCH_SIZE = 500

_TX_REF_COLUMNS = (
    "tx.id AS id, tx.hash AS tx_hash, block.block_no AS block_no, "
    "block.hash AS block_hash, block.time AS time, tx.block_index AS block_index"
)

_UTXO_SQL = """
SELECT tx.hash, tx_out."index", tx_out.address, tx_out.value, block.block_no
FROM tx
INNER JOIN tx_out ON tx.id = tx_out.tx_id
INNER JOIN block ON block.id = tx.block
WHERE NOT EXISTS (
    SELECT 1 FROM tx_in
    WHERE tx_in.tx_out_id = tx_out.tx_id AND tx_in.tx_out_index = tx_out."index"
) AND tx_out.address IN ({placeholders})
ORDER BY tx.id ASC, tx_out."index" ASC
"""

_POOLS_SQL = """
SELECT ph.id, ph.hash, pu.pledge, pu.margin, pu.fixed_cost, pmd.url
FROM pool_hash AS ph
INNER JOIN pool_update AS pu ON pu.id = (
    SELECT latest.id FROM pool_update AS latest
    WHERE latest.hash_id = ph.id
    ORDER BY latest.registered_tx_id DESC, latest.id DESC
    LIMIT 1
)
LEFT JOIN pool_meta_data AS pmd ON pu.meta = pmd.id
WHERE pu.id NOT IN (
    SELECT update_id FROM pool_retire
    WHERE retiring_epoch < (SELECT COALESCE(MAX(no), 0) FROM epoch)
)
{extra_condition}
ORDER BY ph.hash ASC
"""


def format_time(value: datetime) -> str:
    """Render a datetime in the stored UTC format."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIME_FORMAT)


def parse_time(raw: str) -> datetime:
    """Parse a stored time column into an aware UTC datetime."""
    try:
        parsed = datetime.fromisoformat(raw)
    except (TypeError, ValueError) as exc:
        raise DataConsistencyError(f"Malformed block time: {raw!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _amount(raw: Any, column: str) -> Amount:
    try:
        return Amount.parse(str(raw))
    except ValueError as exc:
        raise DataConsistencyError(f"Malformed lovelace value in {column}: {raw!r}") from exc


def _margin(raw: Any) -> Decimal:
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise DataConsistencyError(f"Malformed pool margin: {raw!r}") from exc


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


def _batches(values: list[int], size: int = _ID_BATCH_SIZE) -> Iterable[list[int]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _tx_ref(row: Sequence[Any]) -> TxRef:
    return TxRef(
        internal_id=row[0],
        hash=unwrap_hash(row[1]),
        block_height=row[2],
        block_hash=unwrap_hash(row[3]),
        time=parse_time(row[4]),
        ordinal=row[5],
    )


def _pool_ref(row: Sequence[Any]) -> PoolRef:
    return PoolRef(
        pool_hash_id=row[0],
        pool_hash=unwrap_hash(row[1]),
        pledge=_amount(row[2], "pool_update.pledge"),
        margin=_margin(row[3]),
        fixed_cost=_amount(row[4], "pool_update.fixed_cost"),
        metadata_url=row[5],
    )


class SqliteChainGateway(ChainGateway):
    """ChainGateway implementation over an aiosqlite connection.

    Usage:
        async with ChainDatabase("data/chain.db") as database:
            gateway = SqliteChainGateway(database)
            refs = await gateway.transactions_touching(["addr1..."])
    """

    def __init__(self, database: ChainDatabase) -> None:
        self._database = database

    async def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[Sequence[Any]]:
        try:
            cursor = await self._database.db.execute(sql, params)
            rows = await cursor.fetchall()
            await cursor.close()
        except aiosqlite.Error as exc:
            logger.error("chain_db_query_failed", error=str(exc))
            raise UpstreamUnavailableError(f"Database query failed: {exc}") from exc
        return list(rows)

    async def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> Sequence[Any] | None:
        rows = await self._fetchall(sql, params)
        return rows[0] if rows else None

    # ──────────────────────────────────────────────
    # Transactions and movements
    # ──────────────────────────────────────────────

    async def transactions_touching(
        self,
        addresses: list[str],
        since: datetime | None = None,
        limit: int | None = None,
        exclusive: bool = False,
    ) -> list[TxRef]:
        """Union of transactions receiving at and spending from the addresses."""
        if not addresses:
            return []

        address_in = _placeholders(addresses)
        time_condition = ""
        time_params: list[Any] = []
        if since is not None:
            time_condition = f"AND block.time {'>' if exclusive else '>='} ?"
            time_params = [format_time(since)]

        sql = f"""
            SELECT * FROM (
                SELECT {_TX_REF_COLUMNS}
                FROM block
                INNER JOIN tx ON block.id = tx.block
                INNER JOIN tx_out ON tx.id = tx_out.tx_id
                WHERE tx_out.address IN ({address_in}) {time_condition}
              UNION
                SELECT {_TX_REF_COLUMNS}
                FROM block
                INNER JOIN tx ON block.id = tx.block
                INNER JOIN tx_in ON tx.id = tx_in.tx_in_id
                INNER JOIN tx_out ON tx_in.tx_out_id = tx_out.tx_id
                    AND tx_in.tx_out_index = tx_out."index"
                WHERE tx_out.address IN ({address_in}) {time_condition}
            ) AS txs
            ORDER BY txs.time ASC, txs.id ASC
        """
        params: list[Any] = [*addresses, *time_params, *addresses, *time_params]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        rows = await self._fetchall(sql, params)
        logger.debug(
            "fetched_transactions_touching",
            addresses=len(addresses),
            since=str(since) if since else None,
            count=len(rows),
        )
        return [_tx_ref(row) for row in rows]

    async def movements_for_transactions(
        self, tx_ids: list[int], direction: Direction
    ) -> list[Movement]:
        """Fetch inputs or outputs in batches of transaction ids."""
        movements: list[Movement] = []
        for batch in _batches(tx_ids):
            if direction is Direction.INPUT:
                movements.extend(await self._inputs(batch))
            else:
                movements.extend(await self._outputs(batch))
        logger.debug(
            "fetched_movements",
            direction=direction.value,
            tx_count=len(tx_ids),
            count=len(movements),
        )
        return movements

    async def _inputs(self, tx_ids: list[int]) -> list[Movement]:
        # tx_in.id order is the input order inside the spending transaction
        rows = await self._fetchall(
            f"""
            SELECT tx_in.tx_in_id, tx_out.address, tx_out.value,
                ROW_NUMBER() OVER (PARTITION BY tx_in.tx_in_id ORDER BY tx_in.id) - 1,
                source.hash, tx_out."index"
            FROM tx_in
            INNER JOIN tx_out ON tx_in.tx_out_id = tx_out.tx_id
                AND tx_in.tx_out_index = tx_out."index"
            INNER JOIN tx AS source ON source.id = tx_in.tx_out_id
            WHERE tx_in.tx_in_id IN ({_placeholders(tx_ids)})
            """,
            tx_ids,
        )
        return [
            Movement(
                tx_internal_id=row[0],
                address=row[1],
                amount=_amount(row[2], "tx_out.value"),
                index=row[3],
                originating_tx_hash=unwrap_hash(row[4]),
                originating_index=row[5],
            )
            for row in rows
        ]

    async def _outputs(self, tx_ids: list[int]) -> list[Movement]:
        rows = await self._fetchall(
            f"""
            SELECT tx_out.tx_id, tx_out.address, tx_out.value, tx_out."index"
            FROM tx_out
            WHERE tx_out.tx_id IN ({_placeholders(tx_ids)})
            """,
            tx_ids,
        )
        return [
            Movement(
                tx_internal_id=row[0],
                address=row[1],
                amount=_amount(row[2], "tx_out.value"),
                index=row[3],
            )
            for row in rows
        ]

    async def transaction_by_hash(self, tx_hash: str) -> TxRef | None:
        row = await self._fetchone(
            f"""
            SELECT {_TX_REF_COLUMNS}
            FROM tx
            INNER JOIN block ON block.id = tx.block
            WHERE tx.hash = ?
            """,
            (wrap_hash(tx_hash),),
        )
        return _tx_ref(row) if row is not None else None

    async def raw_transaction(self, tx_hash: str) -> str | None:
        row = await self._fetchone(
            "SELECT body FROM tx_body WHERE hash = ?", (wrap_hash(tx_hash),)
        )
        return unwrap_hash(row[0]) if row is not None else None

    async def unspent_outputs(self, addresses: list[str]) -> list[Utxo]:
        if not addresses:
            return []
        rows = await self._fetchall(
            _UTXO_SQL.format(placeholders=_placeholders(addresses)), addresses
        )
        return [
            Utxo(
                tx_hash=unwrap_hash(row[0]),
                index=row[1],
                address=row[2],
                amount=_amount(row[3], "tx_out.value"),
                block_height=row[4],
            )
            for row in rows
        ]

    async def used_addresses(self, addresses: list[str]) -> list[str]:
        if not addresses:
            return []
        rows = await self._fetchall(
            f"SELECT DISTINCT address FROM tx_out WHERE address IN ({_placeholders(addresses)})",
            addresses,
        )
        used = {row[0] for row in rows}
        # Keep the caller's order, drop repeats
        return [address for address in dict.fromkeys(addresses) if address in used]

    # ──────────────────────────────────────────────
    # Staking
    # ──────────────────────────────────────────────

    async def resolve_stake_account(self, stake_address: str) -> int | None:
        row = await self._fetchone(
            "SELECT id FROM stake_address WHERE hash = ?",
            (wrap_hash(stake_address),),
        )
        return row[0] if row is not None else None

    async def current_delegation_target(self, account_id: int) -> PoolRef | None:
        row = await self._fetchone(
            """
            SELECT pu.hash_id
            FROM delegation AS d
            INNER JOIN pool_update AS pu ON d.update_id = pu.id
            INNER JOIN tx ON d.tx_id = tx.id
            INNER JOIN block ON tx.block = block.id
            WHERE d.addr_id = ?
            ORDER BY block.block_no DESC, tx.block_index DESC, d.id DESC
            LIMIT 1
            """,
            (account_id,),
        )
        if row is None:
            return None
        return await self.pool_info(row[0])

    async def pool_info(self, pool_hash_id: int) -> PoolRef | None:
        row = await self._fetchone(
            _POOLS_SQL.format(extra_condition="AND ph.id = ?"), (pool_hash_id,)
        )
        return _pool_ref(row) if row is not None else None

    async def stake_pools(self) -> list[PoolRef]:
        rows = await self._fetchall(_POOLS_SQL.format(extra_condition=""))
        return [_pool_ref(row) for row in rows]

    async def delegation_history(self, account_id: int) -> list[DelegationEpoch]:
        rows = await self._fetchall(
            """
            SELECT block.epoch_no, pu.hash_id, ph.hash
            FROM delegation AS d
            INNER JOIN tx ON d.tx_id = tx.id
            INNER JOIN block ON tx.block = block.id
            INNER JOIN pool_update AS pu ON d.update_id = pu.id
            LEFT JOIN pool_hash AS ph ON pu.hash_id = ph.id
            WHERE d.addr_id = ? AND block.epoch_no IS NOT NULL
            ORDER BY block.epoch_no ASC, block.slot_no ASC, tx.block_index ASC, d.id ASC
            """,
            (account_id,),
        )
        # Latest delegation inside an epoch wins
        per_epoch: dict[int, DelegationEpoch] = {}
        for epoch, pool_hash_id, pool_hash in rows:
            per_epoch[epoch] = DelegationEpoch(
                epoch=epoch,
                pool_hash_id=pool_hash_id,
                pool_hash=unwrap_hash(pool_hash) if pool_hash is not None else None,
            )
        return list(per_epoch.values())

    async def delegations(
        self, account_id: int, limit: int | None = None
    ) -> list[DelegationEvent]:
        sql = """
            SELECT tx.hash, block.epoch_no, block.slot_no, block.time, ph.hash
            FROM delegation AS d
            INNER JOIN tx ON d.tx_id = tx.id
            INNER JOIN block ON tx.block = block.id
            INNER JOIN pool_update AS pu ON d.update_id = pu.id
            LEFT JOIN pool_hash AS ph ON pu.hash_id = ph.id
            WHERE d.addr_id = ?
            ORDER BY block.block_no DESC, tx.block_index DESC, d.id DESC
        """
        params: list[Any] = [account_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        rows = await self._fetchall(sql, params)
        return [
            DelegationEvent(
                tx_hash=unwrap_hash(row[0]),
                epoch=row[1],
                slot=row[2],
                time=parse_time(row[3]),
                pool_hash=unwrap_hash(row[4]) if row[4] is not None else None,
            )
            for row in rows
        ]

    async def reward_ledger(self, account_id: int) -> list[RewardLedgerEntry]:
        rows = await self._fetchall(
            """
            SELECT r.epoch_no, r.amount, ph.hash, 'reward'
            FROM reward AS r
            LEFT JOIN pool_hash AS ph ON r.pool_id = ph.id
            WHERE r.addr_id = ?
            UNION ALL
            SELECT block.epoch_no, rs.amount, NULL, 'reserve'
            FROM reserve AS rs
            LEFT JOIN tx ON rs.tx_id = tx.id
            LEFT JOIN block ON tx.block = block.id
            WHERE rs.addr_id = ?
              AND NOT EXISTS (
                SELECT 1 FROM withdrawal AS w
                WHERE w.addr_id = rs.addr_id AND w.amount = rs.amount
              )
            ORDER BY 1 ASC
            """,
            (account_id, account_id),
        )
        return [
            RewardLedgerEntry(
                epoch=row[0],
                amount=_amount(row[1], f"{row[3]}.amount"),
                pool_hash=unwrap_hash(row[2]) if row[2] is not None else None,
                kind=row[3],
            )
            for row in rows
        ]

    async def has_active_staking_key(self, account_id: int) -> bool:
        # tx ids are assigned in chain order by chain-sync
        row = await self._fetchone(
            """
            SELECT
                (SELECT MAX(tx_id) FROM stake_registration WHERE addr_id = ?),
                (SELECT MAX(tx_id) FROM stake_deregistration WHERE addr_id = ?)
            """,
            (account_id, account_id),
        )
        if row is None:
            return False
        registered = row[0] if row[0] is not None else -1
        deregistered = row[1] if row[1] is not None else -1
        return registered > deregistered

    # ──────────────────────────────────────────────
    # Chain tip
    # ──────────────────────────────────────────────

    async def current_epoch(self) -> int:
        row = await self._fetchone("SELECT COALESCE(MAX(no), 0) FROM epoch")
        return int(row[0]) if row is not None else 0

    async def best_block_height(self) -> int:
        row = await self._fetchone(
            "SELECT COALESCE(MAX(block_no), 0) FROM block WHERE block_no IS NOT NULL"
        )
        return int(row[0]) if row is not None else 0
