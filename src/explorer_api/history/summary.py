"""Address summary engine.

Fans out to the chain gateway for a set of addresses, reduces the
results to ordered history entries and computes exact balances.
Validation always happens before the first gateway call, and a request
either fully succeeds or raises: a tx_list is never returned alongside a
balance it does not agree with.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime

from explorer_api.config import ApiSettings
from explorer_api.exceptions import DataConsistencyError, NotFoundError
from explorer_api.gateway.base import ChainGateway
from explorer_api.history.assembler import assemble, compute_fee, group_movements
from explorer_api.history.cursor import HistoryCursor, validate_addresses
from explorer_api.logging import get_logger
from explorer_api.models import (
    AddressSummary,
    Amount,
    Direction,
    Movement,
    TxHistoryEntry,
    TxRef,
    TxSummary,
    Utxo,
)

logger = get_logger(__name__)

# Byron-era slot arithmetic used by the legacy transaction summary
BYRON_EPOCH0_UNIX = 1506203091
BYRON_SLOT_SECONDS = 20
BYRON_EPOCH_SLOTS = 21600


def dedupe_transactions(transactions: Iterable[TxRef]) -> list[TxRef]:
    """Drop repeated TxRefs by internal id, keeping first-seen order."""
    seen: dict[int, TxRef] = {}
    for tx in transactions:
        seen.setdefault(tx.internal_id, tx)
    return list(seen.values())


def byron_epoch_and_slot(block_time: datetime) -> tuple[int, int]:
    """Derive (epoch, slot within epoch) from a block timestamp."""
    elapsed = int(block_time.timestamp()) - BYRON_EPOCH0_UNIX
    epoch = elapsed // (BYRON_EPOCH_SLOTS * BYRON_SLOT_SECONDS)
    slot = (elapsed // BYRON_SLOT_SECONDS) % BYRON_EPOCH_SLOTS
    return epoch, slot


class AddressSummaryEngine:
    """Builds address summaries and paginated transaction history.

    Args:
        gateway: Chain database gateway.
        settings: API limits (address count, page size, pagination bound).
    """

    def __init__(self, gateway: ChainGateway, settings: ApiSettings) -> None:
        self._gateway = gateway
        self._settings = settings

    async def _movements(
        self, tx_ids: list[int]
    ) -> tuple[list[Movement], list[Movement]]:
        """Fetch inputs and outputs for the same transaction set concurrently."""
        if not tx_ids:
            return [], []
        inputs, outputs = await asyncio.gather(
            self._gateway.movements_for_transactions(tx_ids, Direction.INPUT),
            self._gateway.movements_for_transactions(tx_ids, Direction.OUTPUT),
        )
        return inputs, outputs

    async def summarize(self, addresses: list[str]) -> AddressSummary:
        """Balance and full transaction list for a set of addresses.

        balance is everything received at the addresses minus everything
        spent from them, computed over the raw movements rather than the
        per-entry sums because one transaction can mix addresses of
        interest with others.

        Raises:
            InvalidRequestError: address list empty or over the limit.
            DataConsistencyError: spent more than received, or orphaned rows.
        """
        addresses = validate_addresses(addresses, self._settings.addresses_request_limit)

        transactions = dedupe_transactions(
            await self._gateway.transactions_touching(addresses)
        )
        inputs, outputs = await self._movements([tx.internal_id for tx in transactions])
        tx_list = assemble(transactions, inputs, outputs)

        address_set = set(addresses)
        received = Amount.total(m.amount for m in outputs if m.address in address_set)
        spent = Amount.total(m.amount for m in inputs if m.address in address_set)
        if spent > received:
            logger.error(
                "negative_address_balance",
                addresses=addresses,
                received=str(received),
                spent=str(spent),
                tx_count=len(tx_list),
            )
            raise DataConsistencyError(
                f"Addresses spent {spent} but received only {received}"
            )

        logger.debug("address_summary_calculated", addresses=len(addresses), tx_count=len(tx_list))
        return AddressSummary(
            addresses=addresses,
            tx_count=len(tx_list),
            balance=received - spent,
            tx_list=tx_list,
        )

    async def history(
        self,
        addresses: list[str],
        date_from: str | datetime | None,
        limit: int | None = None,
    ) -> list[TxHistoryEntry]:
        """One page of transaction history starting at date_from.

        The page holds the limit oldest transactions at or after
        date_from, presented most recent first. The chain tip is read once
        and stamped on every entry of the page.

        Raises:
            InvalidRequestError: bad address list, date or limit.
        """
        addresses = validate_addresses(addresses, self._settings.addresses_request_limit)
        cursor = HistoryCursor.from_request(
            date_from, limit, self._settings.history_response_limit
        )
        return await self.history_page(addresses, cursor)

    async def history_page(
        self, addresses: list[str], cursor: HistoryCursor
    ) -> list[TxHistoryEntry]:
        """Fetch the page described by an already validated cursor."""
        best_block_height = await self._gateway.best_block_height()
        transactions = dedupe_transactions(
            await self._gateway.transactions_touching(
                addresses,
                since=cursor.date_from,
                limit=cursor.limit,
                exclusive=self._settings.history_exclusive_lower_bound,
            )
        )
        inputs, outputs = await self._movements([tx.internal_id for tx in transactions])
        page = assemble(transactions, inputs, outputs, best_block_height=best_block_height)
        logger.debug(
            "transactions_history_calculated",
            addresses=len(addresses),
            date_from=cursor.date_from.isoformat(),
            count=len(page),
            best_block_height=best_block_height,
        )
        return page

    async def unspent_outputs(self, addresses: list[str]) -> list[Utxo]:
        """Unspent outputs sitting at any of the addresses."""
        addresses = validate_addresses(addresses, self._settings.addresses_request_limit)
        return await self._gateway.unspent_outputs(addresses)

    async def unspent_sum(self, addresses: list[str]) -> Amount | None:
        """Exact total of unspent outputs, or None when there are none."""
        utxos = await self.unspent_outputs(addresses)
        if not utxos:
            return None
        return Amount.total(utxo.amount for utxo in utxos)

    async def filter_used_addresses(self, addresses: list[str]) -> list[str]:
        """Addresses that appear in at least one output."""
        addresses = validate_addresses(addresses, self._settings.addresses_request_limit)
        return await self._gateway.used_addresses(addresses)

    async def best_block(self) -> int:
        return await self._gateway.best_block_height()

    async def transaction_summary(self, tx_hash: str) -> TxSummary:
        """Detail view of one transaction.

        Raises:
            NotFoundError: the hash does not resolve.
        """
        tx = await self._gateway.transaction_by_hash(tx_hash)
        if tx is None:
            raise NotFoundError(f"Transaction {tx_hash} not found")

        inputs, outputs = await self._movements([tx.internal_id])
        grouped_inputs = group_movements(inputs).get(tx.internal_id, [])
        grouped_outputs = group_movements(outputs).get(tx.internal_id, [])
        total_input = Amount.total(m.amount for m in grouped_inputs)
        total_output = Amount.total(m.amount for m in grouped_outputs)
        epoch, slot = byron_epoch_and_slot(tx.time)

        return TxSummary(
            hash=tx.hash,
            time=tx.time,
            block_height=tx.block_height,
            block_hash=tx.block_hash,
            epoch=epoch,
            slot=slot,
            inputs=grouped_inputs,
            outputs=grouped_outputs,
            total_input=total_input,
            total_output=total_output,
            fee=compute_fee(grouped_inputs, total_input, total_output),
        )

    async def raw_transaction(self, tx_hash: str) -> str:
        """Hex encoded body of one transaction.

        Raises:
            NotFoundError: no body is stored under the hash.
        """
        body = await self._gateway.raw_transaction(tx_hash)
        if body is None:
            raise NotFoundError(f"Transaction {tx_hash} not found")
        return body
