"""Transaction assembler: flat rows in, ordered history entries out.

Inputs and outputs come back from the database as flat lists spanning
many transactions. They are grouped per transaction, put back in their
original position order, summed exactly and attached to their TxRef.
"""

from collections import defaultdict
from collections.abc import Iterable

from explorer_api.exceptions import DataConsistencyError
from explorer_api.logging import get_logger
from explorer_api.models import Amount, BlockInfo, Movement, TxHistoryEntry, TxRef

logger = get_logger(__name__)


def group_movements(movements: Iterable[Movement]) -> dict[int, list[Movement]]:
    """Group movements by transaction, each group sorted by index ascending.

    The sort is stable, so movements sharing an index keep their fetch order.
    """
    groups: dict[int, list[Movement]] = defaultdict(list)
    for movement in movements:
        groups[movement.tx_internal_id].append(movement)
    for group in groups.values():
        group.sort(key=lambda movement: movement.index)
    return dict(groups)


def compute_fee(inputs: list[Movement], input_sum: Amount, output_sum: Amount) -> Amount | None:
    """Fee is inputs minus outputs.

    Unknown (None) for transactions without inputs and for transactions
    whose outputs exceed their inputs, which happens when reward
    withdrawals fund part of the outputs.
    """
    if not inputs or output_sum > input_sum:
        return None
    return input_sum - output_sum


def build_entry(
    tx: TxRef,
    inputs: list[Movement],
    outputs: list[Movement],
    best_block_height: int | None = None,
) -> TxHistoryEntry:
    """Build one history entry from a transaction and its grouped movements."""
    input_sum = Amount.total(movement.amount for movement in inputs)
    output_sum = Amount.total(movement.amount for movement in outputs)
    return TxHistoryEntry(
        hash=tx.hash,
        inputs=inputs,
        outputs=outputs,
        input_sum=input_sum,
        output_sum=output_sum,
        fee=compute_fee(inputs, input_sum, output_sum),
        block=BlockInfo(height=tx.block_height, hash=tx.block_hash, time=tx.time),
        ordinal=tx.ordinal,
        last_update=tx.time,
        best_block_height=best_block_height,
    )


def assemble(
    transactions: list[TxRef],
    inputs: list[Movement],
    outputs: list[Movement],
    best_block_height: int | None = None,
) -> list[TxHistoryEntry]:
    """Assemble history entries, most recent first.

    Every TxRef yields exactly one entry, with empty lists and zero sums
    when it has no matching movements. Entries sharing a timestamp keep
    the order of transactions. No truncation is applied.

    Raises:
        DataConsistencyError: a movement references a transaction that is
            not in transactions.
    """
    known_ids = {tx.internal_id for tx in transactions}
    input_groups = group_movements(inputs)
    output_groups = group_movements(outputs)

    orphans = (set(input_groups) | set(output_groups)) - known_ids
    if orphans:
        logger.error(
            "movements_without_transaction",
            orphan_tx_ids=sorted(orphans),
            tx_count=len(transactions),
        )
        raise DataConsistencyError(
            f"Movements reference unknown transactions: {sorted(orphans)}"
        )

    entries = [
        build_entry(
            tx,
            input_groups.get(tx.internal_id, []),
            output_groups.get(tx.internal_id, []),
            best_block_height,
        )
        for tx in transactions
    ]
    # sorted() is stable and reverse=True preserves the order of equal keys
    return sorted(entries, key=lambda entry: entry.last_update, reverse=True)
