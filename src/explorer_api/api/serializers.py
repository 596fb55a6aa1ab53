"""JSON shapes for the HTTP layer.

Two wire formats are served. The legacy explorer format wraps amounts as
{"getCoin": "<decimal>"} and uses the ca*/ct*/cts* field prefixes; the v2
format uses plain decimal strings. Hashes are always lowercase hex with
no storage prefix. Amounts are never rendered as JSON numbers.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from explorer_api.health.status import HealthStatus
from explorer_api.models import (
    AddressSummary,
    Amount,
    DelegationEvent,
    Movement,
    PoolRef,
    RewardProjection,
    StakeAccount,
    TxHistoryEntry,
    TxSummary,
    Utxo,
)

LEGACY_ADDRESS_TYPE = "CPubKeyAddress"
TX_STATE_SUCCESSFUL = "Successful"
STAKE_DELEGATION_TYPE = "Stake delegation"


def coin(amount: Amount) -> dict[str, str]:
    """Legacy coin object."""
    return {"getCoin": amount.to_decimal_string()}


# ──────────────────────────────────────────────
# Legacy format
# ──────────────────────────────────────────────


def legacy_movement(movement: Movement) -> list[Any]:
    return [movement.address, coin(movement.amount)]


def legacy_tx_entry(entry: TxHistoryEntry) -> dict[str, Any]:
    result: dict[str, Any] = {
        "ctbId": entry.hash,
        "ctbTimeIssued": int(entry.last_update.timestamp()),
        "ctbInputs": [legacy_movement(m) for m in entry.inputs],
        "ctbOutputs": [legacy_movement(m) for m in entry.outputs],
        "ctbInputSum": coin(entry.input_sum),
        "ctbOutputSum": coin(entry.output_sum),
    }
    if entry.fee is not None:
        result["fee"] = coin(entry.fee)
    return result


def legacy_address_summary(summary: AddressSummary, single: bool) -> dict[str, Any]:
    """caAddress/caType for the single-address route, caAddresses for bulk."""
    head: dict[str, Any]
    if single:
        head = {"caAddress": summary.addresses[0], "caType": LEGACY_ADDRESS_TYPE}
    else:
        head = {"caAddresses": summary.addresses}
    return {
        **head,
        "caTxNum": summary.tx_count,
        "caBalance": coin(summary.balance),
        "caTxList": [legacy_tx_entry(entry) for entry in summary.tx_list],
    }


def legacy_tx_summary(summary: TxSummary) -> dict[str, Any]:
    block_time = int(summary.time.timestamp())
    return {
        "ctsId": summary.hash,
        "ctsTxTimeIssued": block_time,
        "ctsBlockTimeIssued": block_time,
        "ctsBlockHeight": summary.block_height,
        "ctsBlockEpoch": summary.epoch,
        "ctsBlockSlot": summary.slot,
        "ctsBlockHash": summary.block_hash,
        "ctsRelayedBy": None,
        "ctsTotalInput": coin(summary.total_input),
        "ctsTotalOutput": coin(summary.total_output),
        "ctsFees": coin(summary.fee) if summary.fee is not None else None,
        "ctsInputs": [legacy_movement(m) for m in summary.inputs],
        "ctsOutputs": [legacy_movement(m) for m in summary.outputs],
    }


def legacy_utxo(utxo: Utxo) -> dict[str, Any]:
    return {
        "tag": "CUtxo",
        "cuId": utxo.tx_hash,
        "cuOutIndex": utxo.index,
        "cuAddress": utxo.address,
        "cuCoins": coin(utxo.amount),
    }


# ──────────────────────────────────────────────
# v2 format
# ──────────────────────────────────────────────


def utxo(item: Utxo) -> dict[str, Any]:
    return {
        "tx_hash": item.tx_hash,
        "tx_index": item.index,
        "receiver": item.address,
        "amount": item.amount.to_decimal_string(),
        "block_num": item.block_height,
    }


def history_entry(entry: TxHistoryEntry) -> dict[str, Any]:
    return {
        "hash": entry.hash,
        "inputs": [
            {
                "address": m.address,
                "amount": m.amount.to_decimal_string(),
                "txHash": m.originating_tx_hash,
                "index": m.originating_index,
            }
            for m in entry.inputs
        ],
        "outputs": [
            {"address": m.address, "amount": m.amount.to_decimal_string()}
            for m in entry.outputs
        ],
        "input_sum": entry.input_sum.to_decimal_string(),
        "output_sum": entry.output_sum.to_decimal_string(),
        "fee": entry.fee.to_decimal_string() if entry.fee is not None else None,
        "block_num": entry.block.height,
        "block_hash": entry.block.hash,
        "time": entry.block.time.isoformat(),
        "tx_ordinal": entry.ordinal,
        "last_update": entry.last_update.isoformat(),
        "best_block_num": entry.best_block_height,
        "tx_state": TX_STATE_SUCCESSFUL,
    }


def pool(item: PoolRef) -> dict[str, Any]:
    return {
        "poolHash": item.pool_hash,
        "pledge": item.pledge.to_decimal_string(),
        "margin": str(item.margin),
        "fixedCost": item.fixed_cost.to_decimal_string(),
        "url": item.metadata_url,
    }


def pools_by_hash(items: list[PoolRef]) -> dict[str, dict[str, Any]]:
    result = {}
    for item in items:
        entry = pool(item)
        result[entry.pop("poolHash")] = entry
    return result


def reward_projection(projection: RewardProjection) -> dict[str, Any]:
    return {
        "forEpoch": projection.for_epoch,
        "rewardDate": projection.reward_date,
        "poolHash": projection.pool_hash,
    }


def delegation_event(event: DelegationEvent) -> dict[str, Any]:
    return {
        "epochNo": event.epoch,
        "slotNo": event.slot,
        "time": event.time.isoformat(),
        "poolHash": event.pool_hash,
        "txHash": event.tx_hash,
    }


def legacy_delegation_event(event: DelegationEvent) -> dict[str, Any]:
    """Delegation as listed in the legacy staking history."""
    return {**delegation_event(event), "type": STAKE_DELEGATION_TYPE}


def account_info(account: StakeAccount) -> dict[str, Any]:
    """Account info; unresolved fields render as empty objects, as wallets expect."""
    schedule = [reward_projection(p) for p in account.next_reward_schedule]
    return {
        "currentEpoch": account.current_epoch,
        "delegation": (
            pool(account.current_delegation_target)
            if account.current_delegation_target is not None
            else {}
        ),
        "hasStakingKey": account.has_active_key,
        "rewards": account.total_rewards.to_decimal_string(),
        "nextRewardDetails": schedule[0] if schedule else {},
        "rewardSchedule": schedule,
    }


def health_status(status: HealthStatus) -> dict[str, Any]:
    return asdict(status)
