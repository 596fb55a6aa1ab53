"""Legacy explorer endpoints.

Responses keep the explorer's Either envelope: {"Right": ...} on success,
{"Left": "<message>"} for caller errors, always with HTTP 200.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from explorer_api.api import serializers
from explorer_api.exceptions import InvalidRequestError, NotFoundError

log = structlog.get_logger(__name__)

router = APIRouter()

INVALID_TX_MESSAGE = "Invalid transaction id!"


def _left(message: str) -> JSONResponse:
    return JSONResponse(content={"Left": message})


def _right(content: object) -> JSONResponse:
    return JSONResponse(content={"Right": content})


async def _read_address_list(request: Request) -> list[str] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, list) else None


@router.get("/addresses/summary/{address}")
async def address_summary(address: str, request: Request) -> JSONResponse:
    summary = await request.app.state.engine.summarize([address])
    log.debug("address_summary_served", address=address, tx_count=summary.tx_count)
    return _right(serializers.legacy_address_summary(summary, single=True))


@router.post("/bulk/addresses/summary")
async def bulk_address_summary(request: Request) -> JSONResponse:
    addresses = await _read_address_list(request)
    try:
        summary = await request.app.state.engine.summarize(addresses)
    except InvalidRequestError as exc:
        return _left(str(exc))
    return _right(serializers.legacy_address_summary(summary, single=False))


@router.post("/bulk/addresses/utxo")
async def unspent_tx_outputs(request: Request) -> JSONResponse:
    addresses = await _read_address_list(request)
    try:
        utxos = await request.app.state.engine.unspent_outputs(addresses)
    except InvalidRequestError as exc:
        return _left(str(exc))
    return _right([serializers.legacy_utxo(item) for item in utxos])


@router.get("/txs/summary/{tx}")
async def tx_summary(tx: str, request: Request) -> JSONResponse:
    try:
        summary = await request.app.state.engine.transaction_summary(tx)
    except NotFoundError:
        return _left(INVALID_TX_MESSAGE)
    return _right(serializers.legacy_tx_summary(summary))


@router.get("/txs/raw/{tx}")
async def tx_raw(tx: str, request: Request) -> JSONResponse:
    """Hex encoded transaction body."""
    try:
        body = await request.app.state.engine.raw_transaction(tx)
    except NotFoundError:
        return _left(INVALID_TX_MESSAGE)
    return _right(body)


@router.get("/account/info/{stake_address}")
async def account_info(stake_address: str, request: Request) -> JSONResponse:
    """Delegation, rewards, stake key status and next reward for an account."""
    account = await request.app.state.reconciler.account_info(stake_address)
    return JSONResponse(content=serializers.account_info(account))


@router.get("/account/stakingHistory/{stake_address}")
async def staking_history(stake_address: str, request: Request) -> JSONResponse:
    """Every delegation certificate of the account, newest first."""
    events = await request.app.state.reconciler.delegation_events(stake_address)
    return JSONResponse(
        content=[serializers.legacy_delegation_event(event) for event in events]
    )

@router.get("/account/rewardSchedule/{stake_address}")
async def reward_schedule(stake_address: str, request: Request) -> JSONResponse:
    """Projected payouts for the epochs currently in the reward pipeline."""
    account = await request.app.state.reconciler.account_info(stake_address)
    return JSONResponse(
        content=[serializers.reward_projection(p) for p in account.next_reward_schedule]
    )


@router.get("/v2/stakePools")
async def stake_pools(request: Request) -> JSONResponse:
    """All active pools keyed by pool hash."""
    pools = await request.app.state.reconciler.stake_pools()
    return JSONResponse(content=serializers.pools_by_hash(pools))


@router.get("/stakePools")
async def stake_pools_list(request: Request) -> JSONResponse:
    pools = await request.app.state.reconciler.stake_pools()
    return JSONResponse(content=[serializers.pool(item) for item in pools])
