"""JSON API endpoints (v2): addresses, UTXOs, history, submission, accounts and health.

The pool list under /api/v2/stakePools is served by the legacy router.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from explorer_api.api import serializers

log = structlog.get_logger(__name__)

router = APIRouter()

TX_SENT_SUCCESSFULLY_MESSAGE = "Transaction sent successfully!"


async def _read_body(request: Request) -> dict[str, Any]:
    """Parsed JSON object body, or {} when the body is missing or not an object."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.get("/healthcheck")
async def healthcheck(request: Request) -> JSONResponse:
    """Deployed version, for monitoring tools."""
    return JSONResponse(content={"version": request.app.state.settings.version})


@router.get("/healthStatus")
async def health_status(request: Request) -> JSONResponse:
    """Latest cached health snapshot."""
    status = await request.app.state.health.snapshot()
    return JSONResponse(content=serializers.health_status(status))


@router.get("/bestBlock")
async def best_block(request: Request) -> JSONResponse:
    result = await request.app.state.engine.best_block()
    return JSONResponse(content={"Right": {"bestBlock": result}})


@router.post("/addresses/filterUsed")
async def filter_used_addresses(request: Request) -> JSONResponse:
    """Subset of the given addresses used at least once."""
    body = await _read_body(request)
    used = await request.app.state.engine.filter_used_addresses(body.get("addresses"))
    log.debug("filter_used_addresses_calculated", count=len(used))
    return JSONResponse(content=used)


@router.post("/txs/utxoForAddresses")
async def utxo_for_addresses(request: Request) -> JSONResponse:
    body = await _read_body(request)
    utxos = await request.app.state.engine.unspent_outputs(body.get("addresses"))
    return JSONResponse(content=[serializers.utxo(item) for item in utxos])


@router.post("/txs/utxoSumForAddresses")
async def utxo_sum_for_addresses(request: Request) -> JSONResponse:
    body = await _read_body(request)
    total = await request.app.state.engine.unspent_sum(body.get("addresses"))
    return JSONResponse(
        content={"sum": total.to_decimal_string() if total is not None else None}
    )


@router.post("/txs/history")
async def transactions_history(request: Request) -> JSONResponse:
    """One history page: body {addresses, dateFrom, limit?}."""
    body = await _read_body(request)
    page = await request.app.state.engine.history(
        body.get("addresses"), body.get("dateFrom"), body.get("limit")
    )
    return JSONResponse(content=[serializers.history_entry(entry) for entry in page])


@router.post("/txs/signed")
async def signed_transaction(request: Request) -> JSONResponse:
    """Forward a signed transaction (body {signedTx: base64}) to the node."""
    body = await _read_body(request)
    await request.app.state.submit_client.submit(body.get("signedTx"))
    return JSONResponse(content=TX_SENT_SUCCESSFULLY_MESSAGE)


@router.get("/account/info/{stake_address}")
async def account_info(stake_address: str, request: Request) -> JSONResponse:
    account = await request.app.state.reconciler.account_info(stake_address)
    return JSONResponse(content=serializers.account_info(account))


@router.post("/account/delegationHistory")
async def delegation_history(request: Request) -> JSONResponse:
    """Latest delegation certificates of body {account}, newest first."""
    body = await _read_body(request)
    events = await request.app.state.reconciler.delegation_events(
        body.get("account") or "",
        limit=request.app.state.settings.api.history_response_limit,
    )
    log.debug("delegation_history_calculated", count=len(events))
    return JSONResponse(content=[serializers.delegation_event(event) for event in events])
