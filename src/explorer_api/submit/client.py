"""Transaction submission proxy via httpx async.

Forwards signed transactions (CBOR, base64 encoded by wallets) to the
external submission node. There is no automatic retry: a failed submit
is reported to the caller, who decides whether to resend.
"""

import base64
import binascii

import httpx

from explorer_api.config import HealthSettings, SubmitSettings
from explorer_api.exceptions import InvalidRequestError, UpstreamUnavailableError
from explorer_api.logging import get_logger

logger = get_logger(__name__)

SUBMIT_PATH = "/api/submit/tx"


class TxSubmitClient:
    """Async client for the transaction submission node."""

    def __init__(
        self,
        settings: SubmitSettings,
        health_settings: HealthSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._status_path = (health_settings or HealthSettings()).submit_status_path
        self._client = httpx.AsyncClient(
            base_url=settings.url,
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        """Release pooled connections."""
        await self._client.aclose()
        logger.info("tx_submit_client_closed")

    async def submit(self, signed_tx: str) -> str:
        """Send a base64 encoded signed transaction and return the node's reply.

        Raises:
            InvalidRequestError: payload missing, not base64, or rejected by
                the node (4xx).
            UpstreamUnavailableError: node unreachable or failing (5xx).
        """
        if not signed_tx:
            raise InvalidRequestError("Signed transaction missing")
        try:
            payload = base64.b64decode(signed_tx, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidRequestError("Signed transaction is not valid base64") from exc

        try:
            response = await self._client.post(
                SUBMIT_PATH,
                content=payload,
                headers={"Content-Type": "application/cbor"},
            )
        except httpx.HTTPError as exc:
            logger.error("tx_submit_connection_failed", error=str(exc))
            raise UpstreamUnavailableError(
                "Error trying to connect with submission node"
            ) from exc

        if response.status_code >= 500:
            logger.error(
                "tx_submit_upstream_error",
                status=response.status_code,
                body=response.text[:500],
            )
            raise UpstreamUnavailableError(
                f"Submission node failed with status {response.status_code}"
            )
        if response.status_code >= 400:
            logger.info("tx_submit_rejected", status=response.status_code)
            raise InvalidRequestError(f"Transaction rejected: {response.text}")

        logger.info("tx_submitted", size=len(payload))
        return response.text

    async def is_available(self) -> bool:
        """Health probe: True when the node answers its status endpoint."""
        try:
            response = await self._client.get(self._status_path)
        except httpx.HTTPError as exc:
            logger.warning("tx_submit_probe_failed", error=str(exc))
            return False
        return response.status_code == 200
