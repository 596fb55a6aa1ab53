"""Network tip probe via httpx async.

Asks a public explorer GraphQL endpoint for the current block height, so
the health cache can tell how far the local chain-sync database lags
behind the network.
"""

import httpx

from explorer_api.config import HealthSettings
from explorer_api.logging import get_logger

logger = get_logger(__name__)

TIP_QUERY = "query cardanoDynamic { cardano { blockHeight } }"


class ChainTipClient:
    """Fetches the expected best block height from an external explorer."""

    def __init__(
        self,
        settings: HealthSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.tip_url:
            raise ValueError("HealthSettings.tip_url is required for the tip probe")
        self._url = settings.tip_url
        self._client = httpx.AsyncClient(
            timeout=settings.tip_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def expected_best_block(self) -> int | None:
        """Network block height, or None when the explorer cannot tell.

        With None the database lag is not checked for this round.
        """
        try:
            response = await self._client.post(
                self._url, json={"query": TIP_QUERY, "variables": {}}
            )
            response.raise_for_status()
            height = response.json()["data"]["cardano"]["blockHeight"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("chain_tip_probe_failed", url=self._url, error=str(exc))
            return None
        if isinstance(height, bool) or not isinstance(height, int) or height <= 0:
            logger.warning("chain_tip_probe_invalid", url=self._url, block_height=height)
            return None
        return height
