"""Read-through health status cache.

A background task refreshes the status every refresh interval by
probing the chain database tip, the network tip and the transaction
submission node.
Route handlers only ever read the latest snapshot; they never trigger a
probe themselves.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from explorer_api.config import HealthSettings
from explorer_api.exceptions import ExplorerError
from explorer_api.gateway.base import ChainGateway
from explorer_api.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class HealthStatus:
    """Point-in-time health of this instance."""

    healthy: bool = False
    unhealthy_from: int | None = None  # unix seconds
    db_best_block: int | None = None
    expected_best_block: int | None = None
    can_submit_tx: bool = False
    checked_at: float | None = None


class HealthStatusCache:
    """Holds the latest HealthStatus and refreshes it on an interval.

    Args:
        gateway: Chain database gateway, probed for its best block.
        settings: Refresh interval and tolerated block lag.
        expected_best_block: Optional probe returning the network tip. When
            absent the database is considered synced whenever it answers.
        submit_probe: Optional probe returning True when the submission
            node accepts transactions.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        settings: HealthSettings,
        expected_best_block: Callable[[], Awaitable[int | None]] | None = None,
        submit_probe: Callable[[], Awaitable[bool]] | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings
        self._expected_best_block = expected_best_block
        self._submit_probe = submit_probe
        self._status = HealthStatus()
        self._lock = asyncio.Lock()

    async def snapshot(self) -> HealthStatus:
        """Return the most recent status."""
        async with self._lock:
            return self._status

    async def refresh(self) -> HealthStatus:
        """Probe all collaborators once and store the new status."""
        try:
            db_best_block: int | None = await self._gateway.best_block_height()
        except ExplorerError as exc:
            logger.error("health_db_probe_failed", error=str(exc))
            db_best_block = None

        expected: int | None = None
        if self._expected_best_block is not None:
            expected = await self._expected_best_block()

        can_submit = True
        if self._submit_probe is not None:
            can_submit = await self._submit_probe()

        if db_best_block is None:
            db_synced = False
        elif expected is None:
            db_synced = True
        else:
            db_synced = expected - db_best_block <= self._settings.max_block_lag

        healthy = db_synced and can_submit
        now = time.time()

        async with self._lock:
            previous = self._status
            unhealthy_from = previous.unhealthy_from
            if healthy != previous.healthy or previous.checked_at is None:
                unhealthy_from = None if healthy else int(now)
                if healthy:
                    logger.info("instance_healthy", db_best_block=db_best_block)
                else:
                    logger.warning(
                        "instance_unhealthy",
                        db_best_block=db_best_block,
                        expected_best_block=expected,
                        can_submit_tx=can_submit,
                    )
            self._status = replace(
                previous,
                healthy=healthy,
                unhealthy_from=unhealthy_from,
                db_best_block=db_best_block,
                expected_best_block=expected,
                can_submit_tx=can_submit,
                checked_at=now,
            )
            return self._status

    async def run(self) -> None:
        """Refresh forever. Cancel the task to stop.

        A failing probe is logged and retried on the next interval; the
        previous snapshot stays readable meanwhile.
        """
        logger.info("health_refresh_loop_started", interval=self._settings.refresh_interval)
        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("health_refresh_error", exc_info=True)
            await asyncio.sleep(self._settings.refresh_interval)
