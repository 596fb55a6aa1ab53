"""Instance health status cache and network tip probe."""

from explorer_api.health.status import HealthStatus, HealthStatusCache
from explorer_api.health.tip import ChainTipClient

__all__ = ["ChainTipClient", "HealthStatus", "HealthStatusCache"]
