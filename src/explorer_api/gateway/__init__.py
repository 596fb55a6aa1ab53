"""Chain-sync database gateway -- read-only typed access via aiosqlite."""

from explorer_api.gateway.base import ChainGateway
from explorer_api.gateway.database import ChainDatabase
from explorer_api.gateway.hashes import unwrap_hash, wrap_hash
from explorer_api.gateway.sqlite_gateway import SqliteChainGateway

__all__ = [
    "ChainDatabase",
    "ChainGateway",
    "SqliteChainGateway",
    "unwrap_hash",
    "wrap_hash",
]
