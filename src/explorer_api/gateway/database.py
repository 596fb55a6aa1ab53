"""Async SQLite connection manager for the chain-sync database.

Uses aiosqlite for non-blocking reads. The database is populated by an
external chain-sync process; in production the connection is opened
read-only. The schema below mirrors the chain-sync tables this service
reads and is only created for local development and tests.
"""

import os
from typing import Self

import aiosqlite

from explorer_api.logging import get_logger

logger = get_logger(__name__)

# Hashes are TEXT with a leading '\x' marker, lovelace values are TEXT
# restored as Amount, times are UTC 'YYYY-MM-DD HH:MM:SS'.
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS block (
    id INTEGER PRIMARY KEY,
    hash TEXT NOT NULL UNIQUE,
    epoch_no INTEGER,
    slot_no INTEGER,
    block_no INTEGER,
    time TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tx (
    id INTEGER PRIMARY KEY,
    hash TEXT NOT NULL UNIQUE,
    block INTEGER NOT NULL REFERENCES block(id),
    block_index INTEGER NOT NULL DEFAULT 0,
    size INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS tx_body (
    hash TEXT PRIMARY KEY,
    body TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tx_out (
    id INTEGER PRIMARY KEY,
    tx_id INTEGER NOT NULL REFERENCES tx(id),
    "index" INTEGER NOT NULL,
    address TEXT NOT NULL,
    value TEXT NOT NULL,
    UNIQUE (tx_id, "index")
);

CREATE TABLE IF NOT EXISTS tx_in (
    id INTEGER PRIMARY KEY,
    tx_in_id INTEGER NOT NULL REFERENCES tx(id),
    tx_out_id INTEGER NOT NULL REFERENCES tx(id),
    tx_out_index INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS epoch (
    no INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS stake_address (
    id INTEGER PRIMARY KEY,
    hash TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS stake_registration (
    id INTEGER PRIMARY KEY,
    addr_id INTEGER NOT NULL REFERENCES stake_address(id),
    tx_id INTEGER NOT NULL REFERENCES tx(id)
);

CREATE TABLE IF NOT EXISTS stake_deregistration (
    id INTEGER PRIMARY KEY,
    addr_id INTEGER NOT NULL REFERENCES stake_address(id),
    tx_id INTEGER NOT NULL REFERENCES tx(id)
);

CREATE TABLE IF NOT EXISTS pool_hash (
    id INTEGER PRIMARY KEY,
    hash TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS pool_meta_data (
    id INTEGER PRIMARY KEY,
    url TEXT NOT NULL,
    hash TEXT
);

CREATE TABLE IF NOT EXISTS pool_update (
    id INTEGER PRIMARY KEY,
    hash_id INTEGER NOT NULL REFERENCES pool_hash(id),
    pledge TEXT NOT NULL,
    margin TEXT NOT NULL,
    fixed_cost TEXT NOT NULL,
    meta INTEGER REFERENCES pool_meta_data(id),
    registered_tx_id INTEGER NOT NULL REFERENCES tx(id)
);

CREATE TABLE IF NOT EXISTS pool_retire (
    id INTEGER PRIMARY KEY,
    update_id INTEGER NOT NULL REFERENCES pool_update(id),
    retiring_epoch INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS delegation (
    id INTEGER PRIMARY KEY,
    addr_id INTEGER NOT NULL REFERENCES stake_address(id),
    update_id INTEGER NOT NULL REFERENCES pool_update(id),
    tx_id INTEGER NOT NULL REFERENCES tx(id)
);

CREATE TABLE IF NOT EXISTS reward (
    id INTEGER PRIMARY KEY,
    addr_id INTEGER NOT NULL REFERENCES stake_address(id),
    amount TEXT NOT NULL,
    epoch_no INTEGER NOT NULL,
    pool_id INTEGER REFERENCES pool_hash(id)
);

CREATE TABLE IF NOT EXISTS reserve (
    id INTEGER PRIMARY KEY,
    addr_id INTEGER NOT NULL REFERENCES stake_address(id),
    amount TEXT NOT NULL,
    tx_id INTEGER NOT NULL REFERENCES tx(id)
);

CREATE TABLE IF NOT EXISTS withdrawal (
    id INTEGER PRIMARY KEY,
    addr_id INTEGER NOT NULL REFERENCES stake_address(id),
    amount TEXT NOT NULL,
    tx_id INTEGER NOT NULL REFERENCES tx(id)
);
"""

_CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_tx_out_address ON tx_out(address);

CREATE INDEX IF NOT EXISTS idx_block_time ON block(time);

CREATE INDEX IF NOT EXISTS idx_tx_in_source ON tx_in(tx_out_id, tx_out_index);
"""


class ChainDatabase:
    """Async SQLite connection manager for chain-sync data.

    Usage:
        # Context manager (recommended)
        async with ChainDatabase("/path/to/chain.db") as database:
            gateway = SqliteChainGateway(database)

        # Manual lifecycle
        database = ChainDatabase("/path/to/chain.db")
        await database.connect()
        try:
            ...
        finally:
            await database.close()
    """

    def __init__(
        self,
        db_path: str = "data/chain.db",
        read_only: bool = True,
        create_schema: bool = False,
    ) -> None:
        self._db_path = db_path
        self._read_only = read_only and db_path != ":memory:"
        self._create_schema = create_schema
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the database connection and optionally create the schema."""
        if self._read_only:
            self._connection = await aiosqlite.connect(
                f"file:{self._db_path}?mode=ro", uri=True
            )
        else:
            db_dir = os.path.dirname(self._db_path)
            if db_dir and self._db_path != ":memory:":
                os.makedirs(db_dir, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path)

        if self._create_schema:
            await self._create_tables()

        logger.info(
            "chain_db_connected",
            db_path=self._db_path,
            read_only=self._read_only,
        )

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("chain_db_closed", db_path=self._db_path)

    async def _create_tables(self) -> None:
        """Create all tables and indexes if they do not exist."""
        assert self._connection is not None
        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.executescript(_CREATE_INDEXES_SQL)
        await self._connection.commit()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Async context manager exit."""
        await self.close()
