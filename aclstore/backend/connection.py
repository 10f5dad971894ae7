"""
MongoDB connection lifecycle and backend factory.

Backends receive an open database handle; this module builds one from
MongoConfig and selects a backend from BackendConfig.

Invariants:
    - connect() returns only after the server answered a ping
    - One client (and connection pool) is shared by all operations

How to change safely:
    - New client options belong in MongoConfig, not here
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from ..config import AclStoreConfig, BackendKind, MongoConfig
from ..errors import BackendConnectionError
from .memory import InMemoryBackend
from .mongodb import MongoDBBackend

if TYPE_CHECKING:
    from .base import DocumentBackend

logger = logging.getLogger(__name__)


class MongoConnection:
    """Owns the Motor client used by MongoDBBackend.

    Example:
        >>> connection = MongoConnection(MongoConfig.from_env())
        >>> await connection.connect()
        >>> backend = MongoDBBackend(connection.database)
        >>> ...
        >>> connection.close()
    """

    def __init__(self, config: MongoConfig) -> None:
        self.config = config
        self._client: Optional[AsyncIOMotorClient] = None

    @property
    def is_connected(self) -> bool:
        """Whether connect() succeeded and close() was not called."""
        return self._client is not None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """The configured database.

        Raises:
            BackendConnectionError: If not connected
        """
        if self._client is None:
            raise BackendConnectionError("Not connected", address=self.config.redacted_uri)
        return self._client[self.config.database]

    async def connect(self) -> None:
        """Create the client and check the server is reachable.

        Raises:
            BackendConnectionError: If the server cannot be reached
        """
        if self._client is not None:
            return

        client: AsyncIOMotorClient = AsyncIOMotorClient(
            self.config.uri,
            appname=self.config.app_name,
            maxPoolSize=self.config.max_pool_size,
            connectTimeoutMS=self.config.connect_timeout_ms,
            socketTimeoutMS=self.config.socket_timeout_ms,
            serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
        )
        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            client.close()
            raise BackendConnectionError(
                f"Failed to connect to MongoDB: {e}",
                address=self.config.redacted_uri,
            ) from e

        self._client = client
        logger.info(
            "Connected to MongoDB",
            extra={"uri": self.config.redacted_uri, "database": self.config.database},
        )

    def close(self) -> None:
        """Close the client and its connection pool."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")


def create_backend(
    config: AclStoreConfig,
    database: Optional[AsyncIOMotorDatabase] = None,
) -> DocumentBackend:
    """Factory function to create a backend from configuration.

    Args:
        config: aclstore configuration
        database: Open Motor database (required for the MongoDB backend)

    Returns:
        Backend implementation selected by config.backend.kind

    Raises:
        ValueError: If the MongoDB backend is selected without a database
    """
    options = config.backend
    if options.kind == BackendKind.MEMORY:
        return InMemoryBackend(options.prefix, options.use_single, options.resource_collection)
    elif options.kind == BackendKind.MONGODB:
        if database is None:
            raise ValueError("A database handle is required for the mongodb backend")
        return MongoDBBackend(
            database, options.prefix, options.use_single, options.resource_collection
        )
    else:
        raise ValueError(f"Unsupported backend: {options.kind}")
