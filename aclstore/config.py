"""
Configuration management for aclstore.

All configuration is done via environment variables. This module provides
typed, immutable configuration classes with validation. Backends never read
the environment themselves: the values are passed to their constructors.

Invariants:
    - All settings have sensible defaults for local development
    - Configuration objects are frozen once built
    - Credentials are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep from_env() and the dataclass defaults in sync
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

# Name of the shared collection used in single-collection mode.
DEFAULT_RESOURCE_COLLECTION = "resources"


class BackendKind(Enum):
    """Supported storage backends."""

    MONGODB = "mongodb"
    MEMORY = "memory"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class BackendConfig:
    """Backend addressing configuration.

    Attributes:
        kind: Which backend implementation to build
        prefix: Prepended to every collection name (e.g. "acl_")
        use_single: Store all buckets in one collection, discriminated
            by a _bucketname field
        resource_collection: Name of the shared collection in single mode
    """

    kind: BackendKind = BackendKind.MONGODB
    prefix: str = ""
    use_single: bool = False
    resource_collection: str = DEFAULT_RESOURCE_COLLECTION

    @classmethod
    def from_env(cls) -> BackendConfig:
        """Load configuration from environment variables."""
        kind_str = os.getenv("ACL_BACKEND", "mongodb").lower()
        try:
            kind = BackendKind(kind_str)
        except ValueError:
            raise ValueError(f"Invalid ACL_BACKEND '{kind_str}'. Must be one of: mongodb, memory")

        return cls(
            kind=kind,
            prefix=os.getenv("ACL_PREFIX", ""),
            use_single=_env_flag("ACL_USE_SINGLE", "false"),
            resource_collection=os.getenv("ACL_RESOURCE_COLLECTION", DEFAULT_RESOURCE_COLLECTION),
        )


@dataclass(frozen=True)
class MongoConfig:
    """MongoDB connection configuration.

    Attributes:
        uri: MongoDB connection string
        database: Database holding the ACL collections
        app_name: Application name reported to the server
        connect_timeout_ms: Socket connect timeout
        socket_timeout_ms: Per-operation socket timeout
        server_selection_timeout_ms: How long to wait for a usable server
        max_pool_size: Maximum connections in the client pool
    """

    uri: str = "mongodb://localhost:27017"
    database: str = "acl"
    app_name: str = "aclstore"
    connect_timeout_ms: int = 3000
    socket_timeout_ms: int = 15000
    server_selection_timeout_ms: int = 3000
    max_pool_size: int = 100

    @classmethod
    def from_env(cls) -> MongoConfig:
        """Load configuration from environment variables."""
        return cls(
            uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
            database=os.getenv("MONGO_DATABASE", "acl"),
            app_name=os.getenv("MONGO_APP_NAME", "aclstore"),
            connect_timeout_ms=int(os.getenv("MONGO_CONNECT_TIMEOUT_MS", "3000")),
            socket_timeout_ms=int(os.getenv("MONGO_SOCKET_TIMEOUT_MS", "15000")),
            server_selection_timeout_ms=int(
                os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "3000")
            ),
            max_pool_size=int(os.getenv("MONGO_MAX_POOL_SIZE", "100")),
        )

    @property
    def redacted_uri(self) -> str:
        """Connection string with any credentials masked."""
        parts = urlsplit(self.uri)
        if "@" not in parts.netloc:
            return self.uri
        hosts = parts.netloc.rsplit("@", 1)[1]
        return urlunsplit(parts._replace(netloc=f"***@{hosts}"))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class AclStoreConfig:
    """Complete aclstore configuration.

    Attributes:
        backend: Backend selection and addressing
        mongo: MongoDB connection settings (used when backend is MONGODB)
        observability: Logging settings
    """

    backend: BackendConfig = field(default_factory=BackendConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AclStoreConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            backend=BackendConfig.from_env(),
            mongo=MongoConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.backend.use_single and not self.backend.resource_collection:
            raise ValueError("ACL_RESOURCE_COLLECTION is required when ACL_USE_SINGLE=true")

        if self.backend.kind == BackendKind.MONGODB:
            if not self.mongo.uri:
                raise ValueError("MONGO_URI is required when ACL_BACKEND=mongodb")
            if not self.mongo.database:
                raise ValueError("MONGO_DATABASE is required when ACL_BACKEND=mongodb")
            if self.mongo.max_pool_size <= 0:
                raise ValueError("MONGO_MAX_POOL_SIZE must be positive")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        is_mongo = self.backend.kind == BackendKind.MONGODB
        logger.info(
            "aclstore configuration loaded",
            extra={
                "backend": self.backend.kind.value,
                "prefix": self.backend.prefix,
                "use_single": self.backend.use_single,
                "mongo_uri": self.mongo.redacted_uri if is_mongo else None,
                "mongo_database": self.mongo.database if is_mongo else None,
                "log_level": self.observability.log_level,
            },
        )
