"""
Settings and configuration for mongo-gridfs.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables; CLI options override them.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass

__all__ = ["Settings", "create_settings_from_env", "DEFAULT_CHUNK_SIZE", "DEFAULT_PORT"]

DEFAULT_PORT = 27017
DEFAULT_CHUNK_SIZE = 256 * 1024

# Server-side document limit is 16 MiB; leave room for the chunk envelope
MAX_CHUNK_SIZE = 16 * 1024 * 1024 - 1024


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for a GridFS session.

    Connection Settings:
        host: Server hostname (required)
        port: Server port
        slave_ok: Allow reads from secondaries
        master_sync: Require a connection to the replica set primary
        connect_timeout_s: Server selection / connect timeout in seconds
        connect_retry: Number of retries for the initial connection (0=no retry)

    Storage Settings:
        db: Database name (required)
        collection: GridFS collection prefix, e.g. "fs" (required)
        chunk_size: Chunk size used by put
        verbose: Log progress to stderr
    """
    host: str
    db: str
    collection: str
    port: int = DEFAULT_PORT
    verbose: bool = False
    slave_ok: bool = False
    master_sync: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    connect_timeout_s: float = 10.0
    connect_retry: int = 0

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.host:
            raise ValueError("host is required")

        host_pattern = r"^[a-zA-Z0-9._-]+$|^\[[0-9a-fA-F:]+\]$"
        if not re.match(host_pattern, self.host):
            raise ValueError(f"Invalid host format: {self.host}")

        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")

        if not self.db:
            raise ValueError("db is required")
        # Database names may not contain these characters server-side
        if re.search(r'[/\\. "$]', self.db):
            raise ValueError(f"Invalid db name: {self.db}")

        if not self.collection:
            raise ValueError("collection is required")
        if self.collection.startswith(".") or self.collection.endswith(".") or "$" in self.collection:
            raise ValueError(f"Invalid collection name: {self.collection}")

        if not 0 < self.chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}, got {self.chunk_size}")

        if self.connect_timeout_s <= 0:
            raise ValueError(f"connect_timeout_s must be positive, got {self.connect_timeout_s}")

        if self.connect_retry < 0:
            raise ValueError(f"connect_retry must be non-negative, got {self.connect_retry}")

    @property
    def namespace(self) -> str:
        """GridFS namespace prefix: ``<db>.<collection>``."""
        return f"{self.db}.{self.collection}"


def create_settings_from_env(**overrides) -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - GRIDFS_HOST (required)
        - GRIDFS_PORT (default: 27017)
        - GRIDFS_DB (required)
        - GRIDFS_COLLECTION (required)
        - GRIDFS_VERBOSE (default: false)
        - GRIDFS_SLAVE_OK (default: false)
        - GRIDFS_MASTER_SYNC (default: false)
        - GRIDFS_CHUNK_SIZE (default: 262144)
        - GRIDFS_CONNECT_TIMEOUT (default: 10.0)
        - GRIDFS_CONNECT_RETRY (default: 0)

    Args:
        **overrides: Values that take precedence over the environment; None
            values are ignored so unset CLI options fall through.

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid or required values missing

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')

    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default

    values = {
        "host": os.getenv("GRIDFS_HOST"),
        "port": get_int("GRIDFS_PORT", DEFAULT_PORT),
        "db": os.getenv("GRIDFS_DB"),
        "collection": os.getenv("GRIDFS_COLLECTION"),
        "verbose": str_to_bool(os.getenv("GRIDFS_VERBOSE", "false")),
        "slave_ok": str_to_bool(os.getenv("GRIDFS_SLAVE_OK", "false")),
        "master_sync": str_to_bool(os.getenv("GRIDFS_MASTER_SYNC", "false")),
        "chunk_size": get_int("GRIDFS_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        "connect_timeout_s": get_float("GRIDFS_CONNECT_TIMEOUT", 10.0),
        "connect_retry": get_int("GRIDFS_CONNECT_RETRY", 0),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    if not values["host"]:
        raise ValueError("GRIDFS_HOST environment variable or --host is required")
    if not values["db"]:
        raise ValueError("GRIDFS_DB environment variable or --db is required")
    if not values["collection"]:
        raise ValueError("GRIDFS_COLLECTION environment variable or --collection is required")

    return Settings(**values)
