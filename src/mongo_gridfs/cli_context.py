"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings, the
transport and the store, avoiding global state and enabling proper
dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .settings import Settings, create_settings_from_env
from .storage import GridStore, Transport
from .storage.mongo_transport import connect


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, transport, store) that
    are initialized once and shared across a CLI command execution. The
    connection is opened on first use and released by close().
    """
    settings: Settings
    _transport: Optional[Transport] = None
    _store: Optional[GridStore] = None

    @classmethod
    def from_env(cls, **overrides) -> CLIContext:
        """
        Create CLI context from environment variables.

        Args:
            **overrides: CLI option values; None means "not given"

        Returns:
            CLIContext with settings loaded from environment
        """
        return cls(settings=create_settings_from_env(**overrides))

    @property
    def transport(self) -> Transport:
        """Get or open the connection (lazy initialization)."""
        if self._transport is None:
            self._transport = connect(self.settings)
        return self._transport

    @property
    def store(self) -> GridStore:
        """Get or create the store for the configured db and collection."""
        if self._store is None:
            self._store = GridStore.from_settings(self.transport, self.settings)
        return self._store

    def close(self) -> None:
        """Disconnect if a connection was opened."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            self._store = None
