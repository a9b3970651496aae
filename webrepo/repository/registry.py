"""Endpoint Registry Implementation.

Provides centralized creation and lookup of endpoints:
- One endpoint instance per alias
- Named connections resolved from the endpoint's default connection name
- Dependency injection integration
"""

import threading

import typing as t
from typing import Any

from webrepo.depends import depends

from ._base import RepositoryError
from .connection import Connection
from .endpoint import Endpoint


class EndpointRegistryError(RepositoryError):
    """Exception for endpoint registry operations."""

    def __init__(self, message: str, entity_type: str | None = None) -> None:
        super().__init__(message, entity_type=entity_type, operation="registry")


class EndpointRegistry:
    """Registry of endpoint instances keyed by alias.

    ``get`` builds an endpoint on first use and returns the same instance
    afterwards. Passing different options for an alias that already exists
    is an error.
    """

    def __init__(self) -> None:
        self._instances: dict[str, Endpoint] = {}
        self._options: dict[str, dict[str, Any]] = {}
        self._connections: dict[str, Connection] = {}
        self._lock = threading.RLock()

    def set_connection(self, name: str, connection: Connection) -> None:
        with self._lock:
            self._connections[name] = connection

    def get_connection(self, name: str) -> Connection | None:
        with self._lock:
            return self._connections.get(name)

    def get(
        self,
        alias: str,
        endpoint_class: type[Endpoint] | None = None,
        **options: Any,
    ) -> Endpoint:
        """Get or create the endpoint registered under ``alias``.

        Args:
            alias: Registry alias, also used as endpoint alias by default
            endpoint_class: Endpoint type to build (``Endpoint`` by default)
            **options: Endpoint configuration

        Returns:
            Endpoint instance

        Raises:
            EndpointRegistryError: The alias exists with different options
        """
        with self._lock:
            if alias in self._instances:
                if options and options != self._options.get(alias):
                    msg = (
                        f'You cannot configure "{alias}", it already exists in the registry.'
                    )
                    raise EndpointRegistryError(msg, entity_type=alias)
                return self._instances[alias]

            endpoint_class = endpoint_class or Endpoint
            config = {"alias": alias, "registry_alias": alias, **options}
            if config.get("connection") is None:
                connection = self._connections.get(endpoint_class.default_connection_name())
                if connection is not None:
                    config["connection"] = connection

            endpoint = endpoint_class(config)
            self._instances[alias] = endpoint
            self._options[alias] = options
            return endpoint

    def set(self, alias: str, endpoint: Endpoint) -> Endpoint:
        with self._lock:
            self._instances[alias] = endpoint
            self._options.pop(alias, None)
        return endpoint

    def exists(self, alias: str) -> bool:
        with self._lock:
            return alias in self._instances

    def remove(self, alias: str) -> None:
        with self._lock:
            self._instances.pop(alias, None)
            self._options.pop(alias, None)

    def clear(self) -> None:
        with self._lock:
            self._instances.clear()
            self._options.clear()

    def aliases(self) -> list[str]:
        with self._lock:
            return list(self._instances)

    def __contains__(self, alias: object) -> bool:
        return isinstance(alias, str) and self.exists(alias)


def get_endpoint_registry() -> EndpointRegistry:
    """Get the shared endpoint registry from the dependency container."""
    return t.cast(EndpointRegistry, depends.get_sync(EndpointRegistry))
