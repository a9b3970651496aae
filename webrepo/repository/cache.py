"""Query result caching.

Provides the pass-through cache used by queries and ``Endpoint.get()``:
- Deterministic cache keys for primary key lookups
- Named in-memory caches backed by aiocache
- A cache directive a query consults before and after execution

Invalidation is left to the caller.
"""

import json
import logging
import threading

import typing as t
from aiocache.backends.memory import SimpleMemoryCache
from aiocache.serializers import PickleSerializer
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@t.runtime_checkable
class CacheProtocol(t.Protocol):
    async def get(self, key: str) -> t.Any: ...

    async def set(self, key: str, value: t.Any, ttl: int | None = None) -> t.Any: ...


_caches: dict[str, SimpleMemoryCache] = {}
_caches_lock = threading.Lock()


def get_cache(name: str = "default", namespace: str = "webrepo") -> SimpleMemoryCache:
    """Return the named in-memory cache, creating it on first use."""
    cache_id = f"{namespace}:{name}"
    with _caches_lock:
        if cache_id not in _caches:
            _caches[cache_id] = SimpleMemoryCache(
                serializer=PickleSerializer(),
                namespace=f"{cache_id}:",
            )
        return _caches[cache_id]


def resolve_cache(config: t.Any, namespace: str = "webrepo") -> CacheProtocol:
    """Turn a cache config into a cache backend.

    ``True`` selects the default named cache, a string selects a named
    cache, and any object with async ``get``/``set`` is used as-is.
    """
    if isinstance(config, CacheProtocol):
        return config
    if config is True:
        return get_cache(namespace=namespace)
    if isinstance(config, str):
        return get_cache(config, namespace=namespace)

    msg = f"Unsupported cache config: {config!r}"
    raise TypeError(msg)


def primary_key_cache_key(
    connection_name: str,
    endpoint_name: str,
    values: list[t.Any],
) -> str:
    """Cache key for a primary key lookup: ``get:<connection>.<endpoint>[...]``."""
    encoded = json.dumps(values, separators=(",", ":"), default=str)
    return f"get:{connection_name}.{endpoint_name}{encoded}"


@dataclass
class CacheDirective:
    """Where a query stores and looks up its read result."""

    key: str
    config: t.Any = True
    ttl: int | None = None
    namespace: str = "webrepo"

    @property
    def backend(self) -> CacheProtocol:
        return resolve_cache(self.config, self.namespace)

    async def fetch(self) -> t.Any:
        value = await self.backend.get(self.key)
        logger.debug(f"Cache {'hit' if value is not None else 'miss'} for {self.key}")
        return value

    async def store(self, value: t.Any) -> None:
        await self.backend.set(self.key, value, ttl=self.ttl)
