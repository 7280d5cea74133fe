"""Time-boxed cache for generated artifacts."""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Generic, TypeVar, cast

from pydantic import TypeAdapter

from ecoplate.domain.generation import GenerationResult
from ecoplate.services.storage import Clock, KeyValueStore, storage_key, utc_now

T = TypeVar("T")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedArtifact(Generic[T]):
    """A generated value and the time it was produced."""

    value: T
    cached_at: datetime


def cache_key(owner: str, kind: str) -> str:
    """Return the cache key for an owner's artifact kind."""
    return storage_key(owner, f"cache:{kind}")


@dataclass
class ResponseCache:
    """Cache kept in memory and mirrored to a key-value store."""

    store: KeyValueStore
    clock: Clock = utc_now
    _entries: dict[str, CachedArtifact[object]] = field(default_factory=dict)

    async def get(
        self,
        key: str,
        producer: Callable[[], Awaitable[GenerationResult[T]]],
        window: timedelta,
        *,
        adapter: TypeAdapter[T],
        force_refresh: bool = False,
    ) -> GenerationResult[T]:
        """Return a fresh cached value or produce, store and return a new one.

        Fallback results are returned but never stored.
        """
        if not force_refresh:
            cached = self.lookup(key, window, adapter)
            if cached is not None:
                return GenerationResult(value=cached.value, cached=True)
        result = await producer()
        if not result.used_fallback:
            self.put(key, result.value, adapter)
        return result

    def lookup(
        self, key: str, window: timedelta, adapter: TypeAdapter[T]
    ) -> CachedArtifact[T] | None:
        """Return the entry for a key if it is younger than ``window``."""
        entry = self._entries.get(key)
        if entry is None:
            entry = self._load(key, adapter)
            if entry is None:
                return None
            self._entries[key] = entry
        if self.clock() - entry.cached_at >= window:
            return None
        return cast(CachedArtifact[T], entry)

    def put(self, key: str, value: T, adapter: TypeAdapter[T]) -> None:
        """Store a value stamped with the current time."""
        entry = CachedArtifact(value=value, cached_at=self.clock())
        self._entries[key] = entry
        payload = {
            "value": adapter.dump_python(value, mode="json"),
            "cached_at": entry.cached_at.isoformat(),
        }
        try:
            self.store.set(key, json.dumps(payload))
        except Exception as exc:
            _logger.warning("Failed to persist cache entry %s: %s", key, exc)

    def invalidate(self, key: str) -> None:
        """Drop a cached entry."""
        self._entries.pop(key, None)
        try:
            self.store.remove(key)
        except Exception as exc:
            _logger.warning("Failed to remove cache entry %s: %s", key, exc)

    def _load(self, key: str, adapter: TypeAdapter[T]) -> CachedArtifact[T] | None:
        try:
            raw = self.store.get(key)
        except Exception as exc:
            _logger.warning("Failed to read cache entry %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            value = adapter.validate_python(payload["value"])
            cached_at = datetime.fromisoformat(payload["cached_at"])
            if cached_at.tzinfo is None:
                raise ValueError("cached_at has no timezone")
        except (ValueError, TypeError, KeyError) as exc:
            _logger.warning("Discarding corrupt cache entry %s: %s", key, exc)
            self.invalidate(key)
            return None
        return CachedArtifact(value=value, cached_at=cached_at)
