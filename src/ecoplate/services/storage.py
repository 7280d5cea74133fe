"""Key-value persistence interface shared by the session services."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

Clock = Callable[[], datetime]


class StorageQuotaExceededError(RuntimeError):
    """Raised when a value does not fit in the storage backend."""


class KeyValueStore(Protocol):
    """Size-limited string key-value persistence."""

    def get(self, key: str) -> str | None:
        """Return the stored value for a key, if present."""

    def set(self, key: str, value: str) -> None:
        """Store a value. May raise when the backend is full."""

    def remove(self, key: str) -> None:
        """Delete a key if present."""


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(tz=UTC)


def storage_key(owner: str, kind: str) -> str:
    """Return the namespaced key for an owner's persisted projection."""
    return f"{owner}:{kind}"
