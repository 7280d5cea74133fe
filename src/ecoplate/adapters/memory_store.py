"""In-memory key-value store with a total size limit."""

from dataclasses import dataclass, field

from ecoplate.services.storage import KeyValueStore, StorageQuotaExceededError


@dataclass
class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store that enforces a byte quota across all keys."""

    limit_bytes: int = 5_000_000
    _entries: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        """Return the stored value for a key."""
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        """Store a value, raising when the quota would be exceeded."""
        current = self.used_bytes() - _size(self._entries.get(key, ""))
        if current + _size(value) > self.limit_bytes:
            raise StorageQuotaExceededError(
                f"Storing {key} would exceed {self.limit_bytes} bytes"
            )
        self._entries[key] = value

    def remove(self, key: str) -> None:
        """Delete a key if present."""
        self._entries.pop(key, None)

    def used_bytes(self) -> int:
        """Return the number of bytes currently stored."""
        return sum(_size(value) for value in self._entries.values())


def _size(value: str) -> int:
    return len(value.encode("utf-8"))
