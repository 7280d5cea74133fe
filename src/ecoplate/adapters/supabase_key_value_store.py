"""Supabase table used as a key-value store."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from ecoplate.services.storage import KeyValueStore, StorageQuotaExceededError


@dataclass
class SupabaseKeyValueStore(KeyValueStore):
    """Supabase implementation backed by the ``kv_entries`` table."""

    client: Client
    value_limit_bytes: int = 5_000_000
    table_name: str = "kv_entries"

    def get(self, key: str) -> str | None:
        """Return the stored value for a key."""
        response = (
            self.client.table(self.table_name)
            .select("value")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        value = response.data[0].get("value")
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        """Upsert a value for a key."""
        if len(value.encode("utf-8")) > self.value_limit_bytes:
            raise StorageQuotaExceededError(
                f"Value for {key} exceeds {self.value_limit_bytes} bytes"
            )
        self.client.table(self.table_name).upsert(
            {
                "key": key,
                "value": value,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def remove(self, key: str) -> None:
        """Delete a key."""
        self.client.table(self.table_name).delete().eq("key", key).execute()
