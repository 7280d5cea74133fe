"""Append-only meal log store."""

import json
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import cast
from zoneinfo import ZoneInfo

from ecoplate.domain.meals import (
    DerivedLogView,
    FoodItem,
    MealLogEntry,
    MealSlot,
    meal_slot_for_hour,
)
from ecoplate.services.storage import Clock, KeyValueStore, storage_key, utc_now

MEAL_LOGS_KIND = "meal_logs"

_logger = logging.getLogger(__name__)

LogListener = Callable[[MealLogEntry, tuple[MealLogEntry, ...]], None]


class MealValidationError(ValueError):
    """Raised when a meal cannot be logged as described."""


@dataclass
class MealLogStore:
    """Newest-first meal log for one owner with a capped persisted projection."""

    owner: str
    store: KeyValueStore
    timezone_name: str = "UTC"
    persist_limit: int = 20
    memory_limit: int = 100
    clock: Clock = utc_now
    _logs: list[MealLogEntry] = field(default_factory=list)
    _listeners: list[LogListener] = field(default_factory=list)

    @property
    def logs(self) -> tuple[MealLogEntry, ...]:
        """Return a snapshot of the logs, newest first."""
        return tuple(self._logs)

    def load(self) -> tuple[MealLogEntry, ...]:
        """Replace in-memory logs with the persisted projection."""
        try:
            raw = self.store.get(self._key)
        except Exception as exc:
            _logger.warning("Failed to read meal logs for %s: %s", self.owner, exc)
            self._logs = []
            return self.logs
        if raw is None:
            self._logs = []
            return self.logs
        try:
            records = json.loads(raw)
            entries = [
                entry
                for entry in (entry_from_record(record) for record in records)
                if entry.owner == self.owner
            ]
            entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            _logger.warning(
                "Discarding unreadable meal logs for %s: %s", self.owner, exc
            )
            self._logs = []
            return self.logs
        self._logs = entries[: self.memory_limit]
        return self.logs

    def subscribe(self, listener: LogListener) -> None:
        """Register a callback invoked after every append."""
        self._listeners.append(listener)

    def append(
        self,
        items: Sequence[FoodItem],
        total_footprint_kg: float,
        photo_data_uri: str | None = None,
    ) -> DerivedLogView:
        """Validate and record a meal, then notify listeners."""
        validated = validate_items(items)
        if not _is_valid_footprint(total_footprint_kg):
            raise MealValidationError(
                "Total footprint must be a non-negative number."
            )
        now = self.clock().astimezone(ZoneInfo(self.timezone_name))
        entry = MealLogEntry(
            owner=self.owner,
            date=now.date(),
            timestamp=now,
            items=validated,
            total_footprint_kg=float(total_footprint_kg),
            meal_slot=meal_slot_for_hour(now.hour),
            photo_data_uri=photo_data_uri,
        )
        self._logs.insert(0, entry)
        del self._logs[self.memory_limit :]
        persisted = self._persist()
        snapshot = self.logs
        for listener in self._listeners:
            listener(entry, snapshot)
        return DerivedLogView(entry=entry, logs=snapshot, persisted=persisted)

    def _persist(self) -> bool:
        records = [
            entry_to_record(entry) for entry in self._logs[: self.persist_limit]
        ]
        try:
            self.store.set(self._key, json.dumps(records))
        except Exception as exc:
            _logger.warning(
                "Failed to persist meal logs for %s, keeping in-memory state: %s",
                self.owner,
                exc,
            )
            return False
        return True

    @property
    def _key(self) -> str:
        return storage_key(self.owner, MEAL_LOGS_KIND)


def validate_items(items: Sequence[FoodItem]) -> tuple[FoodItem, ...]:
    """Return cleaned items or raise MealValidationError."""
    if not items:
        raise MealValidationError("Add at least one food item to log a meal.")
    cleaned: list[FoodItem] = []
    for item in items:
        name = item.name.strip()
        quantity = item.quantity.strip()
        if not name:
            raise MealValidationError("Every food item needs a name.")
        if not quantity:
            raise MealValidationError(
                f"Please describe the quantity and units for {name}."
            )
        if item.footprint_kg is not None and not _is_valid_footprint(
            item.footprint_kg
        ):
            raise MealValidationError(
                f"Footprint for {name} must be a non-negative number."
            )
        cleaned.append(
            FoodItem(name=name, quantity=quantity, footprint_kg=item.footprint_kg)
        )
    return tuple(cleaned)


def _is_valid_footprint(value: float) -> bool:
    return math.isfinite(value) and value >= 0


def entry_to_record(entry: MealLogEntry) -> dict[str, object]:
    """Serialize an entry for persistence. The photo is not persisted."""
    return {
        "owner": entry.owner,
        "date": entry.date.isoformat(),
        "timestamp": entry.timestamp.isoformat(),
        "items": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "footprint_kg": item.footprint_kg,
            }
            for item in entry.items
        ],
        "total_footprint_kg": entry.total_footprint_kg,
        "meal_slot": entry.meal_slot.value,
    }


def entry_from_record(record: dict[str, object]) -> MealLogEntry:
    """Parse a persisted entry record."""
    raw_items = cast(list[dict[str, object]], record["items"])
    items = tuple(
        FoodItem(
            name=str(item["name"]),
            quantity=str(item["quantity"]),
            footprint_kg=(
                float(str(item["footprint_kg"]))
                if item.get("footprint_kg") is not None
                else None
            ),
        )
        for item in raw_items
    )
    timestamp = datetime.fromisoformat(str(record["timestamp"]))
    slot_raw = record.get("meal_slot")
    slot = (
        MealSlot(str(slot_raw)) if slot_raw else meal_slot_for_hour(timestamp.hour)
    )
    return MealLogEntry(
        owner=str(record["owner"]),
        date=date.fromisoformat(str(record["date"])),
        timestamp=timestamp,
        items=items,
        total_footprint_kg=float(str(record["total_footprint_kg"])),
        meal_slot=slot,
    )
