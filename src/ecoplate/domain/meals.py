"""Domain models for meal logging."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum

BREAKFAST_START_HOUR = 4
LUNCH_START_HOUR = 10
DINNER_START_HOUR = 18


class MealSlot(StrEnum):
    """Meal slot inferred from the local hour a meal was logged."""

    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"


def meal_slot_for_hour(hour: int) -> MealSlot:
    """Return the meal slot for a local hour of day."""
    if BREAKFAST_START_HOUR <= hour < LUNCH_START_HOUR:
        return MealSlot.BREAKFAST
    if LUNCH_START_HOUR <= hour < DINNER_START_HOUR:
        return MealSlot.LUNCH
    return MealSlot.DINNER


@dataclass(frozen=True)
class FoodItem:
    """A food item with a free-text quantity."""

    name: str
    quantity: str
    footprint_kg: float | None = None


@dataclass(frozen=True)
class MealLogEntry:
    """A logged meal. Entries are never mutated once created."""

    owner: str
    date: date
    timestamp: datetime
    items: tuple[FoodItem, ...]
    total_footprint_kg: float
    meal_slot: MealSlot
    photo_data_uri: str | None = None


@dataclass(frozen=True)
class DerivedLogView:
    """State of the log store right after an append."""

    entry: MealLogEntry
    logs: tuple[MealLogEntry, ...]
    persisted: bool


@dataclass(frozen=True)
class MealResult:
    """Outcome of logging a meal, kept until the result is read back."""

    entry: MealLogEntry
    suggestion: str | None
    view: DerivedLogView
