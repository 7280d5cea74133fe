"""Models for generated artifacts and their validation."""

from dataclasses import dataclass
from typing import Annotated, Generic, Literal, TypeVar

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from ecoplate.domain.challenges import (
    DAILY_TARGET_DEFAULTS,
    WEEKLY_TARGET_DEFAULTS,
    DailyChallengeKind,
    WeeklyChallengeKind,
)

T = TypeVar("T")


@dataclass(frozen=True)
class GenerationResult(Generic[T]):
    """Value produced by a generation call, or the fallback used instead."""

    value: T
    used_fallback: bool = False
    error: str | None = None
    cached: bool = False


@dataclass(frozen=True)
class ChatMessage:
    """One turn of the assistant conversation."""

    id: str
    sender: Literal["user", "model"]
    text: str


class GeneratedTip(BaseModel):
    """A short sustainability tip."""

    tip: str = Field(min_length=1)


class FoodSwap(BaseModel):
    """A lower-carbon alternative for a commonly eaten item."""

    original_item: str = Field(min_length=1)
    suggested_item: str = Field(min_length=1)
    co2e_saving_estimate: str
    details: str | None = None
    try_this: bool = False


class GeneratedFoodSwaps(BaseModel):
    """Between one and five food swaps."""

    swaps: list[FoodSwap] = Field(min_length=1, max_length=5)


class ChatAnswer(BaseModel):
    """Assistant reply to a user question."""

    answer: str = Field(min_length=1)


class MealSuggestion(BaseModel):
    """Suggestion for a lower-carbon version of a meal."""

    suggestion: str = Field(min_length=1)


class IdentifiedItem(BaseModel):
    """A food item recognized in a photo."""

    name: str = Field(min_length=1)
    estimated_quantity: str


class IdentifiedItems(BaseModel):
    """Food items recognized in a photo."""

    identified_items: list[IdentifiedItem]


class FootprintEstimate(BaseModel):
    """Estimated total footprint of a meal."""

    carbon_footprint_kg_co2e: float = Field(ge=0.0)


class _DailySpec(BaseModel):
    type: str
    description: str = Field(min_length=1)
    target_value: float | None = Field(default=None, validate_default=True)

    @property
    def kind(self) -> DailyChallengeKind:
        return DailyChallengeKind(self.type)


def _daily_target(kind: DailyChallengeKind, value: float | None) -> float | None:
    default = DAILY_TARGET_DEFAULTS[kind]
    if value is None or value <= 0:
        return default
    return value


class PlantBasedMealSpec(_DailySpec):
    type: Literal["log_plant_based"]

    @field_validator("target_value")
    @classmethod
    def _default_target(cls, value: float | None) -> float | None:
        return _daily_target(DailyChallengeKind.LOG_PLANT_BASED, value)


class DailyCeilingSpec(_DailySpec):
    type: Literal["co2e_under_today"]

    @field_validator("target_value")
    @classmethod
    def _default_target(cls, value: float | None) -> float | None:
        return _daily_target(DailyChallengeKind.CO2E_UNDER_TODAY, value)


class AvoidRedMeatSpec(_DailySpec):
    type: Literal["avoid_red_meat_meal"]


class ThreeMealsSpec(_DailySpec):
    type: Literal["log_three_meals"]


class LowCarbonMealSpec(_DailySpec):
    type: Literal["log_low_co2e_meal"]

    @field_validator("target_value")
    @classmethod
    def _default_target(cls, value: float | None) -> float | None:
        return _daily_target(DailyChallengeKind.LOG_LOW_CO2E_MEAL, value)


DailyChallengeSpec = Annotated[
    PlantBasedMealSpec
    | DailyCeilingSpec
    | AvoidRedMeatSpec
    | ThreeMealsSpec
    | LowCarbonMealSpec,
    Field(discriminator="type"),
]


class _WeeklySpec(BaseModel):
    type: str
    description: str = Field(min_length=1)
    target_value: float

    @property
    def kind(self) -> WeeklyChallengeKind:
        return WeeklyChallengeKind(self.type)


def _weekly_target(kind: WeeklyChallengeKind, value: float) -> float:
    if value <= 0:
        return WEEKLY_TARGET_DEFAULTS[kind]
    return value


class WeeklyCeilingSpec(_WeeklySpec):
    type: Literal["weekly_co2e_under"]

    @field_validator("target_value")
    @classmethod
    def _positive_target(cls, value: float) -> float:
        return _weekly_target(WeeklyChallengeKind.WEEKLY_CO2E_UNDER, value)


class PlantBasedCountSpec(_WeeklySpec):
    type: Literal["plant_based_meals_count"]

    @field_validator("target_value")
    @classmethod
    def _positive_target(cls, value: float) -> float:
        return _weekly_target(WeeklyChallengeKind.PLANT_BASED_MEALS_COUNT, value)


class LogDaysCountSpec(_WeeklySpec):
    type: Literal["log_days_count"]

    @field_validator("target_value")
    @classmethod
    def _positive_target(cls, value: float) -> float:
        return _weekly_target(WeeklyChallengeKind.LOG_DAYS_COUNT, value)


WeeklyChallengeSpec = Annotated[
    WeeklyCeilingSpec | PlantBasedCountSpec | LogDaysCountSpec,
    Field(discriminator="type"),
]

DAILY_CHALLENGE_ADAPTER: TypeAdapter[DailyChallengeSpec] = TypeAdapter(
    DailyChallengeSpec
)
WEEKLY_CHALLENGE_ADAPTER: TypeAdapter[WeeklyChallengeSpec] = TypeAdapter(
    WeeklyChallengeSpec
)
