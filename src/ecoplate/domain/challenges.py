"""Domain models for daily and weekly challenges."""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

PLANT_BASED_THRESHOLD_KG = 0.7
DAILY_CO2E_CEILING_KG = 2.5
LOW_CO2E_MEAL_THRESHOLD_KG = 0.5
RED_MEAT_KEYWORDS = frozenset({"beef", "lamb", "steak", "pork", "bacon", "sausage"})


class DailyChallengeKind(StrEnum):
    """Rule templates for daily challenges."""

    LOG_PLANT_BASED = "log_plant_based"
    CO2E_UNDER_TODAY = "co2e_under_today"
    AVOID_RED_MEAT_MEAL = "avoid_red_meat_meal"
    LOG_THREE_MEALS = "log_three_meals"
    LOG_LOW_CO2E_MEAL = "log_low_co2e_meal"


class WeeklyChallengeKind(StrEnum):
    """Rule templates for weekly challenges."""

    WEEKLY_CO2E_UNDER = "weekly_co2e_under"
    PLANT_BASED_MEALS_COUNT = "plant_based_meals_count"
    LOG_DAYS_COUNT = "log_days_count"


DAILY_TARGET_DEFAULTS: dict[DailyChallengeKind, float | None] = {
    DailyChallengeKind.LOG_PLANT_BASED: PLANT_BASED_THRESHOLD_KG,
    DailyChallengeKind.CO2E_UNDER_TODAY: DAILY_CO2E_CEILING_KG,
    DailyChallengeKind.AVOID_RED_MEAT_MEAL: None,
    DailyChallengeKind.LOG_THREE_MEALS: None,
    DailyChallengeKind.LOG_LOW_CO2E_MEAL: LOW_CO2E_MEAL_THRESHOLD_KG,
}

WEEKLY_TARGET_DEFAULTS: dict[WeeklyChallengeKind, float] = {
    WeeklyChallengeKind.WEEKLY_CO2E_UNDER: 10.0,
    WeeklyChallengeKind.PLANT_BASED_MEALS_COUNT: 3,
    WeeklyChallengeKind.LOG_DAYS_COUNT: 5,
}


@dataclass(frozen=True)
class DailyChallenge:
    """A challenge valid for a single calendar day."""

    id: str
    description: str
    kind: DailyChallengeKind
    target_value: float | None
    is_completed: bool
    date: date


@dataclass(frozen=True)
class WeeklyChallenge:
    """A challenge valid from Monday through Sunday of one week."""

    id: str
    description: str
    kind: WeeklyChallengeKind
    target_value: float
    current_value: float
    start_date: date
    end_date: date
    is_completed: bool

    @property
    def progress_percent(self) -> float:
        """Progress toward the target, capped at 100."""
        if self.target_value <= 0:
            return 0.0
        return min(self.current_value / self.target_value * 100, 100.0)
