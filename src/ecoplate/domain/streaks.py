"""Domain models for logging streaks."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class StreakState:
    """Consecutive-day logging streak."""

    count: int = 0
    last_log_date: date | None = None
