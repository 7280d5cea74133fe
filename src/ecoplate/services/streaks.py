"""Consecutive-day logging streaks."""

from datetime import date

from ecoplate.domain.streaks import StreakState


def update_streak(
    current_streak: int, last_log_date: date | None, new_log_date: date
) -> StreakState:
    """Return the streak after a meal is logged on ``new_log_date``.

    A log dated before ``last_log_date`` leaves the state untouched.
    """
    if last_log_date is None:
        return StreakState(count=1, last_log_date=new_log_date)
    gap = (new_log_date - last_log_date).days
    if gap < 0:
        return StreakState(count=current_streak, last_log_date=last_log_date)
    if gap == 0:
        count = current_streak if current_streak > 0 else 1
    elif gap == 1:
        count = current_streak + 1
    else:
        count = 1
    return StreakState(count=count, last_log_date=new_log_date)


def streak_to_record(state: StreakState) -> dict[str, object]:
    """Serialize a streak for persistence."""
    return {
        "count": state.count,
        "last_log_date": state.last_log_date.isoformat()
        if state.last_log_date
        else None,
    }


def streak_from_record(record: dict[str, object]) -> StreakState:
    """Parse a persisted streak record."""
    raw_date = record.get("last_log_date")
    return StreakState(
        count=int(str(record.get("count", 0))),
        last_log_date=date.fromisoformat(str(raw_date)) if raw_date else None,
    )
