"""Text summaries of meal logs for generation prompts."""

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, timedelta

from ecoplate.domain.meals import FoodItem, MealLogEntry

NO_ACTIVITY_SUMMARY = "No meals logged in this period."


def summarize(logs: Iterable[MealLogEntry], window_days: int, today: date) -> str:
    """Render one line per logged day within the window ending today."""
    start = today - timedelta(days=max(window_days, 1) - 1)
    by_day: dict[date, list[MealLogEntry]] = defaultdict(list)
    for entry in logs:
        if start <= entry.date <= today:
            by_day[entry.date].append(entry)
    if not by_day:
        return NO_ACTIVITY_SUMMARY

    lines = []
    for day in sorted(by_day):
        meals = sorted(by_day[day], key=lambda entry: entry.timestamp)
        index = (day - start).days + 1
        label = f"{day.strftime('%A')}, {day.isoformat()}"
        rendered = "; ".join(_format_meal(meal) for meal in meals)
        lines.append(f"Day {index} ({label}): {rendered}")
    return "\n".join(lines)


def _format_meal(entry: MealLogEntry) -> str:
    items = ", ".join(_format_item(item) for item in entry.items)
    return f"{items} - {entry.total_footprint_kg:.2f} kg CO2e ({entry.meal_slot})"


def _format_item(item: FoodItem) -> str:
    if item.footprint_kg is None:
        return f"{item.name} ({item.quantity})"
    return f"{item.name} ({item.quantity}, {item.footprint_kg:.2f} kg CO2e)"
