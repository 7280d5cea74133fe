"""Daily and weekly challenge lifecycle and evaluation."""

import json
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import date, timedelta
from uuid import uuid4

from ecoplate.domain.challenges import (
    DAILY_TARGET_DEFAULTS,
    PLANT_BASED_THRESHOLD_KG,
    RED_MEAT_KEYWORDS,
    DailyChallenge,
    DailyChallengeKind,
    WeeklyChallenge,
    WeeklyChallengeKind,
)
from ecoplate.domain.generation import GenerationResult
from ecoplate.domain.meals import MealLogEntry
from ecoplate.services.generation import GenerationService
from ecoplate.services.storage import KeyValueStore, storage_key
from ecoplate.services.summary import summarize

DAILY_CHALLENGE_KIND = "daily_challenge"
WEEKLY_CHALLENGE_KIND = "weekly_challenge"
THREE_MEALS = 3
DAILY_SUMMARY_DAYS = 7
WEEKLY_SUMMARY_DAYS = 14

_logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid4())


def week_start(day: date) -> date:
    """Return the Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def needs_new_daily(challenge: DailyChallenge | None, today: date) -> bool:
    """Return True when no daily challenge is valid for today."""
    return challenge is None or challenge.date != today


def needs_new_weekly(challenge: WeeklyChallenge | None, today: date) -> bool:
    """Return True when no weekly challenge covers the current week."""
    return challenge is None or challenge.start_date != week_start(today)


def contains_red_meat(entry: MealLogEntry) -> bool:
    """Return True when any item name mentions a red-meat keyword."""
    for item in entry.items:
        name = item.name.lower()
        if any(keyword in name for keyword in RED_MEAT_KEYWORDS):
            return True
    return False


def evaluate_daily(
    challenge: DailyChallenge, logs: Sequence[MealLogEntry]
) -> DailyChallenge:
    """Evaluate a daily challenge against the logs of its own day."""
    if challenge.is_completed:
        return challenge
    todays = [entry for entry in logs if entry.date == challenge.date]
    if _daily_condition_met(challenge, todays):
        return replace(challenge, is_completed=True)
    return challenge


def _daily_condition_met(
    challenge: DailyChallenge, todays: list[MealLogEntry]
) -> bool:
    kind = challenge.kind
    if kind == DailyChallengeKind.AVOID_RED_MEAT_MEAL:
        return any(not contains_red_meat(entry) for entry in todays)
    if kind == DailyChallengeKind.LOG_THREE_MEALS:
        return len({entry.meal_slot for entry in todays}) >= THREE_MEALS
    target = challenge.target_value
    if target is None:
        target = DAILY_TARGET_DEFAULTS[kind]
    if target is None:
        return False
    if kind == DailyChallengeKind.CO2E_UNDER_TODAY:
        total = math.fsum(entry.total_footprint_kg for entry in todays)
        return bool(todays) and total <= target
    return any(entry.total_footprint_kg < target for entry in todays)


def evaluate_weekly(
    challenge: WeeklyChallenge, logs: Sequence[MealLogEntry]
) -> WeeklyChallenge:
    """Recompute weekly progress from every log inside the challenge week."""
    in_week = [
        entry
        for entry in logs
        if challenge.start_date <= entry.date <= challenge.end_date
    ]
    current, met = _weekly_progress(challenge, in_week)
    return replace(
        challenge,
        current_value=current,
        is_completed=challenge.is_completed or met,
    )


def _weekly_progress(
    challenge: WeeklyChallenge, in_week: list[MealLogEntry]
) -> tuple[float, bool]:
    if challenge.kind == WeeklyChallengeKind.WEEKLY_CO2E_UNDER:
        total = math.fsum(entry.total_footprint_kg for entry in in_week)
        return total, bool(in_week) and total <= challenge.target_value
    if challenge.kind == WeeklyChallengeKind.PLANT_BASED_MEALS_COUNT:
        count = sum(
            1
            for entry in in_week
            if entry.total_footprint_kg < PLANT_BASED_THRESHOLD_KG
        )
        return float(count), count >= challenge.target_value
    days = len({entry.date for entry in in_week})
    return float(days), days >= challenge.target_value


@dataclass
class ChallengeEngine:
    """Creates, stores and evaluates challenges for each owner."""

    generation_service: GenerationService
    store: KeyValueStore
    id_factory: Callable[[], str] = _new_id

    def load_daily(self, owner: str) -> DailyChallenge | None:
        """Return the persisted daily challenge, if readable."""
        record = self._read(storage_key(owner, DAILY_CHALLENGE_KIND))
        if record is None:
            return None
        try:
            return daily_from_record(record)
        except (ValueError, TypeError, KeyError) as exc:
            _logger.warning(
                "Discarding unreadable daily challenge for %s: %s", owner, exc
            )
            return None

    def load_weekly(self, owner: str) -> WeeklyChallenge | None:
        """Return the persisted weekly challenge, if readable."""
        record = self._read(storage_key(owner, WEEKLY_CHALLENGE_KIND))
        if record is None:
            return None
        try:
            return weekly_from_record(record)
        except (ValueError, TypeError, KeyError) as exc:
            _logger.warning(
                "Discarding unreadable weekly challenge for %s: %s", owner, exc
            )
            return None

    async def ensure_daily(
        self,
        owner: str,
        current: DailyChallenge | None,
        today: date,
        logs: Sequence[MealLogEntry],
        *,
        force: bool = False,
    ) -> DailyChallenge:
        """Return the current daily challenge, generating one when stale."""
        if not force and current is not None and not needs_new_daily(current, today):
            return current
        result = await self.generate_daily(owner, today, logs)
        return result.value

    async def ensure_weekly(
        self,
        owner: str,
        current: WeeklyChallenge | None,
        today: date,
        logs: Sequence[MealLogEntry],
        *,
        force: bool = False,
    ) -> WeeklyChallenge:
        """Return the current weekly challenge, generating one when stale."""
        if not force and current is not None and not needs_new_weekly(current, today):
            return current
        result = await self.generate_weekly(owner, today, logs)
        return result.value

    async def generate_daily(
        self, owner: str, today: date, logs: Sequence[MealLogEntry]
    ) -> GenerationResult[DailyChallenge]:
        """Create, evaluate and persist a new daily challenge."""
        generated = await self.generation_service.daily_challenge(
            summarize(logs, DAILY_SUMMARY_DAYS, today)
        )
        payload = generated.value
        challenge = DailyChallenge(
            id=self.id_factory(),
            description=payload.description,
            kind=payload.kind,
            target_value=payload.target_value,
            is_completed=False,
            date=today,
        )
        challenge = evaluate_daily(challenge, logs)
        self.save_daily(owner, challenge)
        _logger.info(
            "New daily challenge for %s: %s (fallback=%s)",
            owner,
            challenge.kind,
            generated.used_fallback,
        )
        return GenerationResult(
            value=challenge,
            used_fallback=generated.used_fallback,
            error=generated.error,
        )

    async def generate_weekly(
        self, owner: str, today: date, logs: Sequence[MealLogEntry]
    ) -> GenerationResult[WeeklyChallenge]:
        """Create, evaluate and persist a new weekly challenge."""
        generated = await self.generation_service.weekly_challenge(
            summarize(logs, WEEKLY_SUMMARY_DAYS, today)
        )
        payload = generated.value
        start = week_start(today)
        challenge = WeeklyChallenge(
            id=self.id_factory(),
            description=payload.description,
            kind=payload.kind,
            target_value=payload.target_value,
            current_value=0.0,
            start_date=start,
            end_date=start + timedelta(days=6),
            is_completed=False,
        )
        challenge = evaluate_weekly(challenge, logs)
        self.save_weekly(owner, challenge)
        _logger.info(
            "New weekly challenge for %s: %s (fallback=%s)",
            owner,
            challenge.kind,
            generated.used_fallback,
        )
        return GenerationResult(
            value=challenge,
            used_fallback=generated.used_fallback,
            error=generated.error,
        )

    def recompute(
        self,
        owner: str,
        daily: DailyChallenge | None,
        weekly: WeeklyChallenge | None,
        logs: Sequence[MealLogEntry],
    ) -> tuple[DailyChallenge | None, WeeklyChallenge | None]:
        """Re-evaluate both challenges and persist any that changed."""
        new_daily = evaluate_daily(daily, logs) if daily else None
        new_weekly = evaluate_weekly(weekly, logs) if weekly else None
        if new_daily is not None and new_daily != daily:
            self.save_daily(owner, new_daily)
        if new_weekly is not None and new_weekly != weekly:
            self.save_weekly(owner, new_weekly)
        return new_daily, new_weekly

    def save_daily(self, owner: str, challenge: DailyChallenge) -> None:
        """Persist a daily challenge, logging failures."""
        self._write(
            storage_key(owner, DAILY_CHALLENGE_KIND), daily_to_record(challenge)
        )

    def save_weekly(self, owner: str, challenge: WeeklyChallenge) -> None:
        """Persist a weekly challenge, logging failures."""
        self._write(
            storage_key(owner, WEEKLY_CHALLENGE_KIND), weekly_to_record(challenge)
        )

    def _read(self, key: str) -> dict[str, object] | None:
        try:
            raw = self.store.get(key)
            if raw is None:
                return None
            record = json.loads(raw)
        except Exception as exc:
            _logger.warning("Failed to read %s: %s", key, exc)
            return None
        return record if isinstance(record, dict) else None

    def _write(self, key: str, record: dict[str, object]) -> None:
        try:
            self.store.set(key, json.dumps(record))
        except Exception as exc:
            _logger.warning("Failed to persist %s: %s", key, exc)


def daily_to_record(challenge: DailyChallenge) -> dict[str, object]:
    """Serialize a daily challenge."""
    return {
        "id": challenge.id,
        "description": challenge.description,
        "type": challenge.kind.value,
        "target_value": challenge.target_value,
        "is_completed": challenge.is_completed,
        "date": challenge.date.isoformat(),
    }


def daily_from_record(record: dict[str, object]) -> DailyChallenge:
    """Parse a persisted daily challenge."""
    target = record.get("target_value")
    target_value = float(str(target)) if target is not None else None
    return DailyChallenge(
        id=str(record["id"]),
        description=str(record["description"]),
        kind=DailyChallengeKind(str(record["type"])),
        target_value=target_value,
        is_completed=bool(record.get("is_completed", False)),
        date=date.fromisoformat(str(record["date"])),
    )


def weekly_to_record(challenge: WeeklyChallenge) -> dict[str, object]:
    """Serialize a weekly challenge."""
    return {
        "id": challenge.id,
        "description": challenge.description,
        "type": challenge.kind.value,
        "target_value": challenge.target_value,
        "current_value": challenge.current_value,
        "start_date": challenge.start_date.isoformat(),
        "end_date": challenge.end_date.isoformat(),
        "is_completed": challenge.is_completed,
    }


def weekly_from_record(record: dict[str, object]) -> WeeklyChallenge:
    """Parse a persisted weekly challenge."""
    return WeeklyChallenge(
        id=str(record["id"]),
        description=str(record["description"]),
        kind=WeeklyChallengeKind(str(record["type"])),
        target_value=float(str(record["target_value"])),
        current_value=float(str(record.get("current_value", 0.0))),
        start_date=date.fromisoformat(str(record["start_date"])),
        end_date=date.fromisoformat(str(record["end_date"])),
        is_completed=bool(record.get("is_completed", False)),
    )
