"""Per-user session state and the login registry."""

import json
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter

from ecoplate.domain.challenges import DailyChallenge, WeeklyChallenge
from ecoplate.domain.generation import (
    ChatMessage,
    FoodSwap,
    GenerationResult,
    IdentifiedItem,
)
from ecoplate.domain.meals import FoodItem, MealLogEntry, MealResult
from ecoplate.domain.models import UserRecord
from ecoplate.domain.streaks import StreakState
from ecoplate.services.cache import ResponseCache, cache_key
from ecoplate.services.challenges import ChallengeEngine
from ecoplate.services.footprints import FootprintLookup
from ecoplate.services.generation import GenerationService
from ecoplate.services.meal_log import MealLogStore, validate_items
from ecoplate.services.storage import Clock, KeyValueStore, storage_key, utc_now
from ecoplate.services.streaks import (
    streak_from_record,
    streak_to_record,
    update_streak,
)
from ecoplate.services.summary import summarize

STREAK_KIND = "streak"
WEEKLY_TIP_KIND = "weekly_tip"
GENERAL_RECOMMENDATION_KIND = "general_recommendation"
FOOD_SWAPS_KIND = "food_swaps"
SUMMARY_DAYS = 7

_STR_ADAPTER: TypeAdapter[str] = TypeAdapter(str)
_SWAPS_ADAPTER: TypeAdapter[list[FoodSwap]] = TypeAdapter(list[FoodSwap])

_logger = logging.getLogger(__name__)


class LoginValidationError(ValueError):
    """Raised when login details are missing or malformed."""


class ChatValidationError(ValueError):
    """Raised when a chat question is empty."""


@dataclass
class UserSession:
    """Everything the app tracks for one logged-in user."""

    user: UserRecord
    log_store: MealLogStore
    challenge_engine: ChallengeEngine
    generation_service: GenerationService
    footprint_lookup: FootprintLookup
    response_cache: ResponseCache
    store: KeyValueStore
    clock: Clock = utc_now
    timezone_name: str = "UTC"
    cache_window: timedelta = timedelta(hours=24)
    suggestion_threshold_kg: float = 2.0
    streak: StreakState = field(default_factory=StreakState)
    daily_challenge: DailyChallenge | None = None
    weekly_challenge: WeeklyChallenge | None = None
    food_swaps: list[FoodSwap] = field(default_factory=list)
    chat_messages: list[ChatMessage] = field(default_factory=list)
    pending_result: MealResult | None = None

    def __post_init__(self) -> None:
        self.log_store.subscribe(self._on_log_appended)

    @property
    def owner(self) -> str:
        return self.user.email

    @property
    def logs(self) -> tuple[MealLogEntry, ...]:
        return self.log_store.logs

    def today(self) -> date:
        """Return the current date in the session timezone."""
        return self.clock().astimezone(ZoneInfo(self.timezone_name)).date()

    def restore(self) -> None:
        """Load persisted logs, streak and challenges for this owner."""
        self.log_store.load()
        self.streak = self._load_streak()
        daily = self.challenge_engine.load_daily(self.owner)
        weekly = self.challenge_engine.load_weekly(self.owner)
        # A full projection may have dropped older meals of the current week,
        # so the persisted weekly progress is kept as saved.
        truncated = len(self.logs) >= self.log_store.persist_limit
        self.daily_challenge, recomputed = self.challenge_engine.recompute(
            self.owner, daily, None if truncated else weekly, self.logs
        )
        self.weekly_challenge = weekly if truncated else recomputed

    def summary(self, window_days: int = SUMMARY_DAYS) -> str:
        """Return the text summary of recent meals."""
        return summarize(self.logs, window_days, self.today())

    async def identify_food_items(
        self, photo_data_uri: str
    ) -> GenerationResult[list[IdentifiedItem]]:
        """Recognize items in a meal photo."""
        return await self.generation_service.identify_food_items(photo_data_uri)

    async def log_meal(
        self,
        items: Sequence[FoodItem],
        total_footprint_kg: float | None = None,
        photo_data_uri: str | None = None,
    ) -> MealResult:
        """Log a meal, deriving footprints that were not supplied."""
        cleaned = validate_items(items)
        resolved = [await self._with_footprint(item) for item in cleaned]
        if total_footprint_kg is None:
            total_footprint_kg = await self._estimate_total(resolved, photo_data_uri)
        view = self.log_store.append(resolved, total_footprint_kg, photo_data_uri)
        suggestion = None
        if view.entry.total_footprint_kg > self.suggestion_threshold_kg:
            generated = await self.generation_service.meal_suggestion(
                view.entry.items, view.entry.total_footprint_kg
            )
            suggestion = generated.value
        result = MealResult(entry=view.entry, suggestion=suggestion, view=view)
        self.pending_result = result
        return result

    async def ensure_challenges(self) -> tuple[DailyChallenge, WeeklyChallenge]:
        """Return current challenges, generating any that have expired."""
        today = self.today()
        self.daily_challenge = await self.challenge_engine.ensure_daily(
            self.owner, self.daily_challenge, today, self.logs
        )
        self.weekly_challenge = await self.challenge_engine.ensure_weekly(
            self.owner, self.weekly_challenge, today, self.logs
        )
        return self.daily_challenge, self.weekly_challenge

    async def refresh_daily_challenge(self) -> GenerationResult[DailyChallenge]:
        """Replace the daily challenge with a newly generated one."""
        result = await self.challenge_engine.generate_daily(
            self.owner, self.today(), self.logs
        )
        self.daily_challenge = result.value
        return result

    async def refresh_weekly_challenge(self) -> GenerationResult[WeeklyChallenge]:
        """Replace the weekly challenge with a newly generated one."""
        result = await self.challenge_engine.generate_weekly(
            self.owner, self.today(), self.logs
        )
        self.weekly_challenge = result.value
        return result

    async def weekly_tip(self, force_refresh: bool = False) -> GenerationResult[str]:
        summary = self.summary()
        return await self.response_cache.get(
            cache_key(self.owner, WEEKLY_TIP_KIND),
            lambda: self.generation_service.weekly_tip(summary),
            self.cache_window,
            adapter=_STR_ADAPTER,
            force_refresh=force_refresh,
        )

    async def general_recommendation(
        self, force_refresh: bool = False
    ) -> GenerationResult[str]:
        summary = self.summary()
        return await self.response_cache.get(
            cache_key(self.owner, GENERAL_RECOMMENDATION_KIND),
            lambda: self.generation_service.general_recommendation(summary),
            self.cache_window,
            adapter=_STR_ADAPTER,
            force_refresh=force_refresh,
        )

    async def load_food_swaps(
        self, force_refresh: bool = False
    ) -> GenerationResult[list[FoodSwap]]:
        """Return food swaps, keeping try-this flags for unchanged swaps."""
        summary = self.summary()
        result = await self.response_cache.get(
            cache_key(self.owner, FOOD_SWAPS_KIND),
            lambda: self.generation_service.food_swaps(summary),
            self.cache_window,
            adapter=_SWAPS_ADAPTER,
            force_refresh=force_refresh,
        )
        if not result.cached or not self.food_swaps:
            self.food_swaps = list(result.value)
        return replace(result, value=list(self.food_swaps))

    def set_food_swap_try_this(self, index: int, value: bool) -> FoodSwap:
        """Toggle the try-this flag of a displayed swap."""
        if not 0 <= index < len(self.food_swaps):
            raise IndexError(f"No food swap at position {index}.")
        updated = self.food_swaps[index].model_copy(update={"try_this": value})
        self.food_swaps[index] = updated
        return updated

    async def ask(self, question: str) -> ChatMessage:
        """Send a question to the assistant and record both turns."""
        text = question.strip()
        if not text:
            raise ChatValidationError("Please type a question first.")
        history = list(self.chat_messages)
        self.chat_messages.append(ChatMessage(id=_new_id(), sender="user", text=text))
        result = await self.generation_service.chatbot_answer(
            text, self.summary(), history
        )
        reply = ChatMessage(id=_new_id(), sender="model", text=result.value)
        self.chat_messages.append(reply)
        return reply

    def clear_chat(self) -> None:
        self.chat_messages.clear()

    async def _with_footprint(self, item: FoodItem) -> FoodItem:
        if item.footprint_kg is not None:
            return item
        footprint = await self.footprint_lookup.item_footprint(item)
        return replace(item, footprint_kg=footprint)

    async def _estimate_total(
        self, items: Sequence[FoodItem], photo_data_uri: str | None
    ) -> float:
        known = [item.footprint_kg for item in items if item.footprint_kg is not None]
        if len(known) == len(items):
            return round(math.fsum(known), 4)
        estimate = await self.generation_service.estimate_footprint(
            items, photo_data_uri
        )
        if not estimate.used_fallback and estimate.value is not None:
            return estimate.value
        return round(math.fsum(known), 4)

    def _on_log_appended(
        self, entry: MealLogEntry, logs: tuple[MealLogEntry, ...]
    ) -> None:
        self.streak = update_streak(
            self.streak.count, self.streak.last_log_date, entry.date
        )
        self._save_streak()
        self.daily_challenge, self.weekly_challenge = (
            self.challenge_engine.recompute(
                self.owner, self.daily_challenge, self.weekly_challenge, logs
            )
        )

    def _load_streak(self) -> StreakState:
        key = storage_key(self.owner, STREAK_KIND)
        try:
            raw = self.store.get(key)
            if raw is None:
                return StreakState()
            return streak_from_record(json.loads(raw))
        except Exception as exc:
            _logger.warning("Discarding unreadable streak for %s: %s", self.owner, exc)
            return StreakState()

    def _save_streak(self) -> None:
        key = storage_key(self.owner, STREAK_KIND)
        try:
            self.store.set(key, json.dumps(streak_to_record(self.streak)))
        except Exception as exc:
            _logger.warning("Failed to persist streak for %s: %s", self.owner, exc)


def _new_id() -> str:
    return str(uuid4())


@dataclass
class SessionService:
    """Opens, looks up and closes user sessions keyed by email."""

    store: KeyValueStore
    generation_service: GenerationService
    footprint_lookup: FootprintLookup
    clock: Clock = utc_now
    timezone_name: str = "UTC"
    persist_limit: int = 20
    memory_limit: int = 100
    cache_window: timedelta = timedelta(hours=24)
    suggestion_threshold_kg: float = 2.0
    _sessions: dict[str, UserSession] = field(default_factory=dict)

    def login(self, name: str, email: str) -> UserSession:
        """Open a session for the user, or return the existing one."""
        user = _validate_login(name, email)
        existing = self._sessions.get(user.email)
        if existing is not None:
            return existing
        session = UserSession(
            user=user,
            log_store=MealLogStore(
                owner=user.email,
                store=self.store,
                timezone_name=self.timezone_name,
                persist_limit=self.persist_limit,
                memory_limit=self.memory_limit,
                clock=self.clock,
            ),
            challenge_engine=ChallengeEngine(
                generation_service=self.generation_service, store=self.store
            ),
            generation_service=self.generation_service,
            footprint_lookup=self.footprint_lookup,
            response_cache=ResponseCache(store=self.store, clock=self.clock),
            store=self.store,
            clock=self.clock,
            timezone_name=self.timezone_name,
            cache_window=self.cache_window,
            suggestion_threshold_kg=self.suggestion_threshold_kg,
        )
        session.restore()
        self._sessions[user.email] = session
        _logger.info("Opened session for %s", user.email)
        return session

    def get(self, email: str) -> UserSession | None:
        """Return the open session for an email, if any."""
        return self._sessions.get(email.strip().lower())

    def logout(self, email: str) -> bool:
        """Close a session. Persisted data stays in the store."""
        removed = self._sessions.pop(email.strip().lower(), None)
        if removed is not None:
            _logger.info("Closed session for %s", removed.owner)
        return removed is not None


def _validate_login(name: str, email: str) -> UserRecord:
    cleaned_name = name.strip()
    cleaned_email = email.strip().lower()
    if not cleaned_name:
        raise LoginValidationError("Please enter your name.")
    local, _, domain = cleaned_email.partition("@")
    if not local or "." not in domain or " " in cleaned_email:
        raise LoginValidationError("Please enter a valid email address.")
    return UserRecord(name=cleaned_name, email=cleaned_email)
