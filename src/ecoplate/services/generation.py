"""Text and structure generation backed by an LLM client."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from ecoplate.domain.generation import (
    DAILY_CHALLENGE_ADAPTER,
    WEEKLY_CHALLENGE_ADAPTER,
    ChatAnswer,
    ChatMessage,
    DailyChallengeSpec,
    FoodSwap,
    FootprintEstimate,
    GeneratedFoodSwaps,
    GeneratedTip,
    GenerationResult,
    IdentifiedItem,
    IdentifiedItems,
    LogDaysCountSpec,
    LowCarbonMealSpec,
    MealSuggestion,
    WeeklyChallengeSpec,
)
from ecoplate.domain.meals import FoodItem

T = TypeVar("T")

_logger = logging.getLogger(__name__)

DAILY_CHALLENGE_FALLBACK = LowCarbonMealSpec(
    type="log_low_co2e_meal",
    description="Log any meal today to track its footprint!",
    target_value=5.0,
)
WEEKLY_CHALLENGE_FALLBACK = LogDaysCountSpec(
    type="log_days_count",
    description="Try to log your meals on at least 3 different days this week!",
    target_value=3,
)
WEEKLY_TIP_FALLBACK = (
    "Swapping one red-meat meal a week for beans or lentils is one of the "
    "easiest ways to shrink your food footprint."
)
GENERAL_RECOMMENDATION_FALLBACK = (
    "Planning meals ahead helps cut food waste, which is a significant "
    "source of food-related emissions."
)
CHAT_FALLBACK = (
    "I encountered an issue trying to answer that. "
    "Please try rephrasing or ask something else."
)


def _food_swaps_fallback() -> list[FoodSwap]:
    return [
        FoodSwap(
            original_item="High-carbon meals",
            suggested_item="Plant-rich alternatives",
            co2e_saving_estimate="Significant savings!",
            details="Consider incorporating more plant-based meals into your week.",
        )
    ]


def _nullable(schema: dict[str, object]) -> dict[str, object]:
    return {"anyOf": [schema, {"type": "null"}]}


def _object(properties: dict[str, object]) -> dict[str, object]:
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


TIP_SCHEMA = _object({"tip": {"type": "string"}})
FOOD_SWAPS_SCHEMA = _object(
    {
        "swaps": {
            "type": "array",
            "items": _object(
                {
                    "original_item": {"type": "string"},
                    "suggested_item": {"type": "string"},
                    "co2e_saving_estimate": {"type": "string"},
                    "details": _nullable({"type": "string"}),
                }
            ),
        }
    }
)
CHAT_SCHEMA = _object({"answer": {"type": "string"}})
DAILY_CHALLENGE_SCHEMA = _object(
    {
        "description": {"type": "string"},
        "type": {
            "type": "string",
            "enum": [
                "log_plant_based",
                "co2e_under_today",
                "avoid_red_meat_meal",
                "log_three_meals",
                "log_low_co2e_meal",
            ],
        },
        "target_value": _nullable({"type": "number"}),
    }
)
WEEKLY_CHALLENGE_SCHEMA = _object(
    {
        "description": {"type": "string"},
        "type": {
            "type": "string",
            "enum": ["weekly_co2e_under", "plant_based_meals_count", "log_days_count"],
        },
        "target_value": {"type": "number"},
    }
)
MEAL_SUGGESTION_SCHEMA = _object({"suggestion": {"type": "string"}})
IDENTIFIED_ITEMS_SCHEMA = _object(
    {
        "identified_items": {
            "type": "array",
            "items": _object(
                {"name": {"type": "string"}, "estimated_quantity": {"type": "string"}}
            ),
        }
    }
)
FOOTPRINT_SCHEMA = _object({"carbon_footprint_kg_co2e": {"type": "number"}})

_WEEKLY_TIP_PROMPT = """Analyze this user's weekly meal data and suggest 1-2 friendly, \
specific tips to help reduce their food-related carbon footprint. Focus on realistic, \
low-effort changes based on repeated high-impact foods. Mention specific foods with \
CO2e values where useful, keep the tone encouraging and non-judgmental, and answer \
in 1-2 sentences.

Meal data (last 7 days):
{summary}
"""

_GENERAL_RECOMMENDATION_PROMPT = """Analyze this user's weekly meal data and give a \
single short (1-2 sentences), friendly and actionable sustainability tip. It should \
be a broad insight drawn from their habits or a general principle that applies to \
them, not a direct swap for one meal.

Meal data (last 7 days):
{summary}
"""

_FOOD_SWAPS_PROMPT = """User's meal logs for the past 7 days:
{summary}

Suggest 3-5 food swaps that reduce carbon footprint. For each, name a high-impact \
original_item the user eats, a lower-impact suggested_item, a co2e_saving_estimate \
that is easy to understand (for example "Save ~2.5 kg CO2e per serving"), and \
optional short details. If logs are sparse, suggest general swaps such as red meat \
for poultry or dairy milk for plant-based milk.
"""

_CHAT_PROMPT = """You are a helpful assistant for EcoPlate, specializing in \
low-carbon eating. The user's meal logs for the past 7 days are:
{summary}

Use this data as context. Keep answers concise, friendly, and focused on \
sustainable food choices. If the question is unrelated to food, diet, or \
sustainability, politely say you can only help with those topics.
{history}
Current user question: {question}
"""

_DAILY_CHALLENGE_PROMPT = """You generate one simple, friendly daily challenge for \
EcoPlate users. Pick one type:
- log_plant_based: log a mostly plant-based meal (under 0.7 kg CO2e).
- co2e_under_today: keep today's total under a target such as 2.0, 2.5 or 3.0 kg.
- avoid_red_meat_meal: log a meal without beef, lamb or pork.
- log_three_meals: log breakfast, lunch and dinner.
- log_low_co2e_meal: log a single meal under a target such as 0.5 kg.
Give a concise description and set target_value for co2e_under_today, \
log_low_co2e_meal and log_plant_based; otherwise use null.

Recent activity:
{summary}
"""

_WEEKLY_CHALLENGE_PROMPT = """You generate one engaging weekly challenge for EcoPlate \
users based on their recent meals. Pick one type:
- weekly_co2e_under: keep the week's total under a target in kg (ambitious but \
achievable).
- plant_based_meals_count: eat a number of meals under 0.7 kg CO2e each.
- log_days_count: log meals on a number of days this week.
If activity is low, prefer log_days_count. Always give a positive target_value.

Meal logs (last 14 days):
{summary}
"""

_MEAL_SUGGESTION_PROMPT = """This meal has an estimated footprint of \
{footprint:.2f} kg CO2e:
{items}

Suggest, in one or two friendly sentences, a similar meal with a lower footprint.
"""

_IDENTIFY_PROMPT = (
    "Identify the food items in this meal photo. For each, give a short name "
    "and an estimated quantity with units, for example 150g or 1 cup."
)

_FOOTPRINT_PROMPT = """Estimate the total carbon footprint in kg CO2e of this meal \
using average footprint data for common foods:
{items}
Return only the total.
"""


class GenerationClient(Protocol):
    """Interface for structured LLM generation."""

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        name: str,
        prompt: str,
        schema: dict[str, object],
        image_data_url: str | None = None,
    ) -> dict[str, object]:
        """Return structured output matching ``schema``."""


@dataclass
class GenerationService:
    """Prepares prompts, validates outputs and substitutes fallbacks."""

    client: GenerationClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def weekly_tip(self, summary: str) -> GenerationResult[str]:
        """Generate a tip from the last week of meals."""
        return await self._generate(
            "weekly_tip",
            _WEEKLY_TIP_PROMPT.format(summary=summary),
            TIP_SCHEMA,
            lambda raw: GeneratedTip.model_validate(raw).tip,
            WEEKLY_TIP_FALLBACK,
        )

    async def general_recommendation(self, summary: str) -> GenerationResult[str]:
        """Generate a broad sustainability recommendation."""
        return await self._generate(
            "general_recommendation",
            _GENERAL_RECOMMENDATION_PROMPT.format(summary=summary),
            TIP_SCHEMA,
            lambda raw: GeneratedTip.model_validate(raw).tip,
            GENERAL_RECOMMENDATION_FALLBACK,
        )

    async def food_swaps(self, summary: str) -> GenerationResult[list[FoodSwap]]:
        """Generate lower-carbon swaps for commonly eaten items."""
        return await self._generate(
            "food_swaps",
            _FOOD_SWAPS_PROMPT.format(summary=summary),
            FOOD_SWAPS_SCHEMA,
            lambda raw: GeneratedFoodSwaps.model_validate(raw).swaps,
            _food_swaps_fallback(),
        )

    async def chatbot_answer(
        self, question: str, summary: str, history: Sequence[ChatMessage] = ()
    ) -> GenerationResult[str]:
        """Answer a user question with meal history as context."""
        prompt = _CHAT_PROMPT.format(
            summary=summary,
            history=_format_history(history),
            question=question,
        )
        return await self._generate(
            "chatbot_answer",
            prompt,
            CHAT_SCHEMA,
            lambda raw: ChatAnswer.model_validate(raw).answer,
            CHAT_FALLBACK,
        )

    async def daily_challenge(
        self, summary: str
    ) -> GenerationResult[DailyChallengeSpec]:
        """Generate a daily challenge payload."""
        return await self._generate(
            "daily_challenge",
            _DAILY_CHALLENGE_PROMPT.format(summary=summary),
            DAILY_CHALLENGE_SCHEMA,
            DAILY_CHALLENGE_ADAPTER.validate_python,
            DAILY_CHALLENGE_FALLBACK,
        )

    async def weekly_challenge(
        self, summary: str
    ) -> GenerationResult[WeeklyChallengeSpec]:
        """Generate a weekly challenge payload."""
        return await self._generate(
            "weekly_challenge",
            _WEEKLY_CHALLENGE_PROMPT.format(summary=summary),
            WEEKLY_CHALLENGE_SCHEMA,
            WEEKLY_CHALLENGE_ADAPTER.validate_python,
            WEEKLY_CHALLENGE_FALLBACK,
        )

    async def meal_suggestion(
        self, items: Sequence[FoodItem], footprint_kg: float
    ) -> GenerationResult[str | None]:
        """Suggest a lower-carbon alternative for a meal."""
        return await self._generate(
            "meal_suggestion",
            _MEAL_SUGGESTION_PROMPT.format(
                footprint=footprint_kg, items=_format_items(items)
            ),
            MEAL_SUGGESTION_SCHEMA,
            lambda raw: MealSuggestion.model_validate(raw).suggestion,
            None,
        )

    async def identify_food_items(
        self, photo_data_uri: str
    ) -> GenerationResult[list[IdentifiedItem]]:
        """Recognize food items and rough quantities in a meal photo."""
        return await self._generate(
            "identify_food_items",
            _IDENTIFY_PROMPT,
            IDENTIFIED_ITEMS_SCHEMA,
            lambda raw: IdentifiedItems.model_validate(raw).identified_items,
            [],
            image_data_url=photo_data_uri,
        )

    async def estimate_footprint(
        self, items: Sequence[FoodItem], photo_data_uri: str | None = None
    ) -> GenerationResult[float | None]:
        """Estimate a meal's total footprint from its items."""
        return await self._generate(
            "estimate_footprint",
            _FOOTPRINT_PROMPT.format(items=_format_items(items)),
            FOOTPRINT_SCHEMA,
            lambda raw: FootprintEstimate.model_validate(raw).carbon_footprint_kg_co2e,
            None,
            image_data_url=photo_data_uri,
        )

    async def _generate(  # noqa: PLR0913
        self,
        name: str,
        prompt: str,
        schema: dict[str, object],
        parse: Callable[[dict[str, object]], T],
        fallback: T,
        image_data_url: str | None = None,
    ) -> GenerationResult[T]:
        try:
            raw = await self.client.generate(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                name=name,
                prompt=prompt,
                schema=schema,
                image_data_url=image_data_url,
            )
            value = parse(raw)
        except Exception as exc:
            _logger.warning("Generation %s failed, using fallback: %s", name, exc)
            return GenerationResult(value=fallback, used_fallback=True, error=str(exc))
        return GenerationResult(value=value)


def _format_items(items: Sequence[FoodItem]) -> str:
    return "\n".join(f"- {item.name} (quantity: {item.quantity})" for item in items)


def _format_history(history: Sequence[ChatMessage]) -> str:
    if not history:
        return ""
    lines = [
        f"{'User' if message.sender == 'user' else 'AI'}: {message.text}"
        for message in history
    ]
    return "\nPrevious conversation:\n" + "\n".join(lines) + "\n"
