"""Tests for the generation service."""

import asyncio

from ecoplate.domain.generation import ChatMessage
from ecoplate.domain.meals import FoodItem
from ecoplate.services.generation import (
    CHAT_FALLBACK,
    WEEKLY_TIP_FALLBACK,
)
from tests.conftest import FakeGenerationClient, make_generation_service


def test_weekly_tip_includes_summary_in_prompt() -> None:
    client = FakeGenerationClient()
    service = make_generation_service(client)

    result = asyncio.run(service.weekly_tip("Day 1 (Monday, 2024-01-01): Rice"))

    assert result.value == "Try a lentil curry this week."
    assert not result.used_fallback
    assert "Day 1 (Monday, 2024-01-01): Rice" in str(client.calls[0]["prompt"])


def test_failure_returns_fallback_with_error() -> None:
    client = FakeGenerationClient(failing={"weekly_tip"})
    service = make_generation_service(client)

    result = asyncio.run(service.weekly_tip("summary"))

    assert result.value == WEEKLY_TIP_FALLBACK
    assert result.used_fallback
    assert result.error == "weekly_tip unavailable"


def test_invalid_payload_returns_fallback() -> None:
    client = FakeGenerationClient()
    client.payloads["chatbot_answer"] = {"answer": ""}
    service = make_generation_service(client)

    result = asyncio.run(service.chatbot_answer("Is rice ok?", "summary"))

    assert result.value == CHAT_FALLBACK
    assert result.used_fallback


def test_chat_prompt_carries_history() -> None:
    client = FakeGenerationClient()
    service = make_generation_service(client)
    history = [
        ChatMessage(id="1", sender="user", text="What about beef?"),
        ChatMessage(id="2", sender="model", text="It is carbon intensive."),
    ]

    asyncio.run(service.chatbot_answer("And lamb?", "summary", history))

    prompt = str(client.calls[0]["prompt"])
    assert "User: What about beef?" in prompt
    assert "AI: It is carbon intensive." in prompt
    assert "And lamb?" in prompt


def test_food_swaps_are_validated() -> None:
    client = FakeGenerationClient()
    service = make_generation_service(client)

    result = asyncio.run(service.food_swaps("summary"))

    assert [swap.suggested_item for swap in result.value] == [
        "Bean burger",
        "Oat milk",
    ]
    assert not any(swap.try_this for swap in result.value)


def test_too_many_food_swaps_fall_back() -> None:
    client = FakeGenerationClient()
    swap = client.payloads["food_swaps"]["swaps"][0]  # type: ignore[index]
    client.payloads["food_swaps"] = {"swaps": [swap] * 6}
    service = make_generation_service(client)

    result = asyncio.run(service.food_swaps("summary"))

    assert result.used_fallback
    assert result.value[0].original_item == "High-carbon meals"


def test_photo_requests_pass_image() -> None:
    client = FakeGenerationClient()
    service = make_generation_service(client)
    photo = "data:image/jpeg;base64,ZmFrZQ=="

    items = asyncio.run(service.identify_food_items(photo))
    estimate = asyncio.run(
        service.estimate_footprint([FoodItem(name="Rice", quantity="1 cup")], photo)
    )

    assert items.value[0].name == "Rice"
    assert estimate.value == 1.25
    assert [call["image_data_url"] for call in client.calls] == [photo, photo]


def test_optional_results_fall_back_to_none() -> None:
    client = FakeGenerationClient(
        failing={"meal_suggestion", "estimate_footprint", "identify_food_items"}
    )
    service = make_generation_service(client)
    items = [FoodItem(name="Beef", quantity="300g")]

    assert asyncio.run(service.meal_suggestion(items, 29.85)).value is None
    assert asyncio.run(service.estimate_footprint(items)).value is None
    assert asyncio.run(service.identify_food_items("data:,")).value == []


def test_negative_footprint_estimate_is_rejected() -> None:
    client = FakeGenerationClient()
    client.payloads["estimate_footprint"] = {"carbon_footprint_kg_co2e": -1}
    service = make_generation_service(client)

    result = asyncio.run(
        service.estimate_footprint([FoodItem(name="Rice", quantity="1 cup")])
    )

    assert result.used_fallback
    assert result.value is None
