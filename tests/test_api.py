"""Tests for the HTTP API."""

from fastapi.testclient import TestClient

from ecoplate.api.app import create_app
from ecoplate.containers import AppContainer
from tests.conftest import FakeGenerationClient

EMAIL = "ada@example.com"
HEADERS = {"X-User-Email": EMAIL}


def _client(container: AppContainer) -> TestClient:
    client = TestClient(create_app(container))
    response = client.post("/login", json={"name": "Ada", "email": EMAIL})
    assert response.status_code == 200
    return client


def test_health(container: AppContainer) -> None:
    response = TestClient(create_app(container)).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_login_and_logout(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    login = client.post("/login", json={"name": "Ada", "email": "Ada@Example.com"})
    logout = client.post("/logout", headers=HEADERS)
    after = client.get("/meals", headers=HEADERS)

    assert login.json() == {"name": "Ada", "email": EMAIL, "streak": 0}
    assert logout.status_code == 200
    assert after.status_code == 401


def test_invalid_login_returns_422(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/login", json={"name": "Ada", "email": "nope"})

    assert response.status_code == 422
    assert response.json() == {"detail": "Please enter a valid email address."}


def test_unknown_user_is_unauthorized(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    assert client.get("/challenges").status_code == 401
    assert client.get("/meals", headers=HEADERS).status_code == 401


def test_log_meal_and_read_result(container: AppContainer) -> None:
    client = _client(container)

    logged = client.post(
        "/meals",
        json={"items": [{"name": "Beef", "quantity": "200g"}]},
        headers=HEADERS,
    )
    result = client.get("/meals/result", headers=HEADERS)
    meals = client.get("/meals", headers=HEADERS)

    assert logged.status_code == 200
    body = logged.json()
    assert body["meal"]["total_footprint_kg"] == 19.9
    assert body["meal"]["meal_slot"] == "Breakfast"
    assert body["suggestion"] == "Swap the beef for lentils."
    assert body["persisted"] is True
    assert body["streak"] == 1
    assert result.json() == body
    assert len(meals.json()["meals"]) == 1


def test_result_without_pending_meal_redirects(container: AppContainer) -> None:
    client = _client(container)

    response = client.get(
        "/meals/result", headers=HEADERS, follow_redirects=False
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/log-meal"


def test_invalid_meal_returns_422(container: AppContainer) -> None:
    client = _client(container)

    empty = client.post("/meals", json={"items": []}, headers=HEADERS)
    malformed = client.post("/meals", json={"items": "rice"}, headers=HEADERS)

    assert empty.status_code == 422
    assert empty.json() == {"detail": "Add at least one food item to log a meal."}
    assert malformed.status_code == 422


def test_identify_meal(container: AppContainer) -> None:
    client = _client(container)

    response = client.post(
        "/meals/identify",
        json={"photo_data_uri": "data:image/jpeg;base64,ZmFrZQ=="},
        headers=HEADERS,
    )

    assert response.json() == {
        "items": [{"name": "Rice", "estimated_quantity": "150g"}],
        "used_fallback": False,
    }


def test_summary_report(container: AppContainer) -> None:
    client = _client(container)

    before = client.get("/reports/summary", headers=HEADERS)
    client.post(
        "/meals",
        json={"items": [{"name": "Rice", "quantity": "100g"}]},
        headers=HEADERS,
    )
    after = client.get("/reports/summary?days=1", headers=HEADERS)

    assert before.json()["summary"] == "No meals logged in this period."
    assert after.json()["summary"].startswith("Day 1 (Wednesday, 2024-03-06)")


def test_challenges_and_refresh(
    container: AppContainer, generation_client: FakeGenerationClient
) -> None:
    client = _client(container)

    current = client.get("/challenges", headers=HEADERS).json()
    generation_client.failing.add("weekly_challenge")
    daily = client.post("/challenges/daily/refresh", headers=HEADERS).json()
    weekly = client.post("/challenges/weekly/refresh", headers=HEADERS).json()

    assert current["daily"]["type"] == "log_three_meals"
    assert current["weekly"]["type"] == "weekly_co2e_under"
    assert current["weekly"]["progress_percent"] == 0.0
    assert current["weekly"]["start_date"] == "2024-03-04"
    assert daily["used_fallback"] is False
    assert weekly["used_fallback"] is True
    assert weekly["weekly"]["type"] == "log_days_count"


def test_recommendations(
    container: AppContainer, generation_client: FakeGenerationClient
) -> None:
    client = _client(container)

    tip = client.get("/recommendations/tip", headers=HEADERS).json()
    cached_tip = client.get("/recommendations/tip", headers=HEADERS).json()
    fresh_tip = client.get(
        "/recommendations/tip?refresh=true", headers=HEADERS
    ).json()
    general = client.get("/recommendations/general", headers=HEADERS).json()

    assert tip == {
        "tip": "Try a lentil curry this week.",
        "cached": False,
        "used_fallback": False,
    }
    assert cached_tip["cached"] is True
    assert fresh_tip["cached"] is False
    assert general["recommendation"] == "Buy seasonal produce."
    assert generation_client.count("weekly_tip") == 2


def test_food_swaps_try_this(container: AppContainer) -> None:
    client = _client(container)

    swaps = client.get("/recommendations/swaps", headers=HEADERS).json()
    marked = client.post(
        "/recommendations/swaps/0/try", json={"try_this": True}, headers=HEADERS
    )
    missing = client.post(
        "/recommendations/swaps/9/try", json={"try_this": True}, headers=HEADERS
    )
    again = client.get("/recommendations/swaps", headers=HEADERS).json()

    assert len(swaps["swaps"]) == 2
    assert marked.json()["swap"]["try_this"] is True
    assert missing.status_code == 404
    assert again["swaps"][0]["try_this"] is True


def test_chat_round_trip(container: AppContainer) -> None:
    client = _client(container)

    answer = client.post(
        "/chat", json={"question": "Is rice okay?"}, headers=HEADERS
    ).json()
    blank = client.post("/chat", json={"question": " "}, headers=HEADERS)
    cleared = client.delete("/chat", headers=HEADERS)
    session = container.session_service.get(EMAIL)

    assert answer["reply"]["text"] == "Lentils have a low footprint."
    assert [message["sender"] for message in answer["messages"]] == ["user", "model"]
    assert blank.status_code == 422
    assert cleared.json() == {"status": "ok"}
    assert session is not None
    assert session.chat_messages == []


def test_non_finite_or_negative_footprints_return_422(
    container: AppContainer,
) -> None:
    client = _client(container)
    json_headers = {**HEADERS, "Content-Type": "application/json"}

    nan_total = client.post(
        "/meals",
        content='{"items": [{"name": "Rice", "quantity": "1g"}], '
        '"total_footprint_kg": NaN}',
        headers=json_headers,
    )
    infinite_item = client.post(
        "/meals",
        content='{"items": [{"name": "Rice", "quantity": "1g", '
        '"footprint_kg": Infinity}]}',
        headers=json_headers,
    )
    negative_item = client.post(
        "/meals",
        json={"items": [{"name": "Rice", "quantity": "1g", "footprint_kg": -1}]},
        headers=HEADERS,
    )

    assert nan_total.status_code == 422
    assert infinite_item.status_code == 422
    assert negative_item.status_code == 422
    assert client.get("/meals", headers=HEADERS).json() == {"meals": []}
