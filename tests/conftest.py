"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest

from ecoplate.adapters.memory_store import InMemoryKeyValueStore
from ecoplate.config import Settings
from ecoplate.containers import AppContainer
from ecoplate.domain.meals import FoodItem, MealLogEntry, MealSlot
from ecoplate.services.footprints import FoodDataSource, FootprintLookup
from ecoplate.services.generation import GenerationClient, GenerationService
from ecoplate.services.sessions import SessionService
from ecoplate.services.storage import KeyValueStore, StorageQuotaExceededError

FOOD_DATA_CSV = """food_item_name,co2e_per_kg,source_notes
Beef,99.5,Poore & Nemecek 2018
Rice,4.5,Poore & Nemecek 2018
Lentils,1.8,Poore & Nemecek 2018
Apples,0.4,Poore & Nemecek 2018
Mystery,not-a-number,bad row
"""


def default_payloads() -> dict[str, dict[str, object]]:
    return {
        "weekly_tip": {"tip": "Try a lentil curry this week."},
        "general_recommendation": {"tip": "Buy seasonal produce."},
        "food_swaps": {
            "swaps": [
                {
                    "original_item": "Beef burger",
                    "suggested_item": "Bean burger",
                    "co2e_saving_estimate": "~90%",
                    "details": None,
                },
                {
                    "original_item": "Cow's milk",
                    "suggested_item": "Oat milk",
                    "co2e_saving_estimate": "~70%",
                    "details": "Works well in coffee.",
                },
            ]
        },
        "chatbot_answer": {"answer": "Lentils have a low footprint."},
        "daily_challenge": {
            "description": "Log breakfast, lunch and dinner today.",
            "type": "log_three_meals",
            "target_value": None,
        },
        "weekly_challenge": {
            "description": "Keep this week under 14 kg CO2e.",
            "type": "weekly_co2e_under",
            "target_value": 14.0,
        },
        "meal_suggestion": {"suggestion": "Swap the beef for lentils."},
        "identify_food_items": {
            "identified_items": [{"name": "Rice", "estimated_quantity": "150g"}]
        },
        "estimate_footprint": {"carbon_footprint_kg_co2e": 1.25},
    }


@dataclass
class FakeGenerationClient(GenerationClient):
    """Fake generation client returning canned payloads by request name."""

    payloads: dict[str, dict[str, object]] = field(default_factory=default_payloads)
    failing: set[str] = field(default_factory=set)
    calls: list[dict[str, object]] = field(default_factory=list)

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
        self.calls.append(
            {"name": name, "prompt": prompt, "image_data_url": image_data_url}
        )
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")
        return self.payloads[name]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call["name"] == name)


@dataclass
class FailingKeyValueStore(KeyValueStore):
    """Store whose writes always fail, as when the quota is exhausted."""

    entries: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.entries.get(key)

    def set(self, key: str, value: str) -> None:
        raise StorageQuotaExceededError("quota exceeded")

    def remove(self, key: str) -> None:
        self.entries.pop(key, None)


@dataclass
class UnreadableKeyValueStore(KeyValueStore):
    """Store whose reads always fail, as when the backend is down."""

    entries: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        raise RuntimeError("backend down")

    def set(self, key: str, value: str) -> None:
        self.entries[key] = value

    def remove(self, key: str) -> None:
        self.entries.pop(key, None)


@dataclass
class FakeClock:
    """Manually advanced clock."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 3, 6, 8, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)

    def set(self, value: datetime) -> None:
        self.now = value


@dataclass
class StaticFoodDataSource(FoodDataSource):
    """Food data source returning fixed CSV text."""

    csv_text: str = FOOD_DATA_CSV
    fetches: int = 0

    async def fetch_csv(self) -> str:
        self.fetches += 1
        return self.csv_text


def make_entry(  # noqa: PLR0913
    day: date,
    total: float,
    *,
    hour: int = 12,
    owner: str = "ada@example.com",
    items: tuple[FoodItem, ...] | None = None,
    slot: MealSlot | None = None,
) -> MealLogEntry:
    timestamp = datetime(day.year, day.month, day.day, hour, 0, tzinfo=UTC)
    return MealLogEntry(
        owner=owner,
        date=day,
        timestamp=timestamp,
        items=items or (FoodItem(name="Lentil soup", quantity="1 bowl"),),
        total_footprint_kg=total,
        meal_slot=slot or MealSlot.LUNCH,
    )


def make_generation_service(client: FakeGenerationClient) -> GenerationService:
    return GenerationService(
        client=client, model="gpt-5.2", reasoning_effort="low", store=False
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        storage_backend="memory",
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def generation_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def generation_service(
    generation_client: FakeGenerationClient,
) -> GenerationService:
    return make_generation_service(generation_client)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def food_source() -> StaticFoodDataSource:
    return StaticFoodDataSource()


@pytest.fixture
def session_service(
    store: InMemoryKeyValueStore,
    generation_service: GenerationService,
    food_source: StaticFoodDataSource,
    clock: FakeClock,
) -> SessionService:
    return SessionService(
        store=store,
        generation_service=generation_service,
        footprint_lookup=FootprintLookup(food_source),
        clock=clock,
    )


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryKeyValueStore,
    generation_service: GenerationService,
    session_service: SessionService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        generation_service=generation_service,
        footprint_lookup=session_service.footprint_lookup,
        session_service=session_service,
        close_resources=close_resources,
    )
