"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from ecoplate.adapters.food_data_client import FileFoodDataSource, HttpxFoodDataClient
from ecoplate.adapters.memory_store import InMemoryKeyValueStore
from ecoplate.adapters.openai_generation_client import OpenAIGenerationClient
from ecoplate.adapters.supabase_key_value_store import SupabaseKeyValueStore
from ecoplate.config import Settings, parse_storage_backend
from ecoplate.services.footprints import FoodDataSource, FootprintLookup
from ecoplate.services.generation import GenerationService
from ecoplate.services.sessions import SessionService
from ecoplate.services.storage import KeyValueStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: KeyValueStore
    generation_service: GenerationService
    footprint_lookup: FootprintLookup
    session_service: SessionService
    close_resources: Callable[[], Awaitable[None]]


def build_store(settings: Settings) -> KeyValueStore:
    """Create the configured key-value store."""
    backend = parse_storage_backend(settings.storage_backend)
    if backend == "memory":
        return InMemoryKeyValueStore(limit_bytes=settings.storage_value_limit_bytes)
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ValueError("Supabase storage requires SUPABASE_URL and key")
    supabase_client = create_client(
        settings.supabase_url, settings.supabase_service_key
    )
    return SupabaseKeyValueStore(
        supabase_client, value_limit_bytes=settings.storage_value_limit_bytes
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = build_store(resolved_settings)
    openai_client = OpenAIGenerationClient.create(resolved_settings.openai_api_key)
    generation_service = GenerationService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    food_data_client: HttpxFoodDataClient | None = None
    food_source: FoodDataSource
    if resolved_settings.food_data_url:
        food_data_client = HttpxFoodDataClient.create(resolved_settings.food_data_url)
        food_source = food_data_client
    else:
        food_source = FileFoodDataSource()
    footprint_lookup = FootprintLookup(food_source)
    session_service = SessionService(
        store=store,
        generation_service=generation_service,
        footprint_lookup=footprint_lookup,
        timezone_name=resolved_settings.default_timezone,
        persist_limit=resolved_settings.persisted_log_limit,
        memory_limit=resolved_settings.memory_log_limit,
        cache_window=timedelta(hours=resolved_settings.cache_window_hours),
        suggestion_threshold_kg=resolved_settings.suggestion_threshold_kg,
    )

    async def close_resources() -> None:
        await openai_client.close()
        if food_data_client is not None:
            await food_data_client.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        generation_service=generation_service,
        footprint_lookup=footprint_lookup,
        session_service=session_service,
        close_resources=close_resources,
    )
