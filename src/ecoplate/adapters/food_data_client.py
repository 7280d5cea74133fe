"""Food footprint CSV sources."""

from dataclasses import dataclass
from pathlib import Path

import httpx

from ecoplate.services.footprints import FoodDataSource

PACKAGED_FOOD_DATA = Path(__file__).resolve().parents[1] / "data" / "food_data.csv"


@dataclass
class HttpxFoodDataClient(FoodDataSource):
    """Downloads the food footprint CSV over HTTP."""

    url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, url: str) -> "HttpxFoodDataClient":
        """Create a client with a managed httpx session."""
        return cls(url=url, http_client=httpx.AsyncClient())

    async def fetch_csv(self) -> str:
        """Fetch the CSV text."""
        response = await self.http_client.get(self.url, timeout=15)
        response.raise_for_status()
        return response.text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


@dataclass
class FileFoodDataSource(FoodDataSource):
    """Reads the food footprint CSV from disk."""

    path: Path = PACKAGED_FOOD_DATA

    async def fetch_csv(self) -> str:
        """Read the CSV text."""
        return self.path.read_text(encoding="utf-8")
