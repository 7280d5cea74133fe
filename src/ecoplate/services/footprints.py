"""Food-to-footprint lookup from a tabular data source."""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

from ecoplate.domain.meals import FoodItem

_logger = logging.getLogger(__name__)

_QUANTITY_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*(kilograms?|kgs?|grams?|g|ounces?|oz|pounds?|lbs?)\b",
    re.IGNORECASE,
)
_KG_PER_UNIT = {
    "kg": 1.0,
    "kgs": 1.0,
    "kilogram": 1.0,
    "kilograms": 1.0,
    "g": 0.001,
    "gram": 0.001,
    "grams": 0.001,
    "oz": 0.02835,
    "ounce": 0.02835,
    "ounces": 0.02835,
    "lb": 0.453592,
    "lbs": 0.453592,
    "pound": 0.453592,
    "pounds": 0.453592,
}


class FoodDataSource(Protocol):
    """Source of the food footprint CSV."""

    async def fetch_csv(self) -> str:
        """Return CSV text with food_item_name, co2e_per_kg, source_notes."""


def parse_quantity_kg(quantity: str) -> float | None:
    """Convert a quantity like "150g" or "1.5 lb" to kilograms."""
    match = _QUANTITY_PATTERN.search(quantity)
    if match is None:
        return None
    amount = float(match.group(1))
    return amount * _KG_PER_UNIT[match.group(2).lower()]


def parse_food_data(csv_text: str) -> dict[str, float]:
    """Parse CSV rows into a lowercase name to CO2e-per-kg map."""
    reader = csv.reader(io.StringIO(csv_text))
    next(reader, None)
    factors: dict[str, float] = {}
    for row in reader:
        if len(row) < 2 or not row[0].strip():
            continue
        try:
            factor = float(row[1].strip())
        except ValueError:
            continue
        factors[row[0].strip().lower()] = factor
    return factors


@dataclass
class FootprintLookup:
    """Per-item footprint estimates from a lazily loaded CSV table."""

    source: FoodDataSource
    _factors: dict[str, float] | None = field(default=None, init=False)

    async def get_carbon_factor(self, food_name: str) -> float | None:
        """Return CO2e per kg for a food, case-insensitively."""
        factors = await self._load()
        return factors.get(food_name.strip().lower())

    async def item_footprint(self, item: FoodItem) -> float | None:
        """Return the footprint of an item when both factor and weight are known."""
        factor = await self.get_carbon_factor(item.name)
        if factor is None:
            return None
        quantity_kg = parse_quantity_kg(item.quantity)
        if quantity_kg is None:
            return None
        return round(factor * quantity_kg, 4)

    async def _load(self) -> dict[str, float]:
        if self._factors is not None:
            return self._factors
        try:
            csv_text = await self.source.fetch_csv()
        except Exception as exc:
            _logger.warning("Failed to load food footprint data: %s", exc)
            return {}
        self._factors = parse_food_data(csv_text)
        _logger.info("Loaded %s food footprint factors", len(self._factors))
        return self._factors
