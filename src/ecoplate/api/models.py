"""Pydantic models for API request payloads."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Login form payload."""

    name: str
    email: str


class IdentifyRequest(BaseModel):
    """Meal photo to recognize, as a data URI."""

    photo_data_uri: str = Field(min_length=1)


class FoodItemPayload(BaseModel):
    """A food item as entered on the log-meal form."""

    name: str
    quantity: str
    footprint_kg: float | None = Field(default=None, ge=0, allow_inf_nan=False)


class LogMealRequest(BaseModel):
    """Meal to log."""

    items: list[FoodItemPayload]
    total_footprint_kg: float | None = Field(
        default=None, ge=0, allow_inf_nan=False
    )
    photo_data_uri: str | None = None


class TryThisRequest(BaseModel):
    """Toggle for a food swap."""

    try_this: bool = True


class ChatRequest(BaseModel):
    """Question for the assistant."""

    question: str
