"""Schemas for generation requests, model routing and pipeline responses."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Literal, Optional

from .meal_schema import NutritionalTotals


class GenerationPreferences(BaseModel):
    """User choices for one generation request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    include_snacks: bool = Field(False, validation_alias=AliasChoices("includeSnacks", "include_snacks"))
    cuisine: Optional[str] = Field(None, validation_alias=AliasChoices("cuisine", "cuisineType", "cuisine_type"))
    max_prep_time: Optional[int] = Field(None, gt=0, validation_alias=AliasChoices("maxPrepTime", "max_prep_time"))
    language: Literal["en", "ar"] = "en"
    week_offset: int = Field(0, ge=-52, le=52, validation_alias=AliasChoices("weekOffset", "week_offset"))

    @field_validator("language", mode="before")
    @classmethod
    def _normalize_language(cls, value):
        if value is None:
            return "en"
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("cuisine", mode="before")
    @classmethod
    def _blank_cuisine(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value if v) or None
        return value


class GenerationModel(BaseModel):
    """Read-only view of a configured model."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_id: str
    provider: str
    display_name: str
    is_active: bool = True
    is_default: bool = False


class ModelChain(BaseModel):
    """Ordered primary/fallback pair for one feature."""

    model_config = ConfigDict(frozen=True)

    primary: GenerationModel
    fallback: GenerationModel


class MealPlanGenerationResponse(BaseModel):
    """Successful generation payload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    weekly_plan_id: str
    total_meals: int
    meals_per_day: int
    week_start_date: str
    ai_model: str
    daily_calories: int
    nutritional_totals: NutritionalTotals
    low_confidence: bool = False


class CreditsResponse(BaseModel):
    """Quota state of a user; remaining is -1 for unlimited users."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    remaining: int
    is_unlimited: bool
    generations_today: int
    daily_cap: int
