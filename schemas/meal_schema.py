"""Schemas for meals: the trusted in-memory meal and its API representation."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional, Tuple

MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")


class Ingredient(BaseModel):
    """Ingredient line of a meal."""

    model_config = ConfigDict(frozen=True)

    name: str
    amount: str = ""
    calories: float = 0.0


class ValidatedMeal(BaseModel):
    """A meal that passed normalization and is safe to persist.

    Instances are immutable; collections are tuples for the same reason.
    """

    model_config = ConfigDict(frozen=True)

    day_number: int = Field(..., ge=1, le=7)
    meal_type: Literal["breakfast", "lunch", "dinner", "snack"]
    name: str
    calories: float = Field(0.0, ge=0)
    protein: float = Field(0.0, ge=0)
    carbs: float = Field(0.0, ge=0)
    fat: float = Field(0.0, ge=0)
    ingredients: Tuple[Ingredient, ...] = ()
    instructions: Tuple[str, ...] = ()
    prep_time: float = Field(0.0, ge=0)
    cook_time: float = Field(0.0, ge=0)
    servings: float = Field(0.0, ge=0)
    youtube_search_term: Optional[str] = None
    alternatives: Tuple[str, ...] = ()


class NutritionalTotals(BaseModel):
    """Per-day average macros of a weekly plan."""

    calories: float
    protein: float
    carbs: float
    fat: float


class MealDetail(BaseModel):
    """Representation of a stored meal in responses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    day_number: int
    meal_type: str
    name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    ingredients: List[dict] = []
    instructions: List[str] = []
    prep_time: float = 0
    cook_time: float = 0
    servings: float = 0
    youtube_search_term: Optional[str] = None
    alternatives: List[str] = []


class WeeklyPlanResponse(BaseModel):
    """A stored week with its meals ordered by day and slot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    week_start_date: str
    nutritional_totals: NutritionalTotals
    total_meals: int
    meals: List[MealDetail]
    generation_prompt: Optional[dict] = None
