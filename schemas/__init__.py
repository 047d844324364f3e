"""Pydantic schema package for request and response models."""

from .user_schema import UserProfile
from .meal_schema import Ingredient, ValidatedMeal, MealDetail, NutritionalTotals, WeeklyPlanResponse
from .generation_schema import (
    GenerationPreferences,
    GenerationModel,
    ModelChain,
    MealPlanGenerationResponse,
    CreditsResponse,
)

__all__ = [
    "UserProfile",
    "Ingredient",
    "ValidatedMeal",
    "MealDetail",
    "NutritionalTotals",
    "WeeklyPlanResponse",
    "GenerationPreferences",
    "GenerationModel",
    "ModelChain",
    "MealPlanGenerationResponse",
    "CreditsResponse",
]
