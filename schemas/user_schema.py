"""Schemas for the user profile a generation request carries."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

ACTIVITY_LEVELS = ("sedentary", "lightly_active", "moderately_active", "very_active", "extremely_active")
BREASTFEEDING_LEVELS = ("none", "partial", "exclusive")


class UserProfile(BaseModel):
    """Biometric profile and dietary context for one user.

    Numeric body metrics are optional at the schema level so that a profile
    with gaps can still be located and audited; `NutritionCalculator`
    rejects it before any generation work starts.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, validation_alias=AliasChoices("id", "user_id", "userId"))
    age: Optional[float] = Field(None, examples=[30])
    gender: Optional[str] = Field(None, examples=["male"])
    height_cm: Optional[float] = Field(None, validation_alias=AliasChoices("height_cm", "height"), examples=[180.0])
    weight_kg: Optional[float] = Field(None, validation_alias=AliasChoices("weight_kg", "weight"), examples=[75.0])
    activity_level: Optional[str] = Field(None, examples=["moderately_active"], description="One of: " + ", ".join(ACTIVITY_LEVELS))
    fitness_goal: Optional[str] = Field(None, examples=["maintenance"], description="weight_loss, muscle_gain, maintenance, ...")
    nationality: Optional[str] = None
    dietary_restrictions: List[str] = Field(default_factory=list, examples=[["vegetarian"]])
    allergies: List[str] = Field(default_factory=list, examples=[["peanuts"]])
    health_conditions: List[str] = Field(default_factory=list)
    preferred_foods: List[str] = Field(default_factory=list)
    pregnancy_trimester: int = Field(0, ge=0, le=3)
    breastfeeding_level: Optional[str] = Field(None, description="One of: " + ", ".join(BREASTFEEDING_LEVELS))
    fasting_type: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("dietary_restrictions", "allergies", "health_conditions", "preferred_foods", mode="before")
    @classmethod
    def _coerce_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [str(item).strip() for item in value if item is not None and str(item).strip()]

    @field_validator("pregnancy_trimester", mode="before")
    @classmethod
    def _default_trimester(cls, value):
        return 0 if value is None else value

    @field_validator("gender", "activity_level", "fitness_goal", "breastfeeding_level", mode="before")
    @classmethod
    def _normalize_keyword(cls, value):
        if isinstance(value, str):
            return value.strip().lower() or None
        return value
