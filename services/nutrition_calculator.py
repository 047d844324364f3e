"""Nutrition calculation helpers.

Derives the daily calorie target a generated plan must hit: BMR from body
metrics, TDEE from activity, then goal and life-phase adjustments.
"""

from dataclasses import dataclass
from typing import Optional

from core.exceptions import InvalidProfileError
from core.logger import get_logger
from schemas.user_schema import UserProfile

logger = get_logger("services.nutrition_calculator")

ACTIVITY_FACTORS = {
    'sedentary': 1.2,
    'lightly_active': 1.375,
    'moderately_active': 1.55,
    'very_active': 1.725,
    'extremely_active': 1.9
}
DEFAULT_ACTIVITY_FACTOR = 1.55

GOAL_MULTIPLIERS = {
    'weight_loss': 0.8,
    'muscle_gain': 1.1,
}

PREGNANCY_SURCHARGES = {2: 340, 3: 450}
BREASTFEEDING_SURCHARGES = {'exclusive': 400, 'partial': 250}


@dataclass(frozen=True)
class NutritionTarget:
    """Daily energy target for one request; never persisted on its own."""

    daily_calories: int
    bmr: float
    tdee: float
    life_phase_surcharge: int = 0


class NutritionCalculator:
    """Class-based nutrition calculator used by the generation pipeline."""

    def calculate_bmr(self, age: float, height_cm: float, weight_kg: float, gender: Optional[str]) -> float:
        """Calculate BMR; non-male genders use the female coefficients."""
        if (gender or '').lower() == 'male':
            return 88.362 + 13.397 * weight_kg + 4.799 * height_cm - 5.677 * age
        return 447.593 + 9.247 * weight_kg + 3.098 * height_cm - 4.330 * age

    def calculate_tdee(self, bmr: float, activity_level: Optional[str]) -> float:
        """Estimate TDEE from BMR and activity multiplier."""
        factor = ACTIVITY_FACTORS.get(activity_level or '', DEFAULT_ACTIVITY_FACTOR)
        val = bmr * factor
        logger.debug("TDEE calculated: %s (factor=%s)", val, factor)
        return val

    def apply_goal(self, tdee: float, fitness_goal: Optional[str]) -> float:
        """Scale TDEE by the goal multiplier (maintenance and unknown goals keep it)."""
        return tdee * GOAL_MULTIPLIERS.get(fitness_goal or '', 1.0)

    def life_phase_surcharge(self, pregnancy_trimester: int, breastfeeding_level: Optional[str]) -> int:
        """Flat kcal added for pregnancy and breastfeeding; both may apply."""
        surcharge = PREGNANCY_SURCHARGES.get(pregnancy_trimester or 0, 0)
        surcharge += BREASTFEEDING_SURCHARGES.get(breastfeeding_level or '', 0)
        return surcharge

    def calculate_target(self, profile: UserProfile) -> NutritionTarget:
        """Compute the daily calorie target for a profile.

        Raises:
            InvalidProfileError: If age, height or weight is missing or not
                positive, or the result is not positive.
        """
        for field in ('age', 'height_cm', 'weight_kg'):
            value = getattr(profile, field)
            if value is None or value <= 0:
                raise InvalidProfileError(f"Profile field '{field}' must be a positive number", field=field)

        bmr = self.calculate_bmr(profile.age, profile.height_cm, profile.weight_kg, profile.gender)
        tdee = self.calculate_tdee(bmr, profile.activity_level)
        adjusted = self.apply_goal(tdee, profile.fitness_goal)
        surcharge = self.life_phase_surcharge(profile.pregnancy_trimester, profile.breastfeeding_level)
        daily_calories = int(round(adjusted + surcharge))
        if daily_calories <= 0:
            raise InvalidProfileError("Profile produces a non-positive calorie target")

        logger.info(
            "Calorie target for user %s: %s (bmr=%.1f, tdee=%.1f, goal=%s, surcharge=%s)",
            profile.id, daily_calories, bmr, tdee, profile.fitness_goal, surcharge,
        )
        return NutritionTarget(daily_calories=daily_calories, bmr=bmr, tdee=tdee, life_phase_surcharge=surcharge)


# export singleton
nutrition_calculator = NutritionCalculator()
__all__ = ["NutritionCalculator", "NutritionTarget", "nutrition_calculator"]
