"""Prompt compilation for weekly meal plan generation.

Renders the user context, the calorie target and the meal schedule into a
single prompt string that also carries the exact JSON output contract. The
compiler is pure: identical inputs always produce identical text.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from schemas.generation_schema import GenerationPreferences
from schemas.user_schema import UserProfile
from services.nutrition_calculator import NutritionTarget

PLAN_DAYS = 7
MEALS_CONTAINER_KEY = "meals"

BASE_SCHEDULE = ("breakfast", "lunch", "dinner")
SNACK_SCHEDULE = ("breakfast", "snack", "lunch", "snack", "dinner")

LANGUAGE_INSTRUCTIONS = {
    "en": "Write all meal names, ingredient names and instructions in English.",
    "ar": "Write all meal names, ingredient names and instructions in Arabic. Keep the JSON field names in English.",
}

OUTPUT_SCHEMA = """{
  "meals": [
    {
      "day_number": <integer 1-7>,
      "meal_type": <string, one of "breakfast", "lunch", "dinner", "snack">,
      "name": <string>,
      "calories": <number, kcal>,
      "protein": <number, grams>,
      "carbs": <number, grams>,
      "fat": <number, grams>,
      "ingredients": [
        {"name": <string>, "amount": <string, e.g. "120 g">, "calories": <number, kcal>}
      ],
      "instructions": [<string>, ...],
      "prep_time": <number, minutes>,
      "cook_time": <number, minutes>,
      "servings": <number>,
      "youtube_search_term": <string, a short video search query for the recipe>,
      "alternatives": [<string, name of a comparable meal>, ...]
    }
  ]
}"""


@dataclass(frozen=True)
class CompiledPrompt:
    """Prompt text plus the schedule the response will be checked against."""

    text: str
    schedule: Tuple[str, ...]
    days: int = PLAN_DAYS

    @property
    def meals_per_day(self) -> int:
        return len(self.schedule)

    @property
    def expected_meal_count(self) -> int:
        return self.meals_per_day * self.days


def meal_schedule(include_snacks: bool) -> Tuple[str, ...]:
    """Meal slots for one day, in serving order."""
    return SNACK_SCHEDULE if include_snacks else BASE_SCHEDULE


def expected_meal_count(include_snacks: bool, days: int = PLAN_DAYS) -> int:
    """Number of meals a complete plan must contain."""
    return len(meal_schedule(include_snacks)) * days


def life_phase_context(profile: UserProfile) -> Dict[str, object]:
    """Life-phase fields that are present on the profile, for prompts and snapshots."""
    context = {}
    if profile.pregnancy_trimester:
        context["pregnancy_trimester"] = profile.pregnancy_trimester
    if profile.breastfeeding_level and profile.breastfeeding_level != "none":
        context["breastfeeding_level"] = profile.breastfeeding_level
    if profile.fasting_type and profile.fasting_type.lower() != "none":
        context["fasting_type"] = profile.fasting_type
    return context


def _num(value: Optional[float]) -> str:
    if value is None:
        return "not specified"
    if float(value).is_integer():
        return str(int(value))
    return str(round(value, 1))


def _section(title: str, lines: List[str]) -> List[str]:
    if not lines:
        return []
    return [f"{title}:"] + [f"- {line}" for line in lines] + [""]


class PromptCompiler:
    """Builds the generation prompt for one request."""

    def compile(
        self,
        profile: UserProfile,
        preferences: GenerationPreferences,
        target: NutritionTarget,
        days: int = PLAN_DAYS,
    ) -> CompiledPrompt:
        """Render the prompt for a 7-day plan.

        Args:
            profile: Validated user profile.
            preferences: Generation preferences.
            target: Calorie target from `NutritionCalculator`.
            days: Number of days in the plan.

        Returns:
            `CompiledPrompt` with the text and the expected schedule.
        """
        schedule = meal_schedule(preferences.include_snacks)
        meals_per_day = len(schedule)
        total = meals_per_day * days

        lines = [
            f"You are a professional nutritionist creating a personalized {days}-day meal plan.",
            "",
        ]

        profile_lines = [
            f"Age: {_num(profile.age)} years",
            f"Gender: {profile.gender or 'not specified'}",
            f"Weight: {_num(profile.weight_kg)} kg, Height: {_num(profile.height_cm)} cm",
            f"Activity level: {profile.activity_level or 'not specified'}",
            f"Fitness goal: {profile.fitness_goal or 'not specified'}",
        ]
        if profile.nationality:
            profile_lines.append(f"Nationality: {profile.nationality} (prefer culturally familiar dishes)")
        lines += _section("USER PROFILE", profile_lines)

        lines += _section("NUTRITION TARGET", [
            f"Daily calorie target: {target.daily_calories} kcal",
            "The meals of each day must add up to approximately the daily target",
        ])

        lines += _section("DIETARY RESTRICTIONS (must be respected)", profile.dietary_restrictions)
        lines += _section("ALLERGIES (never use these ingredients or derivatives)", profile.allergies)
        lines += _section("HEALTH CONDITIONS (adapt meals accordingly)", profile.health_conditions)

        phase = life_phase_context(profile)
        phase_lines = []
        if "pregnancy_trimester" in phase:
            phase_lines.append(f"Pregnant, trimester {phase['pregnancy_trimester']}: use pregnancy-safe foods only")
        if "breastfeeding_level" in phase:
            phase_lines.append(f"Breastfeeding ({phase['breastfeeding_level']}): support lactation and hydration")
        if "fasting_type" in phase:
            phase_lines.append(f"Fasting ({phase['fasting_type']}): schedule meals within the eating window")
        lines += _section("LIFE PHASE", phase_lines)

        preference_lines = []
        if preferences.cuisine:
            preference_lines.append(f"Cuisine: {preferences.cuisine}")
        if profile.preferred_foods:
            preference_lines.append(f"Preferred foods: {', '.join(profile.preferred_foods)}")
        if preferences.max_prep_time:
            preference_lines.append(f"Maximum preparation time: {preferences.max_prep_time} minutes per meal")
        lines += _section("PREFERENCES", preference_lines)

        lines += _section("MEAL SCHEDULE", [
            f"Exactly {days} days, day_number 1 to {days}",
            f"Exactly {meals_per_day} meals per day in this order: {', '.join(schedule)}",
            f"Exactly {total} meals in total",
        ])

        lines += _section("LANGUAGE", [LANGUAGE_INSTRUCTIONS[preferences.language]])

        lines += [
            "OUTPUT FORMAT:",
            "Return ONLY a JSON object, with no markdown, no code fences and no text before or after it.",
            f"Put every meal of every day in one flat list under the \"{MEALS_CONTAINER_KEY}\" key, exactly like this:",
            OUTPUT_SCHEMA,
            "All numeric fields must be plain numbers without units.",
        ]
        return CompiledPrompt(text="\n".join(lines), schedule=schedule, days=days)


prompt_compiler = PromptCompiler()
__all__ = [
    "CompiledPrompt",
    "PromptCompiler",
    "prompt_compiler",
    "meal_schedule",
    "expected_meal_count",
    "life_phase_context",
    "PLAN_DAYS",
    "MEALS_CONTAINER_KEY",
]
