"""Validation and normalization of model output.

The model's text is untrusted. It must parse as JSON as-is (malformed output
is rejected, never scraped), must carry a non-empty `meals` list, and every
element is coerced into an immutable `ValidatedMeal` in a single pass.
Nothing downstream ever sees the raw dictionaries.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from core.config import get_settings
from core.exceptions import ResponseInvalidError
from core.logger import get_logger
from schemas.meal_schema import MEAL_TYPES, Ingredient, ValidatedMeal
from services.prompt_compiler import MEALS_CONTAINER_KEY, PLAN_DAYS

logger = get_logger("services.response_validator")

DEFAULT_MEAL_NAME = "Unnamed Meal"
FIELD_ALIASES = {
    "meal_type": ("meal_type", "type", "mealType"),
    "day_number": ("day_number", "dayNumber", "day"),
    "prep_time": ("prep_time", "prepTime"),
    "cook_time": ("cook_time", "cookTime"),
    "youtube_search_term": ("youtube_search_term", "youtubeSearchTerm"),
}


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validating one model response."""

    meals: Tuple[ValidatedMeal, ...]
    expected_count: int
    warnings: Tuple[str, ...] = ()
    low_confidence: bool = False


def coerce_number(value: Any) -> float:
    """Coerce to a finite non-negative float; anything unusable becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def normalize_meal_type(value: Any) -> Tuple[str, bool]:
    """Map free-text meal types onto the enum.

    Returns:
        (meal_type, recognized). Anything mentioning "snack" is a snack;
        other unknown values become breakfast and are reported as unrecognized.
    """
    text = str(value).strip().lower() if value is not None else ""
    if text in MEAL_TYPES:
        return text, True
    if "snack" in text:
        return "snack", True
    return "breakfast", False


def _field(raw: dict, name: str) -> Any:
    for key in FIELD_ALIASES.get(name, (name,)):
        if key in raw:
            return raw[key]
    return None


def _ingredients(value: Any) -> Tuple[Ingredient, ...]:
    if not isinstance(value, list):
        return ()
    items = []
    for item in value:
        if isinstance(item, dict):
            name = str(item.get("name") or "").strip()
            if not name:
                continue
            amount = item.get("amount")
            if amount is None and item.get("quantity") is not None:
                amount = f"{item.get('quantity')} {item.get('unit') or ''}".strip()
            items.append(Ingredient(
                name=name,
                amount=str(amount).strip() if amount is not None else "",
                calories=coerce_number(item.get("calories")),
            ))
        elif isinstance(item, str) and item.strip():
            items.append(Ingredient(name=item.strip()))
    return tuple(items)


def _instructions(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if not isinstance(value, list):
        return ()
    return tuple(str(step).strip() for step in value if step is not None and str(step).strip())


def _search_term(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def _alternatives(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    names = []
    for item in value:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return tuple(names)


class ResponseValidator:
    """Parses raw model text into validated meals."""

    def __init__(self, confidence_threshold: Optional[float] = None):
        if confidence_threshold is None:
            confidence_threshold = get_settings().MEAL_COUNT_CONFIDENCE_THRESHOLD
        self.confidence_threshold = confidence_threshold

    def parse(self, raw_text: str) -> List[Any]:
        """Strictly parse the text and return the raw meal list.

        Raises:
            ResponseInvalidError: On any syntax error, or when the container
                key is missing, not a list, or empty.
        """
        try:
            payload = json.loads(raw_text)
        except (TypeError, ValueError) as exc:
            logger.warning("Model output is not valid JSON: %s", exc)
            raise ResponseInvalidError(f"Model output is not valid JSON: {exc}")

        meals = payload.get(MEALS_CONTAINER_KEY) if isinstance(payload, dict) else None
        if not isinstance(meals, list) or not meals:
            logger.warning("Model output has no '%s' list", MEALS_CONTAINER_KEY)
            raise ResponseInvalidError(f"Model output has no non-empty '{MEALS_CONTAINER_KEY}' list")
        return meals

    def normalize_meal(self, raw: dict, position: int, meals_per_day: int) -> Tuple[ValidatedMeal, List[str]]:
        """Coerce one raw meal; returns the meal and any warnings raised."""
        warnings = []
        raw_type = _field(raw, "meal_type")
        meal_type, recognized = normalize_meal_type(raw_type)
        if not recognized:
            warnings.append(f"meal {position}: unrecognized meal_type {raw_type!r}, using breakfast")

        day_number = int(coerce_number(_field(raw, "day_number")))
        if not 1 <= day_number <= PLAN_DAYS:
            derived = min(position // max(meals_per_day, 1) + 1, PLAN_DAYS)
            warnings.append(f"meal {position}: day_number {_field(raw, 'day_number')!r} out of range, using {derived}")
            day_number = derived

        name = str(raw.get("name") or "").strip() or DEFAULT_MEAL_NAME

        meal = ValidatedMeal(
            day_number=day_number,
            meal_type=meal_type,
            name=name,
            calories=coerce_number(raw.get("calories")),
            protein=coerce_number(raw.get("protein")),
            carbs=coerce_number(raw.get("carbs")),
            fat=coerce_number(raw.get("fat")),
            ingredients=_ingredients(raw.get("ingredients")),
            instructions=_instructions(raw.get("instructions")),
            prep_time=coerce_number(_field(raw, "prep_time")),
            cook_time=coerce_number(_field(raw, "cook_time")),
            servings=coerce_number(raw.get("servings")),
            youtube_search_term=_search_term(_field(raw, "youtube_search_term")),
            alternatives=_alternatives(raw.get("alternatives")),
        )
        return meal, warnings

    def validate(self, raw_text: str, meals_per_day: int, days: int = PLAN_DAYS) -> ValidationReport:
        """Parse and normalize a model response.

        Args:
            raw_text: Text returned by the invoker.
            meals_per_day: Size of the requested meal schedule.
            days: Number of days requested.

        Returns:
            `ValidationReport`. A short plan is flagged low-confidence but
            still returned.

        Raises:
            ResponseInvalidError: If the text cannot be parsed or has no meals.
        """
        raw_meals = self.parse(raw_text)
        expected = meals_per_day * days

        meals = []
        warnings = []
        for position, raw in enumerate(raw_meals):
            if not isinstance(raw, dict):
                warnings.append(f"meal {position}: not an object, skipped")
                continue
            meal, meal_warnings = self.normalize_meal(raw, position, meals_per_day)
            meals.append(meal)
            warnings.extend(meal_warnings)

        if not meals:
            raise ResponseInvalidError("Model output contains no usable meals")

        for warning in warnings:
            logger.warning("Normalized model output: %s", warning)

        low_confidence = len(meals) < expected * self.confidence_threshold
        if low_confidence:
            logger.warning(
                "Low confidence plan: %s meals received, %s expected (threshold %.0f%%)",
                len(meals), expected, self.confidence_threshold * 100,
            )
        else:
            logger.info("Validated %s of %s expected meals", len(meals), expected)

        return ValidationReport(
            meals=tuple(meals),
            expected_count=expected,
            warnings=tuple(warnings),
            low_confidence=low_confidence,
        )


__all__ = ["ResponseValidator", "ValidationReport", "coerce_number", "normalize_meal_type"]
