"""Tests for the daily calorie target calculation."""
import pytest

from core.exceptions import InvalidProfileError
from schemas.user_schema import UserProfile
from services.nutrition_calculator import ACTIVITY_FACTORS, NutritionCalculator, nutrition_calculator


def _profile(**overrides):
    data = {
        "id": "user-1",
        "age": 30,
        "gender": "male",
        "weight": 75,
        "height": 180,
        "activity_level": "moderately_active",
        "fitness_goal": "maintenance",
    }
    data.update(overrides)
    return UserProfile.model_validate(data)


def test_reference_male_maintenance_target():
    """Male, moderately active, maintenance: BMR x 1.55, no adjustments."""
    expected = round((88.362 + 13.397 * 75 + 4.799 * 180 - 5.677 * 30) * 1.55)
    target = nutrition_calculator.calculate_target(_profile())
    assert target.daily_calories == expected == 2769
    assert target.life_phase_surcharge == 0


def test_target_grows_with_activity():
    """Holding everything else fixed, a more active level never lowers the target."""
    levels = sorted(ACTIVITY_FACTORS, key=ACTIVITY_FACTORS.get)
    targets = [nutrition_calculator.calculate_target(_profile(activity_level=level)).daily_calories for level in levels]
    assert targets == sorted(targets)
    assert all(isinstance(t, int) and t > 0 for t in targets)


def test_unknown_activity_uses_default_factor():
    unknown = nutrition_calculator.calculate_target(_profile(activity_level="couch_potato"))
    moderate = nutrition_calculator.calculate_target(_profile(activity_level="moderately_active"))
    assert unknown.daily_calories == moderate.daily_calories


def test_goal_multipliers():
    calc = NutritionCalculator()
    assert calc.apply_goal(2000, "weight_loss") == pytest.approx(1600)
    assert calc.apply_goal(2000, "muscle_gain") == pytest.approx(2200)
    assert calc.apply_goal(2000, "maintenance") == 2000
    assert calc.apply_goal(2000, None) == 2000


def test_pregnancy_and_breastfeeding_surcharges_add_up():
    """Trimester 3 and exclusive breastfeeding together add 450 + 400 kcal."""
    base = _profile(gender="female", fitness_goal="maintenance")
    phased = _profile(gender="female", fitness_goal="maintenance",
                      pregnancy_trimester=3, breastfeeding_level="exclusive")
    base_target = nutrition_calculator.calculate_target(base)
    phased_target = nutrition_calculator.calculate_target(phased)
    assert phased_target.life_phase_surcharge == 850
    assert phased_target.daily_calories - base_target.daily_calories == 850


def test_first_trimester_has_no_surcharge():
    assert NutritionCalculator().life_phase_surcharge(1, "none") == 0
    assert NutritionCalculator().life_phase_surcharge(2, "partial") == 340 + 250


def test_non_male_genders_use_female_equation():
    calc = NutritionCalculator()
    assert calc.calculate_bmr(30, 180, 75, "other") == calc.calculate_bmr(30, 180, 75, "female")
    assert calc.calculate_bmr(30, 180, 75, "Male") != calc.calculate_bmr(30, 180, 75, "female")


@pytest.mark.parametrize("field,value", [("age", None), ("weight", 0), ("height", -170)])
def test_missing_or_non_positive_metrics_are_rejected(field, value):
    """Required metrics are checked before anything is computed."""
    with pytest.raises(InvalidProfileError) as exc_info:
        nutrition_calculator.calculate_target(_profile(**{field: value}))
    assert exc_info.value.code == "INVALID_USER_PROFILE"
    assert exc_info.value.is_retryable is False
