"""Tests for prompt compilation and the meal schedule."""
from schemas.generation_schema import GenerationPreferences
from schemas.user_schema import UserProfile
from services.nutrition_calculator import NutritionTarget
from services.prompt_compiler import expected_meal_count, life_phase_context, meal_schedule, prompt_compiler

TARGET = NutritionTarget(daily_calories=2769, bmr=1786.6, tdee=2769.3)


def _profile(**overrides):
    data = {"id": "user-1", "age": 30, "gender": "male", "weight": 75, "height": 180}
    data.update(overrides)
    return UserProfile.model_validate(data)


def test_expected_meal_counts():
    assert expected_meal_count(include_snacks=False) == 21
    assert expected_meal_count(include_snacks=True) == 35


def test_snack_schedule_has_two_snack_slots():
    assert meal_schedule(True) == ("breakfast", "snack", "lunch", "snack", "dinner")
    assert meal_schedule(False) == ("breakfast", "lunch", "dinner")


def test_compiled_prompt_carries_contract_and_target():
    prompt = prompt_compiler.compile(_profile(), GenerationPreferences(includeSnacks=True), TARGET)
    assert prompt.meals_per_day == 5
    assert prompt.expected_meal_count == 35
    assert "2769 kcal" in prompt.text
    assert '"meals"' in prompt.text
    assert '"day_number"' in prompt.text and '"meal_type"' in prompt.text
    assert '"youtube_search_term"' in prompt.text and '"alternatives"' in prompt.text
    assert "Exactly 35 meals in total" in prompt.text
    assert "Return ONLY a JSON object" in prompt.text


def test_empty_sections_are_omitted():
    text = prompt_compiler.compile(_profile(), GenerationPreferences(), TARGET).text
    assert "ALLERGIES" not in text
    assert "DIETARY RESTRICTIONS" not in text
    assert "HEALTH CONDITIONS" not in text
    assert "LIFE PHASE" not in text
    assert "PREFERENCES:" not in text


def test_present_sections_list_every_item():
    profile = _profile(
        allergies=["peanuts", "shellfish"],
        dietary_restrictions="vegetarian, low_sodium",
        health_conditions=["diabetes"],
        pregnancy_trimester=2,
        fasting_type="ramadan",
    )
    prefs = GenerationPreferences(cuisine="Levantine", maxPrepTime=30)
    text = prompt_compiler.compile(profile, prefs, TARGET).text
    for item in ("peanuts", "shellfish", "vegetarian", "low_sodium", "diabetes", "trimester 2", "ramadan"):
        assert item in text
    assert "Cuisine: Levantine" in text
    assert "30 minutes" in text


def test_language_instruction():
    text = prompt_compiler.compile(_profile(), GenerationPreferences(language="AR"), TARGET).text
    assert "in Arabic" in text


def test_compilation_is_deterministic():
    profile = _profile(allergies=["nuts"])
    prefs = GenerationPreferences(includeSnacks=True, cuisine="Italian")
    assert prompt_compiler.compile(profile, prefs, TARGET) == prompt_compiler.compile(profile, prefs, TARGET)


def test_life_phase_context_only_has_present_fields():
    assert life_phase_context(_profile()) == {}
    context = life_phase_context(_profile(pregnancy_trimester=3, breastfeeding_level="none"))
    assert context == {"pregnancy_trimester": 3}
