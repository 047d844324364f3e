"""Shared fixtures: an in-memory database, profile rows and fake model clients."""
import json
from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import Settings
from database import models, seed_model_catalogue

# A Monday; the Saturday anchor for it is 2026-10-24.
NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db):
    seed_model_catalogue(db)
    return db


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def settings():
    return Settings(GEMINI_API_KEY="test-key", AI_REQUEST_TIMEOUT_SECONDS=5, PLAN_REPLACE_ATOMIC=True)


@pytest.fixture
def make_profile(db):
    """Insert a `profiles` row and return it."""
    def _make(user_id="user-1", role="user", remaining=5):
        profile = models.Profile(id=user_id, role=role, ai_generations_remaining=remaining)
        db.add(profile)
        db.commit()
        return profile
    return _make


def build_meals(meals_per_day=3, days=7, **overrides):
    schedule = ["breakfast", "lunch", "dinner"] if meals_per_day == 3 else \
        ["breakfast", "snack", "lunch", "snack", "dinner"]
    meals = []
    for day in range(1, days + 1):
        for meal_type in schedule[:meals_per_day]:
            meal = {
                "day_number": day,
                "meal_type": meal_type,
                "name": f"Day {day} {meal_type}",
                "calories": 700,
                "protein": 35,
                "carbs": 80,
                "fat": 20,
                "ingredients": [{"name": "oats", "amount": "80 g", "calories": 300}],
                "instructions": ["Cook", "Serve"],
                "prep_time": 10,
                "cook_time": 15,
                "servings": 1,
                "youtube_search_term": f"day {day} {meal_type} recipe",
                "alternatives": ["Greek yogurt bowl"],
            }
            meal.update(overrides)
            meals.append(meal)
    return meals


@pytest.fixture
def plan_json():
    """Return a function rendering a model response with a full week of meals."""
    def _render(meals_per_day=3, days=7, **overrides):
        return json.dumps({"meals": build_meals(meals_per_day, days, **overrides)})
    return _render


class FakeModels:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome()
        return SimpleNamespace(text=outcome)


class FakeGenaiClient:
    """Stand-in for `genai.Client` exposing `aio.models.generate_content`.

    Each outcome is either response text, an exception to raise, or an async
    callable producing the response.
    """

    def __init__(self, *outcomes):
        self.aio = SimpleNamespace(models=FakeModels(outcomes))

    @property
    def calls(self):
        return self.aio.models.calls

    @property
    def called_models(self):
        return [call["model"] for call in self.calls]


@pytest.fixture
def fake_client():
    return FakeGenaiClient
