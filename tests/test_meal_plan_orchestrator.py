"""End-to-end tests of the generation pipeline against an in-memory database."""
import asyncio
import threading

import pytest
from google.genai import errors
from sqlalchemy.exc import OperationalError

from core.exceptions import (
    AIGenerationFailedError,
    AIRateLimitedError,
    AuthError,
    DatabaseError,
    InvalidProfileError,
    RateLimitExceededError,
    ResponseInvalidError,
    ValidationError,
)
from database import models
from schemas.generation_schema import GenerationModel, ModelChain
from services.generation_invoker import GenerationInvoker
from services.meal_plan_orchestrator import (
    FallbackRunner,
    FallbackState,
    MealPlanOrchestrator,
    locate_user_profile,
    parse_preferences,
)
from services.quota_ledger import STATUS_COMPLETED, STATUS_FAILED, QuotaLedger

PROFILE = {
    "id": "user-1",
    "age": 30,
    "gender": "male",
    "weight": 75,
    "height": 180,
    "activity_level": "moderately_active",
    "fitness_goal": "maintenance",
}


def _body(**preferences):
    return {"userProfile": dict(PROFILE), "preferences": preferences}


def _rate_limited():
    return errors.ClientError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})


def _server_error():
    return errors.ServerError(500, {"error": {"code": 500, "message": "internal", "status": "INTERNAL"}})


@pytest.fixture
def run(seeded_db, settings, clock):
    """Run one generation with a fake client answering in order."""
    def _run(client, body, caller_id=None):
        orchestrator = MealPlanOrchestrator(seeded_db, GenerationInvoker(client, settings), settings, clock=clock)
        return asyncio.run(orchestrator.generate(body, caller_id=caller_id))
    return _run


def _logs(db):
    return db.query(models.AIGenerationLog).filter_by(user_id="user-1").all()


def _remaining(db):
    profile = db.get(models.Profile, "user-1")
    db.refresh(profile)
    return profile.ai_generations_remaining


def test_successful_generation(seeded_db, run, make_profile, fake_client, plan_json):
    make_profile(remaining=5)
    client = fake_client(plan_json())

    response = run(client, _body())

    assert response.success is True
    assert response.total_meals == 21
    assert response.meals_per_day == 3
    assert response.week_start_date == "2026-10-24"
    assert response.ai_model == "gemini-2.5-flash"
    assert response.daily_calories == 2769
    assert response.nutritional_totals.calories == 2100.0
    assert response.low_confidence is False
    assert client.called_models == ["gemini-2.5-flash"]

    payload = response.model_dump(by_alias=True)
    assert payload["weeklyPlanId"] == response.weekly_plan_id
    assert set(payload["nutritionalTotals"]) == {"calories", "protein", "carbs", "fat"}

    assert _remaining(seeded_db) == 4
    [entry] = _logs(seeded_db)
    assert entry.status == STATUS_COMPLETED
    assert entry.credits_used == 1


def test_snacks_and_week_offset(run, make_profile, fake_client, plan_json):
    make_profile()
    response = run(fake_client(plan_json(5)), {
        "userProfile": dict(PROFILE), "preferences": {"includeSnacks": True}, "weekOffset": 2,
    })
    assert response.total_meals == 35
    assert response.meals_per_day == 5
    assert response.week_start_date == "2026-11-07"


def test_primary_rate_limited_then_fallback_succeeds(run, make_profile, fake_client, plan_json):
    make_profile()
    client = fake_client(_rate_limited(), plan_json())
    response = run(client, _body())
    assert client.called_models == ["gemini-2.5-flash", "gemini-2.0-flash"]
    assert response.ai_model == "gemini-2.0-flash"


def test_primary_and_fallback_failing_is_generation_failed(seeded_db, run, make_profile, fake_client):
    """429 on the primary, one fallback attempt, then a retryable AI_GENERATION_FAILED."""
    make_profile(remaining=5)
    client = fake_client(_rate_limited(), _server_error())

    with pytest.raises(AIGenerationFailedError) as exc_info:
        run(client, _body())

    assert exc_info.value.code == "AI_GENERATION_FAILED"
    assert exc_info.value.is_retryable is True
    assert len(exc_info.value.details["attempts"]) == 2
    assert client.called_models == ["gemini-2.5-flash", "gemini-2.0-flash"]
    assert seeded_db.query(models.WeeklyMealPlan).count() == 0
    assert _remaining(seeded_db) == 5
    [entry] = _logs(seeded_db)
    assert entry.status == STATUS_FAILED
    assert entry.credits_used == 0
    assert entry.error_message.startswith("AI_GENERATION_FAILED")


def test_invalid_json_persists_nothing(seeded_db, run, make_profile, fake_client):
    make_profile(remaining=5)
    client = fake_client('{"meals": [{"name": "Oats",}')

    with pytest.raises(ResponseInvalidError):
        run(client, _body())

    assert len(client.calls) == 1
    assert seeded_db.query(models.WeeklyMealPlan).count() == 0
    assert seeded_db.query(models.DailyMeal).count() == 0
    assert _remaining(seeded_db) == 5
    [entry] = _logs(seeded_db)
    assert entry.status == STATUS_FAILED
    assert "AI_RESPONSE_INVALID" in entry.error_message


def test_regenerating_a_week_replaces_it(seeded_db, run, make_profile, fake_client, plan_json):
    make_profile(remaining=5)
    first = run(fake_client(plan_json()), _body())
    second = run(fake_client(plan_json()), _body())

    assert first.weekly_plan_id == second.weekly_plan_id
    assert seeded_db.query(models.WeeklyMealPlan).count() == 1
    assert seeded_db.query(models.DailyMeal).count() == 21
    assert _remaining(seeded_db) == 3


def test_no_credits_means_no_model_call(seeded_db, run, make_profile, fake_client, plan_json):
    make_profile(remaining=0)
    client = fake_client(plan_json())

    with pytest.raises(RateLimitExceededError):
        run(client, _body())

    assert client.calls == []
    [entry] = _logs(seeded_db)
    assert entry.status == STATUS_FAILED
    assert entry.credits_used == 0


def test_unlimited_user_is_never_charged(seeded_db, run, make_profile, fake_client, plan_json):
    make_profile(role="admin", remaining=0)
    run(fake_client(plan_json()), _body())
    assert _remaining(seeded_db) == 0
    assert _logs(seeded_db)[0].credits_used == 0


def test_short_plan_is_stored_with_low_confidence(run, make_profile, fake_client, plan_json):
    make_profile()
    response = run(fake_client(plan_json(days=2)), _body())
    assert response.total_meals == 6
    assert response.low_confidence is True


def test_failure_carries_request_language(run, make_profile, fake_client):
    make_profile()
    with pytest.raises(ResponseInvalidError) as exc_info:
        run(fake_client("nope"), _body(language="ar"))
    assert exc_info.value.language == "ar"


def test_caller_must_own_the_profile(run, make_profile, fake_client, plan_json):
    make_profile()
    client = fake_client(plan_json())
    with pytest.raises(AuthError):
        run(client, _body(), caller_id="someone-else")
    assert client.calls == []


def test_missing_preferences_is_a_validation_error(seeded_db, run, make_profile, fake_client):
    make_profile()
    with pytest.raises(ValidationError):
        run(fake_client(), {"userProfile": dict(PROFILE)})
    assert _logs(seeded_db) == []


def test_incomplete_profile_is_rejected_before_quota(seeded_db, run, make_profile, fake_client):
    make_profile()
    body = _body()
    del body["userProfile"]["weight"]
    with pytest.raises(InvalidProfileError):
        run(fake_client(), body)
    assert _logs(seeded_db) == []


def test_cancellation_marks_the_attempt_failed(seeded_db, settings, clock, make_profile):
    class CancelledInvoker:
        async def invoke(self, prompt, model):
            raise asyncio.CancelledError()

    make_profile(remaining=5)
    orchestrator = MealPlanOrchestrator(seeded_db, CancelledInvoker(), settings, clock=clock)
    with pytest.raises(asyncio.CancelledError):
        asyncio.run(orchestrator.generate(_body()))

    assert seeded_db.query(models.WeeklyMealPlan).count() == 0
    assert _remaining(seeded_db) == 5
    [entry] = _logs(seeded_db)
    assert entry.status == STATUS_FAILED


@pytest.mark.parametrize("body", [
    {"userProfile": PROFILE},
    {"user_profile": PROFILE},
    {"userData": {"userProfile": PROFILE}},
    dict(PROFILE, preferences={}),
])
def test_profile_is_located_top_level_or_nested(body):
    assert locate_user_profile(body).id == "user-1"


@pytest.mark.parametrize("body", [{}, {"userProfile": {"id": ""}}, {"userProfile": {"age": 30}}, {"userData": {}}])
def test_profile_without_identifier_is_rejected(body):
    with pytest.raises(InvalidProfileError):
        locate_user_profile(body)


def test_numeric_user_id_is_accepted():
    assert locate_user_profile({"userProfile": {"user_id": 42}}).id == "42"


def test_top_level_week_offset_wins():
    prefs = parse_preferences({"preferences": {"weekOffset": 1}, "weekOffset": -1})
    assert prefs.week_offset == -1


def test_malformed_preferences_name_the_field():
    with pytest.raises(ValidationError) as exc_info:
        parse_preferences({"preferences": {"language": "fr"}})
    assert exc_info.value.details == {"field": "language"}


def _chain():
    primary = GenerationModel(model_id="primary", provider="google", display_name="Primary")
    fallback = GenerationModel(model_id="fallback", provider="google", display_name="Fallback")
    return ModelChain(primary=primary, fallback=fallback)


def test_runner_stops_after_primary_success():
    calls = []

    async def attempt(model):
        calls.append(model.model_id)
        return "ok"

    runner = FallbackRunner(_chain())
    result, model = asyncio.run(runner.run(attempt))
    assert (result, model.model_id) == ("ok", "primary")
    assert calls == ["primary"]
    assert runner.state is FallbackState.SUCCEEDED


def test_runner_tries_fallback_exactly_once():
    calls = []

    async def attempt(model):
        calls.append(model.model_id)
        raise AIRateLimitedError("throttled", model_id=model.model_id, status=429)

    runner = FallbackRunner(_chain())
    with pytest.raises(AIGenerationFailedError):
        asyncio.run(runner.run(attempt))
    assert calls == ["primary", "fallback"]
    assert runner.state is FallbackState.FAILED
    assert [a["code"] for a in runner.attempts] == ["AI_RATE_LIMITED", "AI_RATE_LIMITED"]

    with pytest.raises(RuntimeError):
        asyncio.run(runner.run(attempt))


def test_runner_does_not_retry_other_errors():
    calls = []

    async def attempt(model):
        calls.append(model.model_id)
        raise ResponseInvalidError("bad json")

    with pytest.raises(ResponseInvalidError):
        asyncio.run(FallbackRunner(_chain()).run(attempt))
    assert calls == ["primary"]


def test_failed_completion_commit_closes_the_attempt(seeded_db, run, make_profile, fake_client, plan_json, monkeypatch):
    """The entry is marked completed in memory, then the commit fails."""
    def broken_complete(self, entry, response_data=None):
        entry.status = STATUS_COMPLETED
        raise OperationalError("UPDATE ai_generation_logs", {}, Exception("database is locked"))

    monkeypatch.setattr(QuotaLedger, "complete", broken_complete)
    make_profile(remaining=5)

    with pytest.raises(DatabaseError):
        run(fake_client(plan_json()), _body())

    [entry] = _logs(seeded_db)
    seeded_db.refresh(entry)
    assert entry.status == STATUS_FAILED
    assert entry.credits_used == 0
    assert entry.error_message.startswith("DATABASE_ERROR")
    assert _remaining(seeded_db) == 5


def test_database_steps_run_off_the_event_loop(seeded_db, settings, clock, make_profile, fake_client, plan_json):
    class RecordingRouter:
        def __init__(self):
            self.threads = []

        def resolve(self, feature):
            self.threads.append(threading.get_ident())
            return ModelChain(
                primary=GenerationModel(model_id="gemini-2.5-flash", provider="google", display_name="Flash"),
                fallback=GenerationModel(model_id="gemini-2.0-flash", provider="google", display_name="Flash 2"),
            )

    make_profile()
    router = RecordingRouter()
    invoker = GenerationInvoker(fake_client(plan_json()), settings)
    orchestrator = MealPlanOrchestrator(seeded_db, invoker, settings, router=router, clock=clock)

    response = asyncio.run(orchestrator.generate(_body()))

    assert response.total_meals == 21
    assert len(router.threads) == 1
    assert router.threads[0] != threading.get_ident()
