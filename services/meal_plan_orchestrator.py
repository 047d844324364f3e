"""Weekly meal plan generation pipeline.

Runs the steps of one request strictly in order: locate the profile, compute
the calorie target, pre-check quota, open the audit entry, compile the
prompt, resolve the model chain, invoke (primary then at most one fallback),
validate, persist and close the audit entry. Every collaborator that touches
the database is built around the request's own session.
"""

import asyncio
import enum
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import (
    AIGenerationFailedError,
    AIInvocationError,
    AppException,
    AuthError,
    DatabaseError,
    InvalidProfileError,
    UnknownError,
    ValidationError,
)
from core.logger import get_logger
from core.messages import normalize_language
from schemas.generation_schema import GenerationModel, GenerationPreferences, MealPlanGenerationResponse, ModelChain
from schemas.meal_schema import NutritionalTotals
from schemas.user_schema import UserProfile
from services.generation_invoker import GenerationInvoker
from services.model_router import MEAL_PLAN_FEATURE, ModelRouter, SqlModelConfigSource
from services.nutrition_calculator import nutrition_calculator
from services.plan_repository import PlanRepository
from services.prompt_compiler import life_phase_context, prompt_compiler
from services.quota_ledger import MEAL_PLAN_GENERATION, QuotaLedger
from services.response_validator import ResponseValidator

logger = get_logger("services.meal_plan_orchestrator")

PROFILE_KEYS = ("userProfile", "user_profile")


def _has_identifier(candidate: Any) -> bool:
    if not isinstance(candidate, dict):
        return False
    value = candidate.get("id", candidate.get("user_id", candidate.get("userId")))
    return value is not None and str(value).strip() != ""


def locate_user_profile(body: Dict[str, Any]) -> UserProfile:
    """Find and parse the user profile carried by a request body.

    Looked up top-level (`userProfile` / `user_profile`), nested under
    `userData.userProfile`, or the body itself when it carries an id.

    Raises:
        InvalidProfileError: If no object with a non-empty id is found, or
            it does not parse as a profile.
    """
    if not isinstance(body, dict):
        raise InvalidProfileError("Request body is not an object")

    candidates = [body.get(key) for key in PROFILE_KEYS]
    user_data = body.get("userData")
    if isinstance(user_data, dict):
        candidates += [user_data.get(key) for key in PROFILE_KEYS]
    candidates.append(body)

    for candidate in candidates:
        if _has_identifier(candidate):
            try:
                return UserProfile.model_validate(candidate)
            except PydanticValidationError as exc:
                field = ".".join(str(loc) for loc in exc.errors()[0]["loc"]) if exc.errors() else None
                raise InvalidProfileError(f"User profile is malformed: {exc.error_count()} error(s)", field=field)
    raise InvalidProfileError("No user profile with a non-empty id was found in the request", field="userProfile")


def parse_preferences(body: Dict[str, Any]) -> GenerationPreferences:
    """Parse the preferences object; a top-level `weekOffset` wins over the nested one.

    Raises:
        ValidationError: If preferences are absent or malformed.
    """
    raw = body.get("preferences")
    if not isinstance(raw, dict):
        raise ValidationError("Preferences are required", field="preferences")
    raw = dict(raw)
    for key in ("weekOffset", "week_offset"):
        if key in body and body[key] is not None:
            raw["weekOffset"] = body[key]
            raw.pop("week_offset", None)
            break
    try:
        return GenerationPreferences.model_validate(raw)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(loc) for loc in first.get("loc", ())) or None
        raise ValidationError(f"Invalid preferences: {first.get('msg', 'malformed')}", field=field)


def requested_language(body: Any) -> str:
    """Best-effort language of a request, usable before preferences are validated."""
    if isinstance(body, dict) and isinstance(body.get("preferences"), dict):
        return normalize_language(body["preferences"].get("language"))
    return "en"


class FallbackState(enum.Enum):
    TRY_PRIMARY = "try_primary"
    TRY_FALLBACK = "try_fallback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FallbackRunner:
    """Runs one attempt against the primary model and at most one against the fallback.

    Transitions:
        TRY_PRIMARY --ok--> SUCCEEDED
        TRY_PRIMARY --retryable invoker failure--> TRY_FALLBACK
        TRY_PRIMARY --other failure--> FAILED (error propagates)
        TRY_FALLBACK --ok--> SUCCEEDED
        TRY_FALLBACK --any invoker failure--> FAILED (AIGenerationFailedError)
    """

    def __init__(self, chain: ModelChain):
        self.chain = chain
        self.state = FallbackState.TRY_PRIMARY
        self.attempts: List[Dict[str, Any]] = []

    async def _attempt(self, attempt: Callable[[GenerationModel], Awaitable[str]], model: GenerationModel) -> str:
        try:
            result = await attempt(model)
        except AIInvocationError as exc:
            self.attempts.append({"model_id": model.model_id, "code": exc.code, "message": exc.message})
            raise
        self.attempts.append({"model_id": model.model_id, "code": None, "message": "ok"})
        self.state = FallbackState.SUCCEEDED
        return result

    async def run(self, attempt: Callable[[GenerationModel], Awaitable[str]]) -> Tuple[str, GenerationModel]:
        """Drive the attempts.

        Returns:
            (result, model that produced it).

        Raises:
            AIGenerationFailedError: Both models failed.
            AIInvocationError: The primary failed with a non-retryable error.
        """
        if self.state is not FallbackState.TRY_PRIMARY:
            raise RuntimeError(f"FallbackRunner already used (state={self.state.value})")

        try:
            return await self._attempt(attempt, self.chain.primary), self.chain.primary
        except AIInvocationError as exc:
            if not exc.is_retryable:
                self.state = FallbackState.FAILED
                raise
            logger.warning("Primary model %s failed with %s; trying fallback %s",
                           self.chain.primary.model_id, exc.code, self.chain.fallback.model_id)

        self.state = FallbackState.TRY_FALLBACK
        try:
            return await self._attempt(attempt, self.chain.fallback), self.chain.fallback
        except AIInvocationError as exc:
            self.state = FallbackState.FAILED
            logger.error("Fallback model %s failed with %s", self.chain.fallback.model_id, exc.code)
            raise AIGenerationFailedError("Primary and fallback models both failed", attempts=self.attempts)


class MealPlanOrchestrator:
    """Pipeline entry point for one generation request."""

    def __init__(
        self,
        session: Session,
        invoker: GenerationInvoker,
        settings=None,
        router: Optional[ModelRouter] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize the orchestrator.

        Args:
            session: Write session of the current request.
            invoker: Model invoker; shared clients are fine since it keeps no
                per-request state.
            settings: Optional settings override.
            router: Optional model router; defaults to one reading the
                `ai_models` tables through `session`.
            clock: UTC clock used for quota windows and week anchoring.
        """
        self.settings = settings or get_settings()
        self.session = session
        self.invoker = invoker
        self.clock = clock
        self.router = router or ModelRouter(SqlModelConfigSource(session), self.settings)
        self.ledger = QuotaLedger(session, self.settings, clock=clock)
        self.plans = PlanRepository(session, self.settings, today=lambda: clock().date())
        self.validator = ResponseValidator(self.settings.MEAL_COUNT_CONFIDENCE_THRESHOLD)

    def _open_attempt(self, user_id: str, prompt_data: Dict[str, Any]):
        account = self.ledger.check(user_id, MEAL_PLAN_GENERATION, prompt_data)
        return self.ledger.start(account, MEAL_PLAN_GENERATION, prompt_data)

    async def generate(self, body: Dict[str, Any], caller_id: Optional[str] = None) -> MealPlanGenerationResponse:
        """Generate and store a weekly plan.

        Session-bound steps run in the threadpool; only the model call is
        awaited on the event loop.

        Args:
            body: Request body `{userProfile, preferences, weekOffset?}`.
            caller_id: Authenticated user id, when the transport provides one.

        Returns:
            `MealPlanGenerationResponse` describing the stored plan.

        Raises:
            AppException: Any classified failure, with `language` set from
                the request. The audit entry, once started, is always closed
                as failed first.
        """
        language = requested_language(body)
        entry = None
        try:
            profile = locate_user_profile(body)
            if caller_id is not None and str(caller_id) != profile.id:
                raise AuthError("Caller does not own the requested profile")
            preferences = parse_preferences(body)
            language = preferences.language

            target = nutrition_calculator.calculate_target(profile)
            prompt_data = {
                "preferences": preferences.model_dump(),
                "daily_calories": target.daily_calories,
            }
            entry = await run_in_threadpool(self._open_attempt, profile.id, prompt_data)

            prompt = prompt_compiler.compile(profile, preferences, target)
            chain = await run_in_threadpool(self.router.resolve, MEAL_PLAN_FEATURE)

            runner = FallbackRunner(chain)
            raw_text, model = await runner.run(lambda m: self.invoker.invoke(prompt.text, m))

            report = self.validator.validate(raw_text, prompt.meals_per_day, prompt.days)
            snapshot = dict(prompt_data, meal_schedule=list(prompt.schedule), model_id=model.model_id)
            persisted = await run_in_threadpool(
                self.plans.replace_week,
                profile.id, preferences.week_offset, report.meals, snapshot, life_phase_context(profile),
            )

            await run_in_threadpool(self.ledger.complete, entry, {
                "weekly_plan_id": persisted.weekly_plan_id,
                "model_id": model.model_id,
                "total_meals": persisted.meals_written,
                "expected_meals": report.expected_count,
                "low_confidence": report.low_confidence,
                "attempts": runner.attempts,
            })
        except asyncio.CancelledError:
            logger.warning("Generation cancelled for log entry %s", entry.id if entry else None)
            if entry is not None:
                self.ledger.fail(entry, "Generation cancelled")
            raise
        except AppException as exc:
            exc.language = language
            logger.warning("Generation failed with %s: %s", exc.code, exc.message)
            if entry is not None:
                await run_in_threadpool(self.ledger.fail, entry, f"{exc.code}: {exc.message}")
            raise
        except SQLAlchemyError as exc:
            logger.error("Database failure during generation: %s", exc, exc_info=True)
            if entry is not None:
                await run_in_threadpool(self.ledger.fail, entry, f"DATABASE_ERROR: {exc}")
            error = DatabaseError("Database failure during generation")
            error.language = language
            raise error from exc
        except Exception as exc:
            logger.error("Unexpected failure during generation: %s", exc, exc_info=True)
            if entry is not None:
                await run_in_threadpool(self.ledger.fail, entry, f"UNKNOWN_ERROR: {type(exc).__name__}: {exc}")
            error = UnknownError("Unexpected failure during generation")
            error.language = language
            raise error from exc

        logger.info(
            "Generated plan %s for user %s: %s meals with %s",
            persisted.weekly_plan_id, profile.id, persisted.meals_written, model.model_id,
        )
        return MealPlanGenerationResponse(
            weekly_plan_id=persisted.weekly_plan_id,
            total_meals=persisted.meals_written,
            meals_per_day=prompt.meals_per_day,
            week_start_date=persisted.week_start_date.isoformat(),
            ai_model=model.model_id,
            daily_calories=target.daily_calories,
            nutritional_totals=NutritionalTotals(**persisted.totals),
            low_confidence=report.low_confidence,
        )
