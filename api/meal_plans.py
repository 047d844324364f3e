"""Meal plan API router.

Exposes generation of a weekly plan and read-back of a stored week. Failures
are raised as `AppException`s and rendered by the registered handlers.
"""

import json
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Query
from sqlalchemy.orm import Session

from core.logger import get_logger
from database.deps import get_db_read, get_db_write
from schemas import MealDetail, MealPlanGenerationResponse, NutritionalTotals, WeeklyPlanResponse
from services.generation_invoker import GenerationInvoker
from services.meal_plan_orchestrator import MealPlanOrchestrator
from services.plan_repository import PlanRepository

logger = get_logger("api.meal_plans")
router = APIRouter(prefix="/api/meal-plans", tags=["meal-plans"])


@lru_cache()
def get_generation_invoker() -> GenerationInvoker:
    """Process-wide invoker; it holds the genai client and no request state."""
    return GenerationInvoker()


def _load_json(value: Optional[str], default):
    if not value:
        return default
    try:
        return json.loads(value)
    except ValueError:
        logger.warning("Stored JSON column could not be decoded")
        return default


@router.post("/generate", response_model=MealPlanGenerationResponse, response_model_by_alias=True)
async def generate_meal_plan(
    body: Dict[str, Any] = Body(...),
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db_write),
    invoker: GenerationInvoker = Depends(get_generation_invoker),
):
    """Generate and store a 7-day meal plan for the user in the body.

    Args:
        body: `{userProfile, preferences, weekOffset?}`.
        x_user_id: Optional authenticated caller id; must match the profile.
        db: Write session injected by dependency.
        invoker: Model invoker injected by dependency.

    Returns:
        `MealPlanGenerationResponse` in camelCase.
    """
    orchestrator = MealPlanOrchestrator(db, invoker)
    return await orchestrator.generate(body, caller_id=x_user_id)


@router.get("/{user_id}", response_model=WeeklyPlanResponse, response_model_by_alias=True)
def get_weekly_plan(
    user_id: str,
    week_offset: int = Query(0, ge=-52, le=52),
    db: Session = Depends(get_db_read),
):
    """Return a stored week with its meals ordered by day and slot.

    Raises:
        NotFoundError: If no plan exists for that week.
    """
    plan, meals = PlanRepository(db).get_week(user_id, week_offset)
    logger.info("Read plan %s for user %s with %s meals", plan.id, user_id, len(meals))
    return WeeklyPlanResponse(
        id=plan.id,
        user_id=plan.user_id,
        week_start_date=plan.week_start_date.isoformat(),
        nutritional_totals=NutritionalTotals(
            calories=plan.total_calories or 0,
            protein=plan.total_protein or 0,
            carbs=plan.total_carbs or 0,
            fat=plan.total_fat or 0,
        ),
        total_meals=len(meals),
        meals=[
            MealDetail(
                id=m.id,
                day_number=m.day_number,
                meal_type=m.meal_type,
                name=m.name,
                calories=m.calories or 0,
                protein=m.protein or 0,
                carbs=m.carbs or 0,
                fat=m.fat or 0,
                ingredients=_load_json(m.ingredients, []),
                instructions=_load_json(m.instructions, []),
                prep_time=m.prep_time or 0,
                cook_time=m.cook_time or 0,
                servings=m.servings or 0,
                youtube_search_term=m.youtube_search_term,
                alternatives=_load_json(m.alternatives, []),
            )
            for m in meals
        ],
        generation_prompt=_load_json(plan.generation_prompt, None),
    )
