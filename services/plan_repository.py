"""Persistence of generated weekly plans.

A week is identified by (user_id, week_start_date). Regenerating a week
replaces its meals: old rows are deleted and the new set inserted in the same
transaction, so readers see either the old plan or the new one. For stores
configured without multi-statement transactions (`PLAN_REPLACE_ATOMIC=false`)
the delete is committed on its own, and an insert failure afterwards is
reported as `MealPlanEmptyError` instead of being hidden.
"""

import json
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import DatabaseError, MealPlanEmptyError, NotFoundError
from core.logger import get_logger
from core.repository import BaseRepository
from database import models
from schemas.meal_schema import ValidatedMeal
from services.prompt_compiler import PLAN_DAYS

logger = get_logger("services.plan_repository")


def cycle_anchor_day(today: date, anchor_weekday: int) -> date:
    """Next occurrence of `anchor_weekday` (Monday=0), today included."""
    return today + timedelta(days=(anchor_weekday - today.weekday()) % 7)


def week_start_for_offset(week_offset: int, today: date, anchor_weekday: int) -> date:
    return cycle_anchor_day(today, anchor_weekday) + timedelta(days=7 * week_offset)


def daily_average_totals(meals: Sequence[ValidatedMeal], days: int = PLAN_DAYS) -> Dict[str, float]:
    """Average per-day calories and macros of a plan.

    Each macro is summed over every meal and divided by `days` (7), not by
    the number of days that actually have meals, then rounded to 1 decimal.
    """
    totals = {"calories": 0.0, "protein": 0.0, "carbs": 0.0, "fat": 0.0}
    for meal in meals:
        for key in totals:
            totals[key] += getattr(meal, key)
    return {key: round(value / days, 1) for key, value in totals.items()}


@dataclass(frozen=True)
class PersistedPlan:
    weekly_plan_id: str
    week_start_date: date
    meals_written: int
    totals: Dict[str, float]


def _meal_rows(weekly_plan_id: str, meals: Sequence[ValidatedMeal]) -> List[models.DailyMeal]:
    slots = defaultdict(int)
    rows = []
    for meal in meals:
        slot = slots[meal.day_number]
        slots[meal.day_number] += 1
        rows.append(models.DailyMeal(
            id=models.new_id(),
            weekly_plan_id=weekly_plan_id,
            day_number=meal.day_number,
            meal_type=meal.meal_type,
            slot_index=slot,
            name=meal.name,
            calories=meal.calories,
            protein=meal.protein,
            carbs=meal.carbs,
            fat=meal.fat,
            ingredients=json.dumps([i.model_dump() for i in meal.ingredients], ensure_ascii=False),
            instructions=json.dumps(list(meal.instructions), ensure_ascii=False),
            prep_time=meal.prep_time,
            cook_time=meal.cook_time,
            servings=meal.servings,
            youtube_search_term=meal.youtube_search_term,
            alternatives=json.dumps(list(meal.alternatives), ensure_ascii=False),
        ))
    return rows


class PlanRepository:
    """Reads and replaces weekly plans for one request's session."""

    def __init__(self, session: Session, settings=None, today: Callable[[], date] = date.today):
        self.session = session
        self.settings = settings or get_settings()
        self.today = today
        self.plans = BaseRepository(models.WeeklyMealPlan, session)
        self.meals = BaseRepository(models.DailyMeal, session)

    def week_start_date(self, week_offset: int) -> date:
        return week_start_for_offset(week_offset, self.today(), self.settings.WEEK_ANCHOR_WEEKDAY)

    def _upsert_plan(self, user_id: str, week_start: date, totals: Dict[str, float],
                     generation_prompt: Dict[str, Any], life_phase: Dict[str, Any]) -> models.WeeklyMealPlan:
        plan = self.plans.find_one(user_id=user_id, week_start_date=week_start)
        if plan is None:
            plan = self.plans.add(models.WeeklyMealPlan(id=models.new_id(), user_id=user_id, week_start_date=week_start))
        else:
            deleted = self.meals.delete_where(weekly_plan_id=plan.id)
            logger.info("Deleted %s existing meals of plan %s", deleted, plan.id)
        plan.total_calories = totals["calories"]
        plan.total_protein = totals["protein"]
        plan.total_carbs = totals["carbs"]
        plan.total_fat = totals["fat"]
        plan.generation_prompt = json.dumps(generation_prompt, default=str, ensure_ascii=False)
        plan.life_phase_context = json.dumps(life_phase, default=str, ensure_ascii=False)
        return plan

    def replace_week(
        self,
        user_id: str,
        week_offset: int,
        meals: Sequence[ValidatedMeal],
        generation_prompt: Dict[str, Any],
        life_phase: Optional[Dict[str, Any]] = None,
    ) -> PersistedPlan:
        """Store `meals` as the user's plan for the week at `week_offset`.

        Raises:
            DatabaseError: Nothing was changed.
            MealPlanEmptyError: Non-atomic mode only; the old meals are gone
                and the new ones were not written.
        """
        week_start = self.week_start_date(week_offset)
        totals = daily_average_totals(meals)
        life_phase = life_phase or {}

        if not self.settings.PLAN_REPLACE_ATOMIC:
            return self._replace_week_in_steps(user_id, week_start, meals, totals, generation_prompt, life_phase)

        try:
            plan = self._upsert_plan(user_id, week_start, totals, generation_prompt, life_phase)
            rows = self.meals.add_many(_meal_rows(plan.id, meals))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Replacing plan for user %s week %s failed: %s", user_id, week_start, exc, exc_info=True)
            raise DatabaseError("Could not store the weekly plan", operation="replace_week")

        logger.info("Stored plan %s for user %s week %s with %s meals", plan.id, user_id, week_start, len(rows))
        return PersistedPlan(plan.id, week_start, len(rows), totals)

    def _replace_week_in_steps(self, user_id, week_start, meals, totals, generation_prompt, life_phase) -> PersistedPlan:
        try:
            plan = self._upsert_plan(user_id, week_start, totals, generation_prompt, life_phase)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Preparing plan for user %s week %s failed: %s", user_id, week_start, exc, exc_info=True)
            raise DatabaseError("Could not store the weekly plan", operation="replace_week")

        try:
            rows = self.meals.add_many(_meal_rows(plan.id, meals))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Plan %s has no meals after a failed insert: %s", plan.id, exc, exc_info=True)
            raise MealPlanEmptyError("Meals were deleted but the new meals could not be inserted", plan.id)

        logger.info("Stored plan %s for user %s week %s with %s meals", plan.id, user_id, week_start, len(rows))
        return PersistedPlan(plan.id, week_start, len(rows), totals)

    def get_week(self, user_id: str, week_offset: int = 0) -> Tuple[models.WeeklyMealPlan, List[models.DailyMeal]]:
        """Load a stored week and its meals in day/slot order.

        Raises:
            NotFoundError: If no plan exists for that week.
        """
        week_start = self.week_start_date(week_offset)
        plan = self.plans.find_one(user_id=user_id, week_start_date=week_start)
        if plan is None:
            raise NotFoundError("WeeklyMealPlan", f"{user_id}/{week_start.isoformat()}")
        meals = self.meals.find_all(
            models.DailyMeal.weekly_plan_id == plan.id,
            order_by=[models.DailyMeal.day_number, models.DailyMeal.slot_index],
        )
        return plan, meals
