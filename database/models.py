"""SQLAlchemy ORM models for the meal plan generation service.

Tables fall into three groups: account/quota state (`profiles`,
`subscriptions`, `ai_generation_logs`), administrator-managed model routing
(`ai_models`, `ai_feature_models`) and the generated plans
(`weekly_meal_plans`, `daily_meals`). Identifiers are UUID strings generated
by the application, so retried inserts can reuse them. List and snapshot
fields are stored as JSON-encoded text.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    """Return a fresh client-side identifier."""
    return str(uuid.uuid4())


class Profile(Base):
    """Account state consulted by the quota ledger.

    Only the fields the pipeline needs live here; the rest of the user
    profile is owned by the surrounding application and arrives in requests.
    """

    __tablename__ = "profiles"
    id = Column(String(36), primary_key=True, default=new_id)
    role = Column(String, nullable=False, default="user")
    ai_generations_remaining = Column(Integer, nullable=False, default=5)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Subscription(Base):
    """Paid subscription; an active, unexpired row grants unlimited generations."""

    __tablename__ = "subscriptions"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="active")
    current_period_end = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class AIModel(Base):
    """A model the administrators can route features to."""

    __tablename__ = "ai_models"
    id = Column(String(36), primary_key=True, default=new_id)
    model_id = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AIFeatureModel(Base):
    """Primary/fallback model assignment for one feature (e.g. 'meal_plan')."""

    __tablename__ = "ai_feature_models"
    id = Column(String(36), primary_key=True, default=new_id)
    feature_name = Column(String, nullable=False, index=True)
    primary_model_id = Column(String(36), ForeignKey("ai_models.id"), nullable=True)
    fallback_model_id = Column(String(36), ForeignKey("ai_models.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WeeklyMealPlan(Base):
    """One generated week for a user; regeneration replaces its meals."""

    __tablename__ = "weekly_meal_plans"
    __table_args__ = (UniqueConstraint("user_id", "week_start_date", name="uq_weekly_plan_user_week"),)
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    week_start_date = Column(Date, nullable=False)
    total_calories = Column(Float)
    total_protein = Column(Float)
    total_carbs = Column(Float)
    total_fat = Column(Float)
    generation_prompt = Column(Text, nullable=True)
    life_phase_context = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class DailyMeal(Base):
    """A single meal slot within a weekly plan."""

    __tablename__ = "daily_meals"
    id = Column(String(36), primary_key=True, default=new_id)
    weekly_plan_id = Column(String(36), ForeignKey("weekly_meal_plans.id"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    meal_type = Column(String, nullable=False)
    slot_index = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    calories = Column(Float, nullable=False, default=0)
    protein = Column(Float, nullable=False, default=0)
    carbs = Column(Float, nullable=False, default=0)
    fat = Column(Float, nullable=False, default=0)
    ingredients = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    prep_time = Column(Float, nullable=False, default=0)
    cook_time = Column(Float, nullable=False, default=0)
    servings = Column(Float, nullable=False, default=0)
    youtube_search_term = Column(String, nullable=True)
    alternatives = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class AIGenerationLog(Base):
    """Append-only audit entry for one generation attempt."""

    __tablename__ = "ai_generation_logs"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    generation_type = Column(String, nullable=False)
    prompt_data = Column(Text, nullable=True)
    response_data = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="started")  # started | completed | failed
    credits_used = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
