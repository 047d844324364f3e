"""Model routing for AI features.

Administrators assign a primary and fallback model per feature; a single
catalogue model can be flagged as the system default. Resolution is a pure
function of a configuration snapshot, and `ModelRouter` takes a fresh
snapshot on every call so admin changes apply to the next request without a
redeploy.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from core.config import get_settings
from core.logger import get_logger
from core.repository import BaseRepository
from database import models
from schemas.generation_schema import GenerationModel, ModelChain

logger = get_logger("services.model_router")

MEAL_PLAN_FEATURE = "meal_plan"


@dataclass(frozen=True)
class ModelConfigSnapshot:
    """Routing configuration for one feature at one point in time."""

    feature_active: bool = False
    primary: Optional[GenerationModel] = None
    fallback: Optional[GenerationModel] = None
    default: Optional[GenerationModel] = None


def _usable(model: Optional[GenerationModel]) -> Optional[GenerationModel]:
    return model if model is not None and model.is_active else None


def resolve_model_chain(snapshot: ModelConfigSnapshot, constant_model: GenerationModel) -> ModelChain:
    """Resolve the primary/fallback pair from a snapshot.

    Order per slot: the feature's own active assignment, then the active
    system default, then `constant_model`. An inactive or missing feature
    mapping means both slots use the default.
    """
    last_resort = _usable(snapshot.default) or constant_model
    if not snapshot.feature_active:
        return ModelChain(primary=last_resort, fallback=last_resort)
    primary = _usable(snapshot.primary) or last_resort
    fallback = _usable(snapshot.fallback) or last_resort
    return ModelChain(primary=primary, fallback=fallback)


def to_generation_model(row: Optional[models.AIModel]) -> Optional[GenerationModel]:
    if row is None:
        return None
    return GenerationModel(
        model_id=row.model_id,
        provider=row.provider,
        display_name=row.name,
        is_active=bool(row.is_active),
        is_default=bool(row.is_default),
    )


class SqlModelConfigSource:
    """Reads routing configuration from the `ai_models` tables."""

    def __init__(self, session: Session):
        self.models = BaseRepository(models.AIModel, session)
        self.features = BaseRepository(models.AIFeatureModel, session)

    def snapshot(self, feature_name: str) -> ModelConfigSnapshot:
        mappings = self.features.find_all(
            models.AIFeatureModel.feature_name == feature_name,
            models.AIFeatureModel.is_active.is_(True),
            order_by=[models.AIFeatureModel.updated_at.desc()],
        )
        defaults = self.models.find_all(
            models.AIModel.is_default.is_(True),
            models.AIModel.is_active.is_(True),
            order_by=[models.AIModel.updated_at.desc()],
        )
        default = to_generation_model(defaults[0]) if defaults else None
        if not mappings:
            return ModelConfigSnapshot(feature_active=False, default=default)

        mapping = mappings[0]
        primary = self.models.get_by_id(mapping.primary_model_id) if mapping.primary_model_id else None
        fallback = self.models.get_by_id(mapping.fallback_model_id) if mapping.fallback_model_id else None
        return ModelConfigSnapshot(
            feature_active=True,
            primary=to_generation_model(primary),
            fallback=to_generation_model(fallback),
            default=default,
        )


class ModelRouter:
    """Resolves the model chain for a feature against live configuration."""

    def __init__(self, source, settings=None):
        """Initialize the router.

        Args:
            source: Object with a `snapshot(feature_name)` method returning
                a `ModelConfigSnapshot`.
            settings: Optional settings; the constant fallback model comes
                from `DEFAULT_MODEL_ID`.
        """
        self.source = source
        self.settings = settings or get_settings()

    @property
    def constant_model(self) -> GenerationModel:
        return GenerationModel(
            model_id=self.settings.DEFAULT_MODEL_ID,
            provider=self.settings.DEFAULT_MODEL_PROVIDER,
            display_name=self.settings.DEFAULT_MODEL_ID,
            is_active=True,
            is_default=True,
        )

    def resolve(self, feature_name: str = MEAL_PLAN_FEATURE) -> ModelChain:
        snapshot = self.source.snapshot(feature_name)
        chain = resolve_model_chain(snapshot, self.constant_model)
        logger.info(
            "Model chain for %s: primary=%s fallback=%s (feature mapping %s)",
            feature_name,
            chain.primary.model_id,
            chain.fallback.model_id,
            "active" if snapshot.feature_active else "absent",
        )
        return chain
