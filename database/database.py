"""Database helpers: engines, session factories and DB initialization.

Provides read/write session factories and an `init_db` helper that creates
tables and seeds the model catalogue when it is empty.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from core.config import get_settings
from core.logger import get_logger
from data.ai_models_seed import DEFAULT_AI_MODELS, DEFAULT_FEATURE_MODELS
from .models import Base, AIModel, AIFeatureModel

logger = get_logger("database")
settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_timeout": settings.DATABASE_POOL_TIMEOUT_SECONDS}


# Read/Write partitioning pattern
# In production, set WRITE_DATABASE_URL and READ_DATABASE_URL to different DB instances.
write_engine = create_engine(settings.WRITE_DATABASE_URL, **_engine_kwargs(settings.WRITE_DATABASE_URL))
read_engine = create_engine(settings.read_database_url, **_engine_kwargs(settings.read_database_url))

WriteSessionLocal = sessionmaker(bind=write_engine, autoflush=False, expire_on_commit=False)
ReadSessionLocal = sessionmaker(bind=read_engine, autoflush=False, expire_on_commit=False)


def seed_model_catalogue(session: Session) -> int:
    """Insert the default models and feature assignments if none exist.

    Returns:
        Number of models inserted (0 when the catalogue was already populated).
    """
    if session.query(AIModel).count() > 0:
        return 0
    by_model_id = {}
    for item in DEFAULT_AI_MODELS:
        model = AIModel(**item)
        session.add(model)
        by_model_id[item["model_id"]] = model
    session.flush()
    for feature in DEFAULT_FEATURE_MODELS:
        primary = by_model_id.get(feature["primary"])
        fallback = by_model_id.get(feature["fallback"])
        session.add(AIFeatureModel(
            feature_name=feature["feature_name"],
            primary_model_id=primary.id if primary else None,
            fallback_model_id=fallback.id if fallback else None,
            is_active=True,
        ))
    session.commit()
    logger.info("Seeded %s AI models", len(by_model_id))
    return len(by_model_id)


def init_db(engine=None):
    """Initialize database schema and seed the model catalogue.

    Args:
        engine: Optional engine to initialize; defaults to the write engine.
    """
    engine = engine or write_engine
    Base.metadata.create_all(bind=engine)
    session = Session(bind=engine)
    try:
        seed_model_catalogue(session)
    finally:
        session.close()


# Convenience generators for dependency injection
def get_write_session():
    """Yield a write-enabled SQLAlchemy session for the request scope."""
    db = WriteSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_read_session():
    """Yield a read-only SQLAlchemy session for the request scope.

    Used for read endpoints where routing reads to a replica may be desired.
    """
    db = ReadSessionLocal()
    try:
        yield db
    finally:
        db.close()
