"""Database package: ORM models, schema setup and model catalogue seeding."""

from .database import init_db, seed_model_catalogue, get_write_session, get_read_session
from . import models

__all__ = ["init_db", "seed_model_catalogue", "get_write_session", "get_read_session", "models"]
