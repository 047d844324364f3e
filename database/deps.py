"""Session dependencies for the API routers.

Generation writes plans, quota and audit rows, so it always takes a write
session; plan read-back and credit lookups can be served from a replica.
"""

from .database import get_read_session, get_write_session


def get_db_write():
    """Yield a write-capable DB session for FastAPI dependency injection."""
    yield from get_write_session()


def get_db_read():
    """Yield a read-only DB session for FastAPI dependency injection."""
    yield from get_read_session()
