"""Repository pattern base class for database operations.

Unlike a commit-per-call helper, these methods only flush: the caller owns
the transaction boundary, which lets the plan repository replace a week's
meals inside a single commit.
"""

from sqlalchemy.orm import Session
from typing import TypeVar, Generic, Type, Optional, List, Any
from database.models import Base

T = TypeVar('T', bound=Base)


class BaseRepository(Generic[T]):
    """Generic repository for common database operations.

    Attributes:
        model: SQLAlchemy model class to operate on.
        session: Database session for executing queries.
    """

    def __init__(self, model: Type[T], session: Session):
        """Initialize repository with model and session.

        Args:
            model: SQLAlchemy model class.
            session: Database session.
        """
        self.model = model
        self.session = session

    def add(self, obj: T) -> T:
        """Add and flush a new object without committing.

        Args:
            obj: Model instance to persist.

        Returns:
            The pending object.
        """
        self.session.add(obj)
        self.session.flush()
        return obj

    def add_many(self, objects: List[T]) -> List[T]:
        """Add and flush multiple objects without committing.

        Args:
            objects: List of model instances to persist.

        Returns:
            The same list of pending objects.
        """
        self.session.add_all(objects)
        self.session.flush()
        return objects

    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve an object by its primary key.

        Args:
            id: Primary key value.

        Returns:
            Model instance or None if not found.
        """
        return self.session.get(self.model, id)

    def find_one(self, **filters) -> Optional[T]:
        """Return the first object matching all keyword equality filters."""
        return self.session.query(self.model).filter_by(**filters).first()

    def find_all(self, *criteria, order_by=None) -> List[T]:
        """Return all objects matching SQL expression criteria."""
        query = self.session.query(self.model).filter(*criteria)
        if order_by is not None:
            query = query.order_by(*order_by)
        return query.all()

    def count_where(self, *criteria) -> int:
        """Count objects matching SQL expression criteria."""
        return self.session.query(self.model).filter(*criteria).count()

    def delete_where(self, **filters) -> int:
        """Bulk-delete objects matching keyword equality filters.

        Returns:
            Number of rows deleted.
        """
        return self.session.query(self.model).filter_by(**filters).delete(synchronize_session=False)
