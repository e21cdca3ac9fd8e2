from sqlalchemy.orm import Session
from typing import Generic, Type, TypeVar, List, Optional, Dict, Any
from homekeeper.models.base import BaseModel

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations."""

    def __init__(self, model: Type[T], db: Session):
        """
        Initialize repository with model and database session.

        Args:
            model: The SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    def get(self, id: int) -> Optional[T]:
        """Get a single record by ID."""
        return self.db.query(self.model).filter(self.model.id == id).first()

    def get_many(self, ids: List[int]) -> List[T]:
        """Get every record whose ID is in ``ids`` (missing IDs are skipped)."""
        if not ids:
            return []
        return self.db.query(self.model).filter(self.model.id.in_(ids)).all()

    def add(self, obj: T) -> T:
        """Stage a new record in the current transaction without committing."""
        self.db.add(obj)
        self.db.flush()
        return obj

    def remove(self, obj: T) -> None:
        """Stage deletion of a record without committing."""
        self.db.delete(obj)
        self.db.flush()

    def create(self, obj: T) -> T:
        """Create a new record."""
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def update(self, id: int, data: Dict[str, Any]) -> Optional[T]:
        """Update a record by ID."""
        obj = self.get(id)
        if not obj:
            return None

        for key, value in data.items():
            if hasattr(obj, key):
                setattr(obj, key, value)

        self.db.commit()
        self.db.refresh(obj)
        return obj

    def exists(self, id: int) -> bool:
        """Check if a record exists by ID."""
        return self.db.query(self.model).filter(self.model.id == id).count() > 0
