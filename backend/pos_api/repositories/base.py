"""
Repository base: lookups by id through a query that already carries the
eager loads each aggregate needs.
"""

from abc import ABC, abstractmethod
from typing import Generic, Sequence, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT")


class BaseRepository(ABC, Generic[ModelT]):
    """Subclasses name the model and build the eager-loading base query."""

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]: ...

    @abstractmethod
    def _base_query(self) -> Select: ...

    def find_by_id(self, entity_id: int) -> ModelT | None:
        return self._db.scalar(self._base_query().where(self.model.id == entity_id))

    def find_by_ids(self, entity_ids: list[int]) -> Sequence[ModelT]:
        """Rows for the given ids, in id order."""
        if not entity_ids:
            return []
        query = (
            self._base_query()
            .where(self.model.id.in_(entity_ids))
            .order_by(self.model.id)
        )
        return self._db.execute(query).scalars().unique().all()
