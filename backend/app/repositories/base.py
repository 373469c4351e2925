"""Shared primary-key lookups for grid repositories.

Subclasses name their model, the error raised when a row is missing and
any relationships that should arrive with the row in the same SELECT.
"""

from typing import Generic, Optional, Tuple, Type, TypeVar

from sqlalchemy.orm import Query, Session, joinedload

from ..database import Base
from ..exceptions import GridfillException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Integer-keyed lookups for one SQLAlchemy model.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., Cell)
        not_found_error: Exception class raised by get_by_id, built from the id
        eager_load:      Relationship names joined into every lookup
    """

    model_class: Type[ModelT]
    not_found_error: Type[GridfillException]
    eager_load: Tuple[str, ...] = ()

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        query = self.db.query(self.model_class)
        for name in self.eager_load:
            query = query.options(joinedload(getattr(self.model_class, name)))
        return query

    def get_by_id(self, entity_id: int) -> ModelT:
        """Row by primary key. Raises not_found_error if missing."""
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: int) -> Optional[ModelT]:
        return self._base_query().filter(self.model_class.id == entity_id).first()
