from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from sqlalchemy.orm import Session, Query
from sqlalchemy import desc, asc
from pydantic import BaseModel
import math

ModelType = TypeVar("ModelType")
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


def paginate(query: Query, skip: int, limit: int) -> Dict[str, Any]:
    """Run ``query`` for one page and return the standard pagination envelope."""
    total = query.count()
    items = query.offset(skip).limit(limit).all()

    pages = math.ceil(total / limit) if limit > 0 else 1
    page = (skip // limit) + 1 if limit > 0 else 1

    return {
        "items": items,
        "total": total,
        "page": page,
        "pages": pages,
        "per_page": limit,
        "has_next": page < pages,
        "has_prev": page > 1
    }


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Per-model data access.

    Writes are flushed, never committed: the calling service owns the
    transaction so several repository calls commit or roll back together.
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def _query(self, db: Session, filters: Optional[Dict[str, Any]] = None) -> Query:
        # None values and unknown columns are ignored; lists become IN (...)
        query = db.query(self.model)
        for field, value in (filters or {}).items():
            if value is None or not hasattr(self.model, field):
                continue
            column = getattr(self.model, field)
            query = query.filter(column.in_(value) if isinstance(value, (list, tuple)) else column == value)
        return query

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return self._query(db, {"id": id}).first()

    def get_for_update(self, db: Session, id: Any) -> Optional[ModelType]:
        """Get a single record by ID, row-locked until the transaction ends"""
        return self._query(db, {"id": id}).with_for_update(of=self.model).first()

    def exists(self, db: Session, id: Any) -> bool:
        return self.get(db, id) is not None

    def get_multi(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: str = "id",
        sort_order: str = "asc"
    ) -> Dict[str, Any]:
        """One page of records, filtered and sorted"""
        query = self._query(db, filters)
        if hasattr(self.model, sort_by):
            direction = desc if sort_order.lower() == "desc" else asc
            query = query.order_by(direction(getattr(self.model, sort_by)))
        return paginate(query, skip, limit)

    def get_by_field(self, db: Session, field: str, value: Any) -> Optional[ModelType]:
        return self._query(db, {field: value}).first()

    def get_multi_by_field(self, db: Session, field: str, value: Any) -> List[ModelType]:
        """All records with a field value, oldest first"""
        return self._query(db, {field: value}).order_by(asc(self.model.id)).all()

    def count(self, db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
        return self._query(db, filters).count()

    def create(self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        data = obj_in.model_dump() if isinstance(obj_in, BaseModel) else obj_in
        db_obj = self.model(**data)
        db.add(db_obj)
        db.flush()
        return db_obj
