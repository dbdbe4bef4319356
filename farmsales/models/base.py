"""
Base SQLAlchemy model with common fields and utilities.
"""
from sqlalchemy import Column, Integer, DateTime, String
from sqlalchemy.orm import declarative_base, declared_attr
from sqlalchemy.sql import func
import uuid

Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields and methods for all models.

    ``version`` is registered as the mapper's ``version_id_col``: every UPDATE
    is issued as ``... WHERE id = :id AND version = :seen`` and bumps the
    counter, so a row changed by another writer since it was read raises
    ``StaleDataError`` on flush instead of being silently overwritten.
    """
    __abstract__ = True

    # Primary key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # UUID for external references
    uuid = Column(String(36), unique=True, index=True, default=lambda: str(uuid.uuid4()))

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Version control for optimistic locking
    version = Column(Integer, nullable=False)

    @declared_attr
    def __mapper_args__(cls):
        return {"version_id_col": cls.__table__.c.version}

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id}, uuid={self.uuid})>"
