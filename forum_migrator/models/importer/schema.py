"""
SQLAlchemy models for importer bookkeeping tables.

``migration_mappings`` is the durable association between a source-system
identifier and the identifier assigned in the target schema. Rows are
append-only: the loader never updates or deletes them.
"""

from __future__ import annotations

import enum

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column

from ..base import BaseModel, db


class MappingType(enum.IntEnum):
    """Integer discriminator stored in ``migration_mappings.type``."""

    UPLOAD = 1
    GROUP = 2
    USER = 3
    CATEGORY = 4
    TOPIC = 5
    POST = 6

    @property
    def label(self) -> str:
        return self.name.lower()


class MigrationMapping(BaseModel):
    """Original identifier to target identifier for one entity type."""

    __tablename__ = "migration_mappings"

    original_id: Mapped[str] = mapped_column(db.String(255), primary_key=True)
    type: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=False)
    target_id: Mapped[str] = mapped_column(db.String(255), nullable=False)

    __table_args__ = (Index("idx_migration_mappings_type", "type"),)

    def __repr__(self):
        return f"<MigrationMapping {self.type}:{self.original_id} -> {self.target_id}>"
