# contract_runtime/core/database/models.py
"""
SQLAlchemy ORM model for stored resource records.

Each resource gets its own SQLite database holding a single `resources`
table. Records are kept as opaque JSON text: the engine never maps resource
fields to columns, so any specification can be served without migrations.

Columns:
    seq         autoincrement insertion counter (listing tie-breaker)
    id          record id, unique within the resource
    created_at  copy of the record's createdAt, indexed for ordering
    data        the full record serialized as JSON
"""

from sqlalchemy import Column, Index, Integer, String, Text

from .base import Base


class ResourceRecord(Base):
    """One stored record of a resource."""

    __tablename__ = "resources"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(255), nullable=False, unique=True)
    created_at = Column(String(64), nullable=False)
    data = Column(Text, nullable=False)

    __table_args__ = (
        Index("ix_resources_created_seq", "created_at", "seq"),
    )

    def __repr__(self) -> str:
        return f"<ResourceRecord(id={self.id}, created_at={self.created_at})>"
