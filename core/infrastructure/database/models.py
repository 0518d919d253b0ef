"""
SQLAlchemy ORM Models.

Maps engine records to database tables.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Integer, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# RECORD MODEL
# =============================================================================

class RecordModel(Base):
    """
    Generic engine record.

    One row per (collection, record_id). The record body is stored as JSON
    so workflows, events, sync operations and webhooks share one table.
    """

    __tablename__ = "pinkflow_records"

    # Surrogate key keeps insertion order for listings
    id = Column(Integer, primary_key=True, autoincrement=True)

    collection = Column(String(64), nullable=False)
    record_id = Column(String(255), nullable=False)

    data = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("collection", "record_id", name="uq_pinkflow_records_collection_record"),
        Index("ix_pinkflow_records_collection", "collection"),
    )
