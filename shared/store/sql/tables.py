"""ORM tables of the document store and the sync audit log."""

import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from shared.store.sql.database import Base, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class DocumentRecord(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=True, index=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class SyncLogRecord(Base):
    __tablename__ = "sync_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    documents_synced = Column(Integer, default=0, nullable=False)
    chunks_created = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
