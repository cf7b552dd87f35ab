"""SyncRun model: one entry of the append-only sync audit log."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class SyncType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncRunStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncRun(BaseModel):
    """A single sync attempt.

    Created with status STARTED and moved exactly once to COMPLETED or FAILED.
    completed_at of the newest COMPLETED run is the incremental sync watermark.
    """

    id: str
    type: SyncType
    status: SyncRunStatus
    documents_synced: int = 0
    chunks_created: int = 0
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
