from datetime import datetime

from pydantic import BaseModel

from shared.store.models.SyncRun import SyncRun, SyncType


class SyncResult(BaseModel):
    """Outcome of one sync call.

    success=False with documents_synced=0 covers both a failed run and a call
    rejected because another sync was in progress; only the former has a
    SyncRun in the audit log.
    """

    success: bool
    type: SyncType
    documents_synced: int = 0
    chunks_created: int = 0
    duration_ms: int = 0
    error: str | None = None


class SyncStatus(BaseModel):
    """Snapshot of the sync state and both stores."""

    is_syncing: bool
    syncing_since: datetime | None = None
    last_successful_run: SyncRun | None = None
    vector_index_point_count: int
    document_count: int
