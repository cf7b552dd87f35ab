import asyncio

from sqlalchemy.orm import sessionmaker

from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import NotFound, SyncLogStateError
from shared.store.SyncLogStoreInterface import SyncLogStoreInterface
from shared.store.models.SyncRun import SyncRun, SyncRunStatus, SyncType
from shared.store.sql.database import utcnow
from shared.store.sql.tables import SyncLogRecord


def _to_sync_run(record: SyncLogRecord) -> SyncRun:
    return SyncRun(
        id=record.id,
        type=SyncType(record.type),
        status=SyncRunStatus(record.status),
        documents_synced=record.documents_synced or 0,
        chunks_created=record.chunks_created or 0,
        error_message=record.error_message,
        started_at=record.started_at,
        completed_at=record.completed_at,
    )


class SyncLogStoreSql(SyncLogStoreInterface):
    """SQLAlchemy sync audit log stored in the sync_logs table."""

    def __init__(self, helper_config: HelperConfig, session_factory: sessionmaker):
        super().__init__(helper_config=helper_config)
        self._session_factory = session_factory

    async def create_run(self, sync_type: SyncType) -> SyncRun:
        return await asyncio.to_thread(self._create_run, sync_type)

    async def complete_run(self, run_id: str, documents_synced: int, chunks_created: int) -> SyncRun:
        return await asyncio.to_thread(
            self._finish_run, run_id, SyncRunStatus.COMPLETED, documents_synced, chunks_created, None
        )

    async def fail_run(self, run_id: str, error_message: str) -> SyncRun:
        return await asyncio.to_thread(self._finish_run, run_id, SyncRunStatus.FAILED, 0, 0, error_message)

    async def get_last_successful_run(self) -> SyncRun | None:
        return await asyncio.to_thread(self._get_last_successful_run)

    async def list_runs(self, limit: int = 20) -> list[SyncRun]:
        return await asyncio.to_thread(self._list_runs, limit)

    def _create_run(self, sync_type: SyncType) -> SyncRun:
        record = SyncLogRecord(
            type=sync_type.value,
            status=SyncRunStatus.STARTED.value,
            started_at=utcnow(),
        )
        with self._session_factory() as session:
            session.add(record)
            session.commit()
            return _to_sync_run(record)

    def _finish_run(self, run_id: str, status: SyncRunStatus, documents_synced: int, chunks_created: int, error_message: str | None) -> SyncRun:
        with self._session_factory() as session:
            record = session.get(SyncLogRecord, run_id)
            if record is None:
                raise NotFound(f"Sync run '{run_id}' does not exist.")
            if record.status != SyncRunStatus.STARTED.value:
                raise SyncLogStateError(f"Sync run '{run_id}' is already {record.status}.")
            record.status = status.value
            record.documents_synced = documents_synced
            record.chunks_created = chunks_created
            record.error_message = error_message
            record.completed_at = utcnow()
            session.commit()
            return _to_sync_run(record)

    def _get_last_successful_run(self) -> SyncRun | None:
        with self._session_factory() as session:
            record = (
                session.query(SyncLogRecord)
                .filter(SyncLogRecord.status == SyncRunStatus.COMPLETED.value)
                .order_by(SyncLogRecord.completed_at.desc())
                .first()
            )
            return _to_sync_run(record) if record else None

    def _list_runs(self, limit: int) -> list[SyncRun]:
        with self._session_factory() as session:
            records = session.query(SyncLogRecord).order_by(SyncLogRecord.started_at.desc()).limit(limit).all()
            return [_to_sync_run(r) for r in records]
