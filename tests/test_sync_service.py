"""
Tests for services/rag_sync/SyncService.py
Sync orchestration - full and incremental sync into the vector index.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

import services.rag_sync.SyncService as sync_module
from services.rag_sync.SyncService import ALREADY_IN_PROGRESS, SyncService, SyncState
from shared.helper.errors import ConfigurationError
from shared.store.models.SyncRun import SyncRunStatus, SyncType


def _long_content(sentences: int = 100) -> str:
    return "".join(f"Sentence number {i} is here. " for i in range(sentences))


@pytest.fixture
def sync_service(helper_config, document_store, sync_log_store, rag_client, embed_client) -> SyncService:
    return SyncService(
        helper_config=helper_config,
        document_store=document_store,
        sync_log_store=sync_log_store,
        rag_client=rag_client,
        embed_client=embed_client,
    )


class TestSyncState:
    """Single-flight flag."""

    def test_acquire_release(self):
        state = SyncState()
        assert state.try_acquire() is True
        assert state.is_syncing
        assert state.syncing_since is not None
        assert state.try_acquire() is False
        state.release()
        assert not state.is_syncing
        assert state.try_acquire() is True


class TestFullSync:
    """Full sync of every document."""

    async def test_short_document_single_point(self, sync_service, document_store, rag_client, embed_client):
        await document_store.add_document("T", "short", document_id="d1")

        result = await sync_service.full_sync()

        assert result.success is True
        assert result.type == SyncType.FULL
        assert (result.documents_synced, result.chunks_created) == (1, 1)
        assert list(rag_client.points) == ["d1"]
        point = rag_client.points["d1"]
        assert point.payload.is_chunk is False
        assert point.payload.chunk_index == 0
        assert point.payload.chunk_text == "T\n\nshort"
        assert embed_client.texts == ["T\n\nshort"]

    async def test_long_document_is_chunked(self, sync_service, document_store, rag_client):
        await document_store.add_document("Long", _long_content(), category="faq", document_id="d1")

        result = await sync_service.full_sync()

        assert result.success is True
        assert result.chunks_created > 1
        assert result.chunks_created == len(rag_client.points)
        assert sorted(rag_client.points) == sorted(f"d1_chunk_{i}" for i in range(result.chunks_created))
        for point in rag_client.points.values():
            assert point.payload.is_chunk is True
            assert point.payload.category == "faq"
            assert len(point.vector) == 4

    async def test_one_upsert_per_document(self, sync_service, document_store, rag_client):
        await document_store.add_document("A", _long_content(), document_id="a")
        await document_store.add_document("B", "short", document_id="b")

        await sync_service.full_sync()

        upserts = [call for call in rag_client.calls if call[0] == "upsert"]
        assert len(upserts) == 2

    async def test_run_is_recorded(self, sync_service, document_store, sync_log_store):
        await document_store.add_document("T", "short", document_id="d1")

        await sync_service.full_sync()

        runs = await sync_log_store.list_runs()
        assert len(runs) == 1
        assert runs[0].status == SyncRunStatus.COMPLETED
        assert runs[0].type == SyncType.FULL
        assert (runs[0].documents_synced, runs[0].chunks_created) == (1, 1)
        assert runs[0].completed_at is not None

    async def test_shrunk_document_loses_stale_chunks(self, sync_service, document_store, rag_client):
        await document_store.add_document("T", _long_content(), document_id="d1")
        await sync_service.full_sync()
        assert len(rag_client.points) > 1

        await document_store.update_document("d1", content="now short")
        await sync_service.full_sync()

        assert list(rag_client.points) == ["d1"]

    async def test_orphaned_points_are_removed(self, sync_service, document_store, rag_client):
        await document_store.add_document("Gone", "soon deleted", document_id="gone")
        await document_store.add_document("Kept", "stays", document_id="kept")
        await sync_service.full_sync()

        await document_store.delete_document("gone")
        await sync_service.full_sync()

        assert rag_client.document_ids() == {"kept"}

    async def test_orphan_cleanup_can_be_disabled(self, monkeypatch, helper_config, document_store, sync_log_store, rag_client, embed_client):
        monkeypatch.setenv("SYNC_FULL_CLEANUP_ORPHANS", "false")
        service = SyncService(helper_config, document_store, sync_log_store, rag_client, embed_client)
        await document_store.add_document("Gone", "soon deleted", document_id="gone")
        await service.full_sync()
        await document_store.delete_document("gone")

        await service.full_sync()

        assert rag_client.document_ids() == {"gone"}

    async def test_blank_document_is_skipped(self, sync_service, document_store, rag_client, embed_client):
        await document_store.add_document("", "   ", document_id="blank")

        result = await sync_service.full_sync()

        assert result.success is True
        assert result.chunks_created == 0
        assert embed_client.texts == []
        assert rag_client.points == {}

    async def test_emptied_document_loses_its_points(self, sync_service, document_store, rag_client, embed_client):
        await document_store.add_document("A", _long_content(), document_id="a")
        await document_store.add_document("B", "beta", document_id="b")
        await sync_service.full_sync()

        await document_store.update_document("a", title="", content="   ")
        result = await sync_service.incremental_sync()

        assert result.success is True
        assert result.chunks_created == 0
        assert rag_client.document_ids() == {"b"}

    async def test_concurrent_workers_give_same_result(self, monkeypatch, helper_config, document_store, sync_log_store, rag_client, embed_client):
        monkeypatch.setenv("SYNC_DOCUMENT_CONCURRENCY", "3")
        service = SyncService(helper_config, document_store, sync_log_store, rag_client, embed_client)
        for i in range(5):
            await document_store.add_document(f"Doc {i}", _long_content(40), document_id=f"d{i}")

        result = await service.full_sync()

        assert result.success is True
        assert result.documents_synced == 5
        assert result.chunks_created == len(rag_client.points)
        assert rag_client.document_ids() == {f"d{i}" for i in range(5)}


class TestIncrementalSync:
    """Incremental sync since the last successful run."""

    async def test_without_previous_run_syncs_everything(self, sync_service, document_store, rag_client):
        await document_store.add_document("A", "alpha", document_id="a")
        await document_store.add_document("B", "beta", document_id="b")

        result = await sync_service.incremental_sync()

        assert result.success is True
        assert result.type == SyncType.INCREMENTAL
        assert result.documents_synced == 2
        assert rag_client.document_ids() == {"a", "b"}

    async def test_only_changed_documents_are_synced(self, sync_service, document_store, rag_client):
        await document_store.add_document("A", "alpha", document_id="a")
        await document_store.add_document("B", "beta", document_id="b")
        await sync_service.full_sync()
        rag_client.calls.clear()

        await document_store.update_document("b", content="beta, revised")
        await document_store.add_document("C", "gamma", document_id="c")
        result = await sync_service.incremental_sync()

        assert result.success is True
        assert result.documents_synced == 2
        touched = {call[1] for call in rag_client.calls if call[0] == "delete"}
        assert touched == {"b", "c"}
        assert rag_client.points["b"].payload.chunk_text == "B\n\nbeta, revised"

    async def test_delete_is_always_followed_by_upsert_of_same_document(self, sync_service, document_store, rag_client):
        await document_store.add_document("A", _long_content(), document_id="a")
        await document_store.add_document("B", "beta", document_id="b")

        await sync_service.incremental_sync()

        calls = rag_client.calls
        for position, (kind, value) in enumerate(calls):
            if kind == "delete":
                next_kind, next_ids = calls[position + 1]
                assert next_kind == "upsert"
                assert all(point_id == value or point_id.startswith(f"{value}_chunk_") for point_id in next_ids)

    async def test_nothing_changed(self, sync_service, document_store, rag_client):
        await document_store.add_document("A", "alpha", document_id="a")
        await sync_service.full_sync()
        rag_client.calls.clear()

        result = await sync_service.incremental_sync()

        assert result.success is True
        assert result.documents_synced == 0
        assert rag_client.calls == []


class TestFailures:
    """Failed runs and the single-flight guard."""

    async def test_embedding_failure_fails_run(self, sync_service, document_store, sync_log_store, embed_client):
        await document_store.add_document("A", "alpha", document_id="a")
        embed_client.fail_on = "alpha"

        result = await sync_service.full_sync()

        assert result.success is False
        assert (result.documents_synced, result.chunks_created) == (0, 0)
        assert "embedding backend down" in result.error
        runs = await sync_log_store.list_runs()
        assert runs[0].status == SyncRunStatus.FAILED
        assert runs[0].error_message == result.error

    async def test_failure_releases_guard(self, sync_service, document_store, embed_client):
        await document_store.add_document("A", "alpha", document_id="a")
        embed_client.fail_on = "alpha"
        await sync_service.full_sync()

        embed_client.fail_on = None
        result = await sync_service.full_sync()

        assert result.success is True
        status = await sync_service.get_sync_status()
        assert status.is_syncing is False

    async def test_failed_embedding_keeps_previous_points(self, sync_service, document_store, rag_client, embed_client):
        await document_store.add_document("A", "alpha", document_id="a")
        await sync_service.full_sync()

        await document_store.update_document("a", content="alpha, changed")
        embed_client.fail_on = "changed"
        await sync_service.incremental_sync()

        assert "a" in rag_client.points
        assert ("delete", "a") not in rag_client.calls[1:]

    async def test_wrong_vector_dimension_fails_run(self, sync_service, document_store, embed_client):
        await document_store.add_document("A", "alpha", document_id="a")
        embed_client.output_size = 3

        result = await sync_service.full_sync()

        assert result.success is False
        assert "dimensions" in result.error

    async def test_concurrent_call_is_rejected(self, sync_service, document_store, sync_log_store):
        await document_store.add_document("A", "alpha", document_id="a")

        first, second = await asyncio.gather(sync_service.full_sync(), sync_service.full_sync())

        assert first.success is True
        assert second.success is False
        assert second.error == ALREADY_IN_PROGRESS
        assert second.documents_synced == 0
        assert len(await sync_log_store.list_runs()) == 1

    async def test_incremental_rejected_during_full(self, sync_service, document_store, sync_log_store):
        await document_store.add_document("A", "alpha", document_id="a")

        full, incremental = await asyncio.gather(sync_service.full_sync(), sync_service.incremental_sync())

        assert full.success is True
        assert incremental.error == ALREADY_IN_PROGRESS
        assert incremental.type == SyncType.INCREMENTAL


    async def test_min_size_above_max_size_is_rejected(self, monkeypatch, helper_config, document_store, sync_log_store, rag_client, embed_client):
        monkeypatch.setenv("CHUNK_MAX_SIZE", "100")
        monkeypatch.setenv("CHUNK_OVERLAP", "10")
        monkeypatch.setenv("CHUNK_MIN_SIZE", "200")

        with pytest.raises(ConfigurationError):
            SyncService(helper_config, document_store, sync_log_store, rag_client, embed_client)

    async def test_no_chunks_fails_run_and_keeps_points(self, monkeypatch, sync_service, document_store, rag_client):
        await document_store.add_document("A", _long_content(), document_id="a")
        await sync_service.full_sync()
        points_before = dict(rag_client.points)

        await document_store.update_document("a", content=_long_content(120))
        monkeypatch.setattr(sync_module, "chunk_text", lambda text, options: [])
        result = await sync_service.incremental_sync()

        assert result.success is False
        assert "produced no chunks" in result.error
        assert rag_client.points == points_before

    async def test_sync_log_failure_is_a_result(self, sync_service, document_store, sync_log_store, rag_client):
        await document_store.add_document("A", "alpha", document_id="a")
        create_run = sync_log_store.create_run
        sync_log_store.create_run = AsyncMock(side_effect=RuntimeError("database is locked"))

        result = await sync_service.full_sync()

        assert result.success is False
        assert result.type == SyncType.FULL
        assert "database is locked" in result.error
        assert rag_client.points == {}

        sync_log_store.create_run = create_run
        result = await sync_service.incremental_sync()
        assert result.success is True


class TestStatus:
    """Status and run listing."""

    async def test_status_after_sync(self, sync_service, document_store, rag_client):
        await document_store.add_document("A", "alpha", document_id="a")
        await document_store.add_document("B", _long_content(), document_id="b")
        await sync_service.full_sync()

        status = await sync_service.get_sync_status()

        assert status.is_syncing is False
        assert status.syncing_since is None
        assert status.document_count == 2
        assert status.vector_index_point_count == len(rag_client.points)
        assert status.last_successful_run is not None
        assert status.last_successful_run.type == SyncType.FULL

    async def test_status_without_runs(self, sync_service):
        status = await sync_service.get_sync_status()
        assert status.last_successful_run is None
        assert status.document_count == 0

    async def test_list_sync_runs_newest_first(self, sync_service):
        await sync_service.full_sync()
        await sync_service.incremental_sync()

        runs = await sync_service.list_sync_runs(limit=10)

        assert [run.type for run in runs] == [SyncType.INCREMENTAL, SyncType.FULL]
