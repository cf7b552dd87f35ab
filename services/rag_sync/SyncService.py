"""Synchronisation service.

Keeps the vector index consistent with the document store. Each document's
title and content are embedded (chunked when long) and upserted as vector
points. Full sync re-ingests every document; incremental sync re-ingests
the documents changed since the last successful run, deleting their old
points first. Every attempt is recorded in the sync audit log.
"""

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable

from services.rag_sync.Chunker import ChunkOptions, chunk_text, needs_chunking, prepare_text
from services.rag_sync.models.SyncResult import SyncResult, SyncStatus
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPayload, VectorPoint, make_point_id
from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import ConfigurationError
from shared.store.DocumentStoreInterface import DocumentStoreInterface
from shared.store.SyncLogStoreInterface import SyncLogStoreInterface
from shared.store.models.Document import Document
from shared.store.models.SyncRun import SyncRun, SyncType
from shared.store.sql.database import utcnow

ALREADY_IN_PROGRESS = "Sync already in progress"
EPOCH = datetime(1970, 1, 1)


class SyncState:
    """Process-local single-flight flag of one SyncService instance.

    Not a distributed lock: several processes must be serialised externally.
    """

    def __init__(self) -> None:
        self._syncing_since: datetime | None = None

    @property
    def is_syncing(self) -> bool:
        return self._syncing_since is not None

    @property
    def syncing_since(self) -> datetime | None:
        return self._syncing_since

    def try_acquire(self) -> bool:
        """Set the flag. Returns False if a sync is already running."""
        if self._syncing_since is not None:
            return False
        self._syncing_since = utcnow()
        return True

    def release(self) -> None:
        self._syncing_since = None


class SyncService:
    """Orchestrates full and incremental sync from the document store to the RAG backend."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_store: DocumentStoreInterface,
        sync_log_store: SyncLogStoreInterface,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._document_store = document_store
        self._sync_log = sync_log_store
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._state = SyncState()

        self._chunk_options = ChunkOptions(
            max_chunk_size=int(helper_config.get_number_val("CHUNK_MAX_SIZE", default=1000)),
            chunk_overlap=int(helper_config.get_number_val("CHUNK_OVERLAP", default=200)),
            min_chunk_size=int(helper_config.get_number_val("CHUNK_MIN_SIZE", default=100)),
        )
        self._chunk_options.validate_sizes()
        self._max_tokens = int(helper_config.get_number_val("CHUNK_MAX_TOKENS", default=250))
        self._concurrency = max(1, int(helper_config.get_number_val("SYNC_DOCUMENT_CONCURRENCY", default=1)))
        self._full_delete_before_upsert = helper_config.get_bool_val("SYNC_FULL_DELETE_BEFORE_UPSERT", default=True)
        self._full_cleanup_orphans = helper_config.get_bool_val("SYNC_FULL_CLEANUP_ORPHANS", default=True)

    ##########################################
    ############### CORE SYNC ################
    ##########################################

    async def full_sync(self) -> SyncResult:
        """Re-ingest every document of the document store.

        Returns:
            SyncResult: The outcome. Never raises for sync failures.
        """
        return await self._run(SyncType.FULL, self._full_sync_pass)

    async def incremental_sync(self) -> SyncResult:
        """Re-ingest the documents modified since the last successful run.

        Returns:
            SyncResult: The outcome. Never raises for sync failures.
        """
        return await self._run(SyncType.INCREMENTAL, self._incremental_sync_pass)

    async def _run(self, sync_type: SyncType, sync_pass: Callable[[], Awaitable[tuple[int, int]]]) -> SyncResult:
        """Run a sync pass under the single-flight guard and record it in the audit log.

        Args:
            sync_type (SyncType): Type of the run.
            sync_pass: Coroutine function returning (documents_synced, chunks_created).

        Returns:
            SyncResult: success=False with an error when the pass failed or another sync is running.
        """
        # set before the first await
        if not self._state.try_acquire():
            self.logging.warning("%s, skipping %s sync.", ALREADY_IN_PROGRESS, sync_type.value, color="yellow")
            return SyncResult(success=False, type=sync_type, error=ALREADY_IN_PROGRESS)

        started = time.monotonic()
        try:
            try:
                run = await self._sync_log.create_run(sync_type)
            except Exception as exc:
                error_message = f"Could not record sync run: {str(exc) or type(exc).__name__}"
                self.logging.exception("%s sync not started: %s", sync_type.value.capitalize(), error_message)
                return SyncResult(
                    success=False,
                    type=sync_type,
                    duration_ms=self._elapsed_ms(started),
                    error=error_message,
                )
            try:
                documents_synced, chunks_created = await sync_pass()
                await self._sync_log.complete_run(run.id, documents_synced, chunks_created)
            except asyncio.CancelledError:
                await self._sync_log.fail_run(run.id, "Sync cancelled")
                raise
            except Exception as exc:
                error_message = str(exc) or type(exc).__name__
                self.logging.exception("%s sync failed: %s", sync_type.value.capitalize(), error_message)
                await self._sync_log.fail_run(run.id, error_message)
                return SyncResult(
                    success=False,
                    type=sync_type,
                    duration_ms=self._elapsed_ms(started),
                    error=error_message,
                )

            duration_ms = self._elapsed_ms(started)
            self.logging.info(
                "%s sync completed: %d documents, %d chunks in %dms",
                sync_type.value.capitalize(), documents_synced, chunks_created, duration_ms,
                color="green",
            )
            return SyncResult(
                success=True,
                type=sync_type,
                documents_synced=documents_synced,
                chunks_created=chunks_created,
                duration_ms=duration_ms,
            )
        finally:
            self._state.release()

    async def _full_sync_pass(self) -> tuple[int, int]:
        self.logging.info("Starting full sync...")
        documents = await self._document_store.list_documents()
        self.logging.info("Found %d documents to sync", len(documents))

        chunks_created = await self._sync_documents(documents, delete_first=self._full_delete_before_upsert)

        if self._full_cleanup_orphans:
            await self._cleanup_orphans({doc.id for doc in documents})
        return len(documents), chunks_created

    async def _incremental_sync_pass(self) -> tuple[int, int]:
        last_run = await self._sync_log.get_last_successful_run()
        since = last_run.completed_at if last_run and last_run.completed_at else EPOCH
        self.logging.info("Starting incremental sync since %s", since.isoformat())

        documents = await self._document_store.list_modified_since(since)
        self.logging.info("Found %d documents to sync", len(documents))

        # old points of a changed document may have other chunk counts and boundaries
        chunks_created = await self._sync_documents(documents, delete_first=True)
        return len(documents), chunks_created

    ##########################################
    ############ DOCUMENT SYNC ###############
    ##########################################

    async def _sync_documents(self, documents: list[Document], delete_first: bool) -> int:
        """Ingest documents sequentially, or with a bounded worker pool when configured.

        The first failure cancels the remaining work and is re-raised.

        Returns:
            int: Total number of points upserted.
        """
        if self._concurrency <= 1 or len(documents) <= 1:
            total = 0
            for doc in documents:
                total += await self.do_sync_document(doc, delete_first=delete_first)
            return total

        sem = asyncio.Semaphore(self._concurrency)

        async def worker(doc: Document) -> int:
            async with sem:
                return await self.do_sync_document(doc, delete_first=delete_first)

        tasks = [asyncio.create_task(worker(doc)) for doc in documents]
        try:
            counts = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return sum(counts)

    async def do_sync_document(self, doc: Document, delete_first: bool = False) -> int:
        """Embed a document and upsert its points in one batch.

        Embeddings are generated before the old points are deleted, so a failed
        embedding leaves the previous points of the document untouched.
        A blank document is not embedded. With delete_first its old points are
        still removed.

        Args:
            doc (Document): The document to ingest.
            delete_first (bool): Delete the document's existing points before the upsert.

        Returns:
            int: Number of points upserted.

        Raises:
            ValueError: If non-blank text produced no chunks.
            Exception: Embedding, delete and upsert failures are propagated.
        """
        text = prepare_text(doc.title, doc.content)
        if not text.strip():
            self.logging.warning("Document %s has neither title nor content, skipping.", doc.id)
            if delete_first:
                await self._rag_client.do_delete_by_document_id(doc.id)
            return 0

        points = await self._build_points(doc, text)
        if not points:
            raise ValueError(f"Document {doc.id} produced no chunks.")
        if delete_first:
            await self._rag_client.do_delete_by_document_id(doc.id)
        await self._rag_client.do_upsert_points(points)

        self.logging.debug("Synced document %s ('%s'): %d points upserted.", doc.id, doc.title[:60], len(points))
        return len(points)

    async def _build_points(self, doc: Document, text: str) -> list[VectorPoint]:
        """Create one point per chunk, or a single point for short documents."""
        points: list[VectorPoint] = []
        if not needs_chunking(text, self._max_tokens):
            vector = await self._embed(text)
            points.append(VectorPoint(
                id=make_point_id(doc.id),
                vector=vector,
                payload=VectorPayload(
                    document_id=doc.id,
                    title=doc.title,
                    category=doc.category,
                    chunk_index=0,
                    chunk_text=text,
                    is_chunk=False,
                ),
            ))
            return points

        chunks = chunk_text(text, self._chunk_options)
        self.logging.debug("Document %s split into %d chunks", doc.id, len(chunks))
        # one embedding call per chunk, in chunk order
        for chunk in chunks:
            vector = await self._embed(chunk.text)
            points.append(VectorPoint(
                id=make_point_id(doc.id, chunk.index),
                vector=vector,
                payload=VectorPayload(
                    document_id=doc.id,
                    title=doc.title,
                    category=doc.category,
                    chunk_index=chunk.index,
                    chunk_text=chunk.text,
                    is_chunk=True,
                ),
            ))
        return points

    async def _embed(self, text: str) -> list[float]:
        vector = await self._embed_client.do_embed_text(text)
        if len(vector) != self._embed_client.vector_size:
            raise ConfigurationError(
                f"Embedding has {len(vector)} dimensions, expected {self._embed_client.vector_size}."
            )
        return vector

    ##########################################
    ############ ORPHAN CLEANUP ##############
    ##########################################

    async def _cleanup_orphans(self, document_ids: set[str]) -> None:
        """Remove points whose document_id no longer exists in the document store.

        Failures are logged and do not fail the sync run.

        Args:
            document_ids (set[str]): IDs of all documents currently in the store.
        """
        self.logging.info("Starting orphan cleanup (scrolling %s for stale document IDs)...", self._rag_client.get_engine_name())
        indexed_ids: set[str] = set()
        try:
            scroll_result = await self._rag_client.do_scroll_all(
                equality_filter=None,
                with_payload=["document_id"],
                with_vector=False,
            )
        except Exception as exc:
            self.logging.error("Orphan cleanup scroll failed: %s. Skipping cleanup.", exc)
            return

        for point in scroll_result.result:
            doc_id = (point.get("payload") or {}).get("document_id")
            if doc_id is not None:
                indexed_ids.add(str(doc_id))

        orphan_ids = indexed_ids - document_ids
        if not orphan_ids:
            self.logging.info("Orphan cleanup: no stale documents found.")
            return

        removed = 0
        for orphan_id in sorted(orphan_ids):
            try:
                await self._rag_client.do_delete_by_document_id(orphan_id)
                removed += 1
            except Exception as exc:
                self.logging.error("Orphan cleanup: failed to delete points of document %s: %s", orphan_id, exc)
        self.logging.info("Orphan cleanup complete: removed points of %d of %d stale document(s).", removed, len(orphan_ids))

    ##########################################
    ################ STATUS ##################
    ##########################################

    async def get_sync_status(self) -> SyncStatus:
        """Combine the in-memory flag, the audit log and live counts of both stores.

        Returns:
            SyncStatus: The current status.
        """
        last_run, collection_info, document_count = await asyncio.gather(
            self._sync_log.get_last_successful_run(),
            self._rag_client.do_collection_info(),
            self._document_store.count(),
        )
        return SyncStatus(
            is_syncing=self._state.is_syncing,
            syncing_since=self._state.syncing_since,
            last_successful_run=last_run,
            vector_index_point_count=collection_info.points_count,
            document_count=document_count,
        )

    async def list_sync_runs(self, limit: int = 20) -> list[SyncRun]:
        """Return the most recent sync runs, newest first."""
        return await self._sync_log.list_runs(limit=limit)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
