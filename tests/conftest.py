"""
Pytest configuration for the rag_sync_bridge test suite.

Configures:
- pytest-asyncio for async test support
- environment for the client constructors
- in-memory SQLite stores
- in-process fakes for the embedding and vector index backends
"""
import logging
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from shared.clients.rag.models.SearchHit import CollectionInfo, ScrollResult, SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import BackendUnavailable
from shared.logging.logging_setup import ColorLogger
from shared.store.sql.DocumentStoreSql import DocumentStoreSql
from shared.store.sql.SyncLogStoreSql import SyncLogStoreSql
from shared.store.sql.database import create_db_engine, create_session_factory, init_db

pytest_plugins = ["pytest_asyncio"]

TEST_VECTOR_SIZE = 4
TEST_API_KEY = "test-key"


@pytest.fixture(autouse=True)
def env(monkeypatch):
    """Minimal backend configuration; no request ever leaves the process."""
    monkeypatch.setenv("EMBED_ENGINE", "ollama")
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama.test")
    monkeypatch.setenv("EMBED_VECTOR_SIZE", str(TEST_VECTOR_SIZE))
    monkeypatch.setenv("RAG_ENGINE", "qdrant")
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", "http://qdrant.test")
    monkeypatch.setenv("LLM_ENGINE", "ollama")
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama.test")
    monkeypatch.setenv("API_SERVER_API_KEY", TEST_API_KEY)
    for key in (
        "CHUNK_MAX_SIZE", "CHUNK_OVERLAP", "CHUNK_MIN_SIZE", "CHUNK_MAX_TOKENS",
        "SYNC_DOCUMENT_CONCURRENCY", "SYNC_FULL_DELETE_BEFORE_UPSERT", "SYNC_FULL_CLEANUP_ORPHANS",
        "RAG_CONTEXT_LIMIT", "CHAT_SYSTEM_PROMPT", "CHAT_RAG_SYSTEM_PROMPT",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("rag_sync_bridge.tests")))


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def document_store(helper_config, session_factory) -> DocumentStoreSql:
    return DocumentStoreSql(helper_config=helper_config, session_factory=session_factory)


@pytest.fixture
def sync_log_store(helper_config, session_factory) -> SyncLogStoreSql:
    return SyncLogStoreSql(helper_config=helper_config, session_factory=session_factory)


class FakeEmbedClient:
    """Deterministic embedder. Texts containing fail_on raise BackendUnavailable."""

    def __init__(self, vector_size: int = TEST_VECTOR_SIZE):
        self.vector_size = vector_size
        self.embed_distance = "Cosine"
        self.texts: list[str] = []
        self.fail_on: str | None = None
        self.output_size: int | None = None

    def get_engine_name(self) -> str:
        return "fake"

    async def do_embed_text(self, text: str) -> list[float]:
        self.texts.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise BackendUnavailable("embedding backend down")
        size = self.output_size or self.vector_size
        return [float(len(text) % 7)] + [1.0] * (size - 1)


class FakeRAGClient:
    """In-memory vector index keyed by logical point id. Records every mutating call."""

    def __init__(self):
        self.points: dict[str, VectorPoint] = {}
        self.calls: list[tuple[str, object]] = []
        self.search_hits: list[SearchHit] = []
        self.search_calls: list[dict] = []

    def get_engine_name(self) -> str:
        return "fake"

    async def do_upsert_points(self, points: list[VectorPoint]) -> None:
        self.calls.append(("upsert", [p.id for p in points]))
        for point in points:
            self.points[point.id] = point

    async def do_delete_by_document_id(self, document_id: str) -> None:
        self.calls.append(("delete", document_id))
        self.points = {k: p for k, p in self.points.items() if p.payload.document_id != document_id}

    async def do_scroll_all(self, equality_filter, with_payload, with_vector) -> ScrollResult:
        return ScrollResult(
            result=[{"id": p.id, "payload": {"document_id": p.payload.document_id}} for p in self.points.values()]
        )

    async def do_collection_info(self) -> CollectionInfo:
        return CollectionInfo(points_count=len(self.points), vector_size=TEST_VECTOR_SIZE, distance="Cosine")

    async def do_search(self, vector, limit=5, equality_filter=None) -> list[SearchHit]:
        self.search_calls.append({"vector": vector, "limit": limit, "equality_filter": equality_filter})
        return self.search_hits[:limit]

    def document_ids(self) -> set[str]:
        return {p.payload.document_id for p in self.points.values()}


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


@pytest.fixture
def rag_client() -> FakeRAGClient:
    return FakeRAGClient()
