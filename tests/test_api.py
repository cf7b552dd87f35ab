"""
Tests for server/
HTTP routes, auth and error mapping with mocked services.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from server.api_server import app
from services.chat.models.ChatResponse import ChatResponse
from services.rag_query.models.RetrievedContext import AugmentedPrompt, RetrievedContext
from services.rag_sync.models.SyncResult import SyncResult, SyncStatus
from shared.clients.rag.models.SearchHit import SearchHit
from shared.helper.errors import BackendUnavailable, ConfigurationError
from shared.store.models.SyncRun import SyncType

HEADERS = {"X-Api-Key": "test-key"}


@pytest.fixture
def services(helper_config):
    sync_service = MagicMock()
    sync_service.full_sync = AsyncMock(return_value=SyncResult(
        success=True, type=SyncType.FULL, documents_synced=2, chunks_created=5, duration_ms=12,
    ))
    sync_service.incremental_sync = AsyncMock(return_value=SyncResult(
        success=False, type=SyncType.INCREMENTAL, error="Sync already in progress",
    ))
    sync_service.get_sync_status = AsyncMock(return_value=SyncStatus(
        is_syncing=False, vector_index_point_count=5, document_count=2,
    ))
    sync_service.list_sync_runs = AsyncMock(return_value=[])

    retrieval_service = MagicMock()
    context = RetrievedContext(document_id="d1", title="A", content="x", category="faq", score=0.9)
    retrieval_service.search_relevant_context = AsyncMock(return_value=[context])
    retrieval_service.debug_search = AsyncMock(return_value=[SearchHit(id="p1", score=0.5, payload={"document_id": "d1"})])
    retrieval_service.get_augmented_prompt = AsyncMock(return_value=AugmentedPrompt(prompt="wrapped", contexts=[context]))

    chat_service = MagicMock()
    chat_service.generate_response = AsyncMock(return_value=ChatResponse(response="hi", rag_enabled=True))

    app.state.helper_config = helper_config
    app.state.sync_service = sync_service
    app.state.retrieval_service = retrieval_service
    app.state.chat_service = chat_service
    return sync_service, retrieval_service, chat_service


@pytest.fixture
def client(services) -> TestClient:
    # lifespan is not entered, app.state is set by the services fixture
    return TestClient(app)


class TestAuth:
    """X-Api-Key header."""

    def test_missing_key(self, client):
        assert client.post("/rag/sync").status_code == 401

    def test_wrong_key(self, client):
        assert client.post("/rag/search", json={"query": "q"}, headers={"X-Api-Key": "nope"}).status_code == 401


class TestSyncRoutes:
    """Sync endpoints."""

    def test_full_sync(self, client, services):
        response = client.post("/rag/sync", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["documents_synced"] == 2
        assert response.json()["type"] == "full"
        services[0].full_sync.assert_awaited_once()

    def test_incremental_sync_conflict_is_a_result(self, client):
        response = client.post("/rag/sync/incremental", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "Sync already in progress"

    def test_status(self, client):
        response = client.get("/rag/sync/status", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["vector_index_point_count"] == 5

    def test_runs_limit(self, client, services):
        response = client.get("/rag/sync/runs", params={"limit": 5}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == []
        services[0].list_sync_runs.assert_awaited_once_with(limit=5)


class TestQueryRoutes:
    """Search and augmentation endpoints."""

    def test_search(self, client, services):
        response = client.post("/rag/search", json={"query": "q", "limit": 4, "category": "faq"}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["query"] == "q"
        assert body["results_count"] == 1
        assert body["results"][0]["document_id"] == "d1"
        services[1].search_relevant_context.assert_awaited_once_with("q", limit=4, category="faq")

    def test_search_requires_query(self, client):
        assert client.post("/rag/search", json={"query": ""}, headers=HEADERS).status_code == 422

    def test_debug_search(self, client):
        response = client.post("/rag/search/debug", json={"query": "q"}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["results"][0]["id"] == "p1"

    def test_augment(self, client):
        response = client.post("/rag/augment", json={"query": "q"}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["prompt"] == "wrapped"

    def test_backend_unavailable_maps_to_503(self, client, services):
        services[1].debug_search.side_effect = BackendUnavailable("qdrant down")

        response = client.post("/rag/search/debug", json={"query": "q"}, headers=HEADERS)

        assert response.status_code == 503
        assert response.json()["detail"] == "qdrant down"

    def test_configuration_error_maps_to_500(self, client, services):
        services[1].debug_search.side_effect = ConfigurationError("bad size")

        response = client.post("/rag/search/debug", json={"query": "q"}, headers=HEADERS)

        assert response.status_code == 500


class TestChatRoute:
    """Chat endpoint."""

    def test_chat_with_history(self, client, services):
        response = client.post(
            "/chat",
            json={"message": "hello", "history": [{"role": "user", "content": "before"}]},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["response"] == "hi"
        args, kwargs = services[2].generate_response.await_args
        assert args == ("hello",)
        assert kwargs["history"][0].content == "before"

    def test_invalid_role(self, client):
        response = client.post(
            "/chat",
            json={"message": "hello", "history": [{"role": "system", "content": "x"}]},
            headers=HEADERS,
        )
        assert response.status_code == 422
