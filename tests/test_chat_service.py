"""
Tests for services/chat/ChatService.py
Response generation with and without retrieval.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from services.chat.ChatService import (
    DEFAULT_RAG_SYSTEM_PROMPT,
    DEFAULT_SYSTEM_PROMPT,
    ChatService,
    RetrievalDisabled,
    RetrievalEnabled,
)
from services.chat.models.ChatResponse import ChatMessage
from services.rag_query.models.RetrievedContext import AugmentedPrompt, RetrievedContext
from shared.helper.errors import BackendUnavailable


@pytest.fixture
def llm_client():
    client = MagicMock()
    client.chat_model = "llama3.2:1b"
    client.do_chat = AsyncMock(return_value="an answer")
    return client


@pytest.fixture
def retrieval_service():
    service = MagicMock()
    service.get_augmented_prompt = AsyncMock(return_value=AugmentedPrompt(prompt="plain", contexts=[]))
    return service


def _sent_messages(llm_client) -> list[dict]:
    return llm_client.do_chat.await_args.args[0]


class TestRetrievalDisabled:
    """Chat without document context."""

    async def test_never_touches_retrieval(self, helper_config, llm_client, retrieval_service):
        service = ChatService(helper_config, llm_client, RetrievalDisabled())

        response = await service.generate_response("hello")

        retrieval_service.get_augmented_prompt.assert_not_awaited()
        assert response.response == "an answer"
        assert response.rag_enabled is False
        assert response.rag_contexts == []
        assert _sent_messages(llm_client) == [
            {"role": "system", "content": DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": "hello"},
        ]

    async def test_history_is_rendered(self, helper_config, llm_client):
        service = ChatService(helper_config, llm_client, RetrievalDisabled())
        history = [
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello there"),
        ]

        await service.generate_response("and now?", history=history)

        assert _sent_messages(llm_client)[1]["content"] == (
            "Previous conversation:\nUser: hi\nAssistant: hello there\n\nCurrent question/request: and now?"
        )

    async def test_configured_system_prompt(self, monkeypatch, helper_config, llm_client):
        monkeypatch.setenv("CHAT_SYSTEM_PROMPT", "Be brief.")
        service = ChatService(helper_config, llm_client, RetrievalDisabled())

        await service.generate_response("hello")

        assert _sent_messages(llm_client)[0]["content"] == "Be brief."


class TestRetrievalEnabled:
    """Chat with document context."""

    async def test_uses_augmented_prompt_when_contexts_found(self, helper_config, llm_client, retrieval_service):
        context = RetrievedContext(document_id="d1", title="A", content="x", score=0.9)
        retrieval_service.get_augmented_prompt.return_value = AugmentedPrompt(prompt="<context>...", contexts=[context])
        service = ChatService(helper_config, llm_client, RetrievalEnabled(retrieval_service))

        response = await service.generate_response("question")

        assert response.rag_enabled is True
        assert response.rag_contexts == [context]
        assert _sent_messages(llm_client) == [
            {"role": "system", "content": DEFAULT_RAG_SYSTEM_PROMPT},
            {"role": "user", "content": "<context>..."},
        ]

    async def test_plain_prompt_without_contexts(self, helper_config, llm_client, retrieval_service):
        service = ChatService(helper_config, llm_client, RetrievalEnabled(retrieval_service))

        response = await service.generate_response("question")

        assert response.rag_enabled is True
        assert response.rag_contexts == []
        assert _sent_messages(llm_client)[0]["content"] == DEFAULT_SYSTEM_PROMPT
        assert _sent_messages(llm_client)[1]["content"] == "question"

    async def test_retrieval_failure_falls_back(self, helper_config, llm_client, retrieval_service):
        retrieval_service.get_augmented_prompt.side_effect = RuntimeError("index down")
        service = ChatService(helper_config, llm_client, RetrievalEnabled(retrieval_service))

        response = await service.generate_response("question")

        assert response.response == "an answer"
        assert _sent_messages(llm_client)[1]["content"] == "question"

    async def test_llm_failure_propagates(self, helper_config, llm_client, retrieval_service):
        llm_client.do_chat.side_effect = BackendUnavailable("llm down")
        service = ChatService(helper_config, llm_client, RetrievalEnabled(retrieval_service))

        with pytest.raises(BackendUnavailable):
            await service.generate_response("question")
