from dataclasses import dataclass

from services.chat.models.ChatResponse import ChatMessage, ChatResponse
from services.rag_query.RetrievalService import RetrievalService
from services.rag_query.models.RetrievedContext import RetrievedContext
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig

DEFAULT_SYSTEM_PROMPT = """You are an AI assistant for a document collection. Your role is to help users find and understand information in these documents.

Guidelines:
- Be friendly, professional and helpful
- Answer questions based on the information provided to you
- If you don't have specific information about something, say so politely
- Keep responses concise but informative
- Never make up information about the documents

When no specific context is provided, introduce yourself and offer to help with questions about the documents."""

DEFAULT_RAG_SYSTEM_PROMPT = """You are an AI assistant for a document collection. Your role is to answer questions using the provided context.

Guidelines:
- Be friendly, professional and helpful
- PRIORITIZE answering based on the provided context but do not mention it to the user
- If the context contains relevant information, use it to form your response
- If the context doesn't contain relevant information for the question, say so and give a general helpful response
- Keep responses concise but informative
- Cite the source title when using specific information from the context
- Never make up information, only use what's in the provided context"""


@dataclass(frozen=True)
class RetrievalDisabled:
    """Chat without document context."""


@dataclass(frozen=True)
class RetrievalEnabled:
    """Chat with context from the given retrieval service."""

    retrieval_service: RetrievalService


RetrievalMode = RetrievalDisabled | RetrievalEnabled


class ChatService:
    """Generates LLM answers, augmented with retrieved document context when enabled."""

    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        retrieval_mode: RetrievalMode,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._llm_client = llm_client
        self._retrieval_mode = retrieval_mode
        self.system_prompt = helper_config.get_string_val("CHAT_SYSTEM_PROMPT", default=DEFAULT_SYSTEM_PROMPT)
        self.rag_system_prompt = helper_config.get_string_val("CHAT_RAG_SYSTEM_PROMPT", default=DEFAULT_RAG_SYSTEM_PROMPT)

        self.logging.info("Chat model: %s, RAG enabled: %s", llm_client.chat_model, self.rag_enabled)

    @property
    def rag_enabled(self) -> bool:
        return isinstance(self._retrieval_mode, RetrievalEnabled)

    async def generate_response(self, message: str, history: list[ChatMessage] | None = None) -> ChatResponse:
        """Answer a message, using retrieved context when any is found.

        Args:
            message (str): The current user message.
            history (list[ChatMessage] | None): Earlier turns of the conversation, oldest first.

        Returns:
            ChatResponse: The answer and the contexts it was based on.

        Raises:
            BackendUnavailable: If the LLM backend fails.
        """
        history = history or []
        self.logging.info("Generating response for: '%s' (%d history messages)", message[:50], len(history))

        prompt = message
        system_prompt = self.system_prompt
        contexts: list[RetrievedContext] = []

        if isinstance(self._retrieval_mode, RetrievalEnabled):
            try:
                augmented = await self._retrieval_mode.retrieval_service.get_augmented_prompt(message)
                if augmented.contexts:
                    prompt = augmented.prompt
                    system_prompt = self.rag_system_prompt
                    contexts = augmented.contexts
                    self.logging.info("RAG found %d relevant contexts", len(contexts))
                else:
                    self.logging.info("No RAG context found, using default prompt")
            except Exception as e:
                self.logging.warning("RAG search failed, falling back to regular response: %s", e)

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": self._build_prompt_with_history(prompt, history)},
        ]
        answer = await self._llm_client.do_chat(messages)
        self.logging.info("Response generated successfully")
        return ChatResponse(response=answer, rag_contexts=contexts, rag_enabled=self.rag_enabled)

    @staticmethod
    def _build_prompt_with_history(prompt: str, history: list[ChatMessage]) -> str:
        if not history:
            return prompt
        history_text = "\n".join(
            f"{'User' if msg.role == 'user' else 'Assistant'}: {msg.content}" for msg in history
        )
        return f"Previous conversation:\n{history_text}\n\nCurrent question/request: {prompt}"
