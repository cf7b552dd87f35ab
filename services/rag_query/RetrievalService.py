from services.rag_query.models.RetrievedContext import AugmentedPrompt, RetrievedContext
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.helper.HelperConfig import HelperConfig
from shared.store.DocumentStoreInterface import DocumentStoreInterface

CONTEXT_SEPARATOR = "\n\n---\n\n"


class RetrievalService:
    """Handles semantic retrieval: embed -> search -> join with documents -> format."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_store: DocumentStoreInterface,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._document_store = document_store
        self._rag_client = rag_client
        self._embed_client = embed_client
        self.context_limit = int(helper_config.get_number_val("RAG_CONTEXT_LIMIT", default=3))

    ##########################################
    ############### CORE #####################
    ##########################################

    async def search_relevant_context(self, query: str, limit: int | None = None, category: str | None = None) -> list[RetrievedContext]:
        """Find the chunks most similar to the query.

        Hits whose document was deleted from the store since the last sync are
        dropped. Retrieval never fails the caller: any error is logged and an
        empty list is returned.

        Args:
            query (str): The user query.
            limit (int | None): Maximum number of hits; defaults to RAG_CONTEXT_LIMIT. Zero returns no contexts.
            category (str | None): Restrict the search to one document category.

        Returns:
            list[RetrievedContext]: The contexts in descending score order.
        """
        if limit is None:
            limit = self.context_limit
        if limit <= 0:
            return []
        try:
            query_vector = await self._embed_client.do_embed_text(query)
            equality_filter = {"category": category} if category else None
            hits = await self._rag_client.do_search(vector=query_vector, limit=limit, equality_filter=equality_filter)
            if not hits:
                self.logging.debug("No search hits for query '%s'", query[:80])
                return []

            document_ids = list(dict.fromkeys(str(hit.payload.get("document_id")) for hit in hits))
            documents = {doc.id: doc for doc in await self._document_store.find_by_ids(document_ids)}

            contexts: list[RetrievedContext] = []
            for hit in hits:
                doc = documents.get(str(hit.payload.get("document_id")))
                if doc is None:
                    # deleted from the store, points not yet cleaned up
                    continue
                contexts.append(RetrievedContext(
                    document_id=doc.id,
                    title=doc.title,
                    content=hit.payload.get("chunk_text") or doc.content,
                    category=doc.category,
                    score=hit.score,
                    chunk_index=hit.payload.get("chunk_index") or 0,
                ))
            self.logging.info("Retrieved %d context(s) for query '%s'", len(contexts), query[:80])
            return contexts
        except Exception as e:
            self.logging.error("Error searching for relevant context: %s", e)
            return []

    def format_context_for_prompt(self, contexts: list[RetrievedContext]) -> str:
        """Render contexts as numbered blocks for an LLM prompt.

        Example:
            [1] Title (category)
            content

            ---

            [2] Other title
            content
        """
        if not contexts:
            return ""
        blocks = []
        for i, ctx in enumerate(contexts, start=1):
            header = f"[{i}] {ctx.title} ({ctx.category})" if ctx.category else f"[{i}] {ctx.title}"
            blocks.append(f"{header}\n{ctx.content}")
        return CONTEXT_SEPARATOR.join(blocks)

    async def get_augmented_prompt(self, query: str, category: str | None = None) -> AugmentedPrompt:
        """Wrap the query with the retrieved context.

        Returns:
            AugmentedPrompt: The query unchanged with no contexts when nothing was
                found, otherwise the context block followed by the question.
        """
        contexts = await self.search_relevant_context(query, category=category)
        if not contexts:
            return AugmentedPrompt(prompt=query, contexts=[])
        formatted = self.format_context_for_prompt(contexts)
        prompt = f"<context>\n{formatted}\n</context>\n\nQuestion: {query}"
        return AugmentedPrompt(prompt=prompt, contexts=contexts)

    async def debug_search(self, query: str, limit: int = 5) -> list[SearchHit]:
        """Return the raw hits of the vector index. Errors propagate."""
        query_vector = await self._embed_client.do_embed_text(query)
        return await self._rag_client.do_search(vector=query_vector, limit=limit)
