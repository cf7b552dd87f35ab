from pydantic import BaseModel


class RetrievedContext(BaseModel):
    """One search hit joined with its source document.

    content is the matched chunk text, or the full document content when the
    point carries no chunk text.
    """

    document_id: str
    title: str
    content: str
    category: str | None = None
    score: float
    chunk_index: int = 0


class AugmentedPrompt(BaseModel):
    prompt: str
    contexts: list[RetrievedContext] = []
