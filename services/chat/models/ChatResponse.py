from typing import Literal

from pydantic import BaseModel

from services.rag_query.models.RetrievedContext import RetrievedContext


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatResponse(BaseModel):
    response: str
    rag_contexts: list[RetrievedContext] = []
    rag_enabled: bool
