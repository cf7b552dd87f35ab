from pydantic import BaseModel, Field

from services.chat.models.ChatResponse import ChatMessage


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=100)
    category: str | None = None


class DebugSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=100)


class AugmentRequest(BaseModel):
    query: str = Field(min_length=1)
    category: str | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    history: list[ChatMessage] = []
