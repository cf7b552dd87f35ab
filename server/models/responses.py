from pydantic import BaseModel

from services.rag_query.models.RetrievedContext import RetrievedContext
from shared.clients.rag.models.SearchHit import SearchHit


class SearchResponse(BaseModel):
    query: str
    results_count: int
    results: list[RetrievedContext]


class DebugSearchResponse(BaseModel):
    query: str
    results: list[SearchHit]
