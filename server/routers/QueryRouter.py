from fastapi import APIRouter, Depends, Request

from services.rag_query.models.RetrievedContext import AugmentedPrompt
from server.dependencies.auth import verify_api_key
from server.models.requests import AugmentRequest, DebugSearchRequest, SearchRequest
from server.models.responses import DebugSearchResponse, SearchResponse

router = APIRouter(prefix="/rag", tags=["query"], dependencies=[Depends(verify_api_key)])


@router.post("/search")
async def search(request: Request, body: SearchRequest) -> SearchResponse:
    """Semantic search over the indexed documents.

    Args:
        request (Request): FastAPI request (provides app.state.retrieval_service).
        body (SearchRequest): JSON body with query, limit and optional category.

    Returns:
        SearchResponse: The matching chunks joined with their documents.
    """
    retrieval_service = request.app.state.retrieval_service
    results = await retrieval_service.search_relevant_context(body.query, limit=body.limit, category=body.category)
    return SearchResponse(query=body.query, results_count=len(results), results=results)


@router.post("/search/debug")
async def search_debug(request: Request, body: DebugSearchRequest) -> DebugSearchResponse:
    """Raw hits of the vector index, without the document join."""
    hits = await request.app.state.retrieval_service.debug_search(body.query, limit=body.limit)
    return DebugSearchResponse(query=body.query, results=hits)


@router.post("/augment")
async def augment(request: Request, body: AugmentRequest) -> AugmentedPrompt:
    return await request.app.state.retrieval_service.get_augmented_prompt(body.query, category=body.category)
