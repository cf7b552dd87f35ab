from fastapi import APIRouter, Depends, Request

from services.chat.models.ChatResponse import ChatResponse
from server.dependencies.auth import verify_api_key
from server.models.requests import ChatRequest

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("")
async def chat(
    request: Request,
    body: ChatRequest,
    _: None = Depends(verify_api_key),
) -> ChatResponse:
    """Answer a chat message, with document context when retrieval is enabled.

    Args:
        request (Request): FastAPI request (provides app.state.chat_service).
        body (ChatRequest): JSON body with the message and optional history.
        _ (None): Auth dependency result (unused).

    Returns:
        ChatResponse: The answer and the contexts used.
    """
    chat_service = request.app.state.chat_service
    return await chat_service.generate_response(body.message, history=body.history)
