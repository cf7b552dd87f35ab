from fastapi import APIRouter, Depends, Query, Request

from services.rag_sync.models.SyncResult import SyncResult, SyncStatus
from server.dependencies.auth import verify_api_key
from shared.store.models.SyncRun import SyncRun

router = APIRouter(prefix="/rag/sync", tags=["sync"], dependencies=[Depends(verify_api_key)])


@router.post("")
async def full_sync(request: Request) -> SyncResult:
    """Re-ingest every document into the vector index.

    A call while another sync runs returns success=false without waiting.
    """
    return await request.app.state.sync_service.full_sync()


@router.post("/incremental")
async def incremental_sync(request: Request) -> SyncResult:
    """Re-ingest the documents modified since the last successful sync."""
    return await request.app.state.sync_service.incremental_sync()


@router.get("/status")
async def sync_status(request: Request) -> SyncStatus:
    return await request.app.state.sync_service.get_sync_status()


@router.get("/runs")
async def sync_runs(request: Request, limit: int = Query(default=20, ge=1, le=200)) -> list[SyncRun]:
    """List the most recent sync runs, newest first."""
    return await request.app.state.sync_service.list_sync_runs(limit=limit)
