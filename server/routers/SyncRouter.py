"""Sync router with manual commands on top of the debounced queue."""

from fastapi import APIRouter, Depends, HTTPException, Request

from server.models.requests import NotePathRequest
from server.models.responses import ReindexResponse
from shared.dependencies.auth import verify_api_key
from shared.vault.NoteVault import VaultPathError
from shared.models.sync import NoteSyncResult, SyncStatus

router = APIRouter(prefix="/sync", tags=["Sync"], dependencies=[Depends(verify_api_key)])


@router.get("/status", response_model=SyncStatus)
async def get_status(request: Request) -> SyncStatus:
    return request.app.state.sync_service.get_status()


@router.post("/flush", response_model=SyncStatus)
async def flush_now(request: Request) -> SyncStatus:
    """Drain the queue now instead of waiting for the debounce timer.

    A drain that fails or is already running is reported through the
    returned status (last_error / state), not as an HTTP error.
    """
    sync_service = request.app.state.sync_service
    await sync_service.do_flush_now()
    return sync_service.get_status()


@router.post("/reindex", response_model=ReindexResponse)
async def reindex_vault(request: Request) -> ReindexResponse:
    """Queue every note in the vault and drain immediately."""
    sync_service = request.app.state.sync_service
    queued = await sync_service.do_reindex_vault()
    status = sync_service.get_status()
    return ReindexResponse(queued=queued, ok=status.last_error is None, last_error=status.last_error)


@router.post("/note", response_model=NoteSyncResult)
async def sync_note(request: Request, body: NotePathRequest) -> NoteSyncResult:
    """Replace the vectors of a single note right away.

    Raises:
        HTTPException: 400 for a path outside the vault, 422 for a note without
            DocumentID, 502 if the embedding or RAG backend fails.
    """
    try:
        result = await request.app.state.sync_service.do_sync_note(body.path)
    except VaultPathError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        request.app.state.logging.error("Pushing note '%s' failed: %s", body.path, exc)
        raise HTTPException(status_code=502, detail=f"Sync backend failed: {exc}")

    if result.status == "skipped":
        raise HTTPException(status_code=422, detail=f"Note '{body.path}' has no valid document ID.")
    return result
