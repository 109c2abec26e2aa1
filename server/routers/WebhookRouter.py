"""Webhook router for note change events.

The host calls POST /webhook/note whenever a note is created, modified or
deleted. The event only lands in the debounced queue; the actual sync runs
once the vault has been quiet for SYNC_DEBOUNCE_MS.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from server.models.requests import NoteEventRequest
from server.models.responses import NoteEventResponse
from shared.dependencies.auth import verify_api_key
from shared.vault.NoteVault import VaultPathError

router = APIRouter()


@router.post(
    "/webhook/note",
    dependencies=[Depends(verify_api_key)],
    tags=["Webhook"],
    response_model=NoteEventResponse,
)
async def handle_note_webhook(request: Request, body: NoteEventRequest) -> NoteEventResponse:
    """Queue a note change event.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (NoteEventRequest): The changed note and the kind of change.

    Returns:
        NoteEventResponse: Whether the note was queued. Notes without a DocumentID are not.

    Raises:
        HTTPException: 400 if the path is outside the vault.
    """
    try:
        queued = request.app.state.sync_service.handle_event(body.path, body.event)
    except VaultPathError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return NoteEventResponse(status="accepted", path=body.path, queued=queued)
