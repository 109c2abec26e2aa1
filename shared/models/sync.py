"""Pydantic models describing the state and outcome of sync runs."""

from typing import Literal

from pydantic import BaseModel


class SyncStatus(BaseModel):
    """Snapshot of the sync engine, shown to the operator."""

    state: Literal["idle", "draining"]
    queued: int
    debounce_pending: bool
    last_flush_at: str | None = None
    last_error: str | None = None


class NoteSyncResult(BaseModel):
    """Outcome of pushing a single note outside the debounce window.

    Attributes:
        path:    Vault-relative path of the note.
        doc_id:  The note's DocumentID, None if it has none.
        status:  "synced" when its points were replaced, "queued" when a drain
                 was running and the note waits for the next one, "skipped"
                 when it has no DocumentID.
        points:  Number of points written.
    """

    path: str
    doc_id: str | None = None
    status: Literal["synced", "queued", "skipped"]
    points: int = 0
