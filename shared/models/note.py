"""Pydantic models for notes moving through the sync queue.

Hierarchy:
  Note:         a markdown note in the vault plus its last-known metadata.
  SyncAction:   what the queue should do with a note's vectors.
  QueueEntry:   one pending action for a DocumentID.
  PendingChunk: one chunk of a note waiting for its embedding.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class Note(BaseModel):
    """A note in the vault.

    The path is vault-relative and only used to read the note again at drain
    time. The metadata is whatever frontmatter was parsed when the event
    arrived, so a deleted note still carries its DocumentID.
    """

    path: str
    metadata: dict[str, Any] = {}


class SyncAction(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


class QueueEntry(BaseModel):
    """Latest pending action for one DocumentID."""

    doc_id: str
    note: Note
    action: SyncAction


class PendingChunk(BaseModel):
    """A chunk of a note, remembered until its vector comes back."""

    doc_id: str
    note: Note
    chunk_index: int
    text: str


class NoteEventKind(str, Enum):
    """Change notifications the host delivers for a note."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"

    def to_action(self) -> SyncAction:
        return SyncAction.DELETE if self is NoteEventKind.DELETED else SyncAction.UPSERT
