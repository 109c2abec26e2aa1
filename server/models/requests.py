from pydantic import BaseModel

from shared.models.note import NoteEventKind


class NoteEventRequest(BaseModel):
    path: str
    event: NoteEventKind


class NotePathRequest(BaseModel):
    path: str
