from pydantic import BaseModel


class NoteEventResponse(BaseModel):
    status: str
    path: str
    queued: bool


class ReindexResponse(BaseModel):
    queued: int
    ok: bool
    last_error: str | None = None
