"""VectorPoint model: the payload stored alongside each note chunk in a RAG backend."""

from typing import Any

from pydantic import BaseModel


class VectorPoint(BaseModel):
    """Payload stored alongside each vector chunk in a RAG backend.

    Points are never addressed by their point ID. All points of a note are
    found (and replaced) through the doc_id field, so it must be present on
    every point.

    Attributes:
        doc_id:       DocumentID of the note, taken from the configured frontmatter field.
        note_path:    Vault-relative path of the note at the time it was embedded.
        frontmatter:  The note's full frontmatter mapping.
        chunk_text:   Raw text content of this chunk.
        chunk_hash:   SHA-256 hex digest of chunk_text.
        chunk_index:  Zero-based position of this chunk within the note, in reading order.
        created_at:   ISO-8601 UTC timestamp of when the point was built.
    """

    # Core identity
    doc_id: str
    note_path: str

    # Source metadata
    frontmatter: dict[str, Any] = {}

    # Chunk content
    chunk_text: str
    chunk_hash: str
    chunk_index: int

    # Temporal metadata
    created_at: str
