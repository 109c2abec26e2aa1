"""Helpers for reading identity and text out of raw markdown notes."""

from typing import Any

import yaml

FRONTMATTER_MARKER = "---"


def _find_frontmatter_end(raw: str) -> int:
    """Return the offset of the closing marker's newline, or -1 if there is no frontmatter block."""
    if not raw.startswith(FRONTMATTER_MARKER):
        return -1
    return raw.find("\n" + FRONTMATTER_MARKER, len(FRONTMATTER_MARKER))


def strip_frontmatter(raw: str) -> str:
    """Remove a leading frontmatter block from a note.

    Only a block opened at offset 0 is considered, and only the first one is
    removed. Everything after the closing marker is returned verbatim,
    including the line break that follows it.

    Args:
        raw (str): The raw note content.

    Returns:
        str: The note text without its frontmatter, or the unchanged content if there is none.
    """
    end = _find_frontmatter_end(raw)
    if end == -1:
        return raw
    return raw[end + len(FRONTMATTER_MARKER) + 1:]


def parse_frontmatter(raw: str) -> dict[str, Any]:
    """Parse the leading frontmatter block of a note as YAML.

    Args:
        raw (str): The raw note content.

    YAML turns keys such as `on:` or `2024:` into booleans and numbers. All
    keys are converted to strings, nested mappings included, so the result
    always fits a string-keyed model.

    Returns:
        dict[str, Any]: The parsed mapping, or {} if there is no block or it is not a mapping.

    Raises:
        yaml.YAMLError: If the block is not valid YAML.
    """
    end = _find_frontmatter_end(raw)
    if end == -1:
        return {}
    parsed = yaml.safe_load(raw[len(FRONTMATTER_MARKER):end])
    return _stringify_keys(parsed) if isinstance(parsed, dict) else {}


def _stringify_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _stringify_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_stringify_keys(item) for item in value]
    return value


def resolve_doc_id(metadata: dict[str, Any] | None, id_field: str) -> str | None:
    """Extract a note's DocumentID from its metadata.

    A missing, null or blank value is not an error: the caller is expected
    to leave the note out of the sync entirely.

    Args:
        metadata (dict[str, Any] | None): The note's parsed frontmatter.
        id_field (str): Name of the frontmatter field holding the ID.

    Returns:
        str | None: The DocumentID, or None if the note has none.
    """
    if not metadata:
        return None
    value = metadata.get(id_field)
    if value is None or isinstance(value, (dict, list)):
        return None
    doc_id = str(value).strip()
    return doc_id or None
