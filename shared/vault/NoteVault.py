"""Local markdown vault.

Plays the host application's part: lists notes, looks up their frontmatter
metadata and reads their content. The metadata cache remembers the last
frontmatter seen per path so a note that was just deleted can still be
mapped to its DocumentID.
"""

import asyncio
from pathlib import Path
from typing import Any

import yaml

from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperNote import parse_frontmatter
from shared.models.note import Note

NOTE_EXTENSION = ".md"
DEFAULT_IGNORE_DIRS = [".obsidian", ".trash"]


class VaultPathError(ValueError):
    """Raised when a path points outside the vault root."""


class NoteVault:
    """Markdown notes under VAULT_ROOT_DIR."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger().child("vault")
        self._root = Path(helper_config.get_string_val("VAULT_ROOT_DIR")).expanduser().resolve()
        self._ignore_dirs = set(helper_config.get_list_val("VAULT_IGNORE_DIRS", default=DEFAULT_IGNORE_DIRS))
        self._metadata_cache: dict[str, dict[str, Any]] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _resolve(self, path: str) -> Path:
        """Map a vault-relative path to an absolute one inside the vault.

        Raises:
            VaultPathError: If the path points outside the vault root.
        """
        full_path = (self._root / path).resolve()
        if full_path != self._root and self._root not in full_path.parents:
            raise VaultPathError(f"Path '{path}' is outside the vault.")
        return full_path

    def _relative(self, full_path: Path) -> str:
        return full_path.relative_to(self._root).as_posix()

    def _is_ignored(self, path: str) -> bool:
        # any directory on the way, not the file name itself
        return any(part in self._ignore_dirs for part in path.split("/")[:-1])

    ##########################################
    ################ NOTES ###################
    ##########################################

    def list_notes(self) -> list[Note]:
        """List every markdown note in the vault outside VAULT_IGNORE_DIRS, sorted by path.

        Returns:
            list[Note]: All notes with freshly parsed metadata.
        """
        if not self._root.is_dir():
            self.logging.warning("Vault root '%s' does not exist or is not a directory.", self._root)
            return []
        notes = []
        for full_path in sorted(self._root.rglob(f"*{NOTE_EXTENSION}")):
            if not full_path.is_file():
                continue
            path = self._relative(full_path)
            if self._is_ignored(path):
                continue
            notes.append(Note(path=path, metadata=self.get_metadata(path)))
        return notes

    def get_note(self, path: str) -> Note | None:
        """Look up a single note.

        Args:
            path (str): Vault-relative path.

        Returns:
            Note | None: The note, or None if the path is not a markdown file or lies in an ignored folder.

        Raises:
            VaultPathError: If the path points outside the vault root.
        """
        full_path = self._resolve(path)
        if full_path.suffix.lower() != NOTE_EXTENSION:
            return None
        path = self._relative(full_path)
        if self._is_ignored(path):
            return None
        return Note(path=path, metadata=self.get_metadata(path))

    def warm_cache(self) -> int:
        """Parse the metadata of every note into the cache.

        Returns:
            int: Number of notes found.
        """
        count = len(self.list_notes())
        self.logging.info("Vault metadata cache warmed with %d note(s) from '%s'.", count, self._root)
        return count

    ##########################################
    ############### METADATA #################
    ##########################################

    def get_metadata(self, path: str) -> dict[str, Any]:
        """Return a note's frontmatter metadata.

        Reads the file when it exists and refreshes the cache. For a missing
        file the last cached metadata is returned.

        Args:
            path (str): Vault-relative path.

        Returns:
            dict[str, Any]: The parsed frontmatter, or {} if unknown or malformed.
        """
        raw = self._read_raw(path)
        if raw is None:
            return self._metadata_cache.get(path, {})
        return self._parse_metadata(path, raw)

    def _parse_metadata(self, path: str, raw: str) -> dict[str, Any]:
        try:
            metadata = parse_frontmatter(raw)
        except yaml.YAMLError as exc:
            self.logging.warning("Malformed frontmatter in '%s': %s", path, exc)
            metadata = {}
        self._metadata_cache[path] = metadata
        return metadata

    ##########################################
    ############### CONTENT ##################
    ##########################################

    def _read_raw(self, path: str) -> str | None:
        """Read a note's text, or None if the file does not exist.

        Bytes that are not valid UTF-8 are replaced with U+FFFD.
        """
        full_path = self._resolve(path)
        try:
            data = full_path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            self.logging.warning("Note '%s' is not valid UTF-8 (%s). Undecodable bytes are replaced.", path, exc.reason)
            return data.decode("utf-8", errors="replace")

    def load_note(self, path: str) -> tuple[str, dict[str, Any]]:
        """Read a note once and return its raw content with the metadata parsed from it.

        Content and metadata always come from the same version of the file.
        A note that vanished reads as empty content with its last cached
        metadata.

        Args:
            path (str): Vault-relative path.

        Returns:
            tuple[str, dict[str, Any]]: The raw content and its frontmatter metadata.
        """
        raw = self._read_raw(path)
        if raw is None:
            self.logging.warning("Note '%s' vanished before it could be read. Treating it as empty.", path)
            return "", self._metadata_cache.get(path, {})
        return raw, self._parse_metadata(path, raw)

    async def read_note(self, note: Note) -> tuple[str, dict[str, Any]]:
        """Run load_note off the event loop."""
        return await asyncio.to_thread(self.load_note, note.path)
