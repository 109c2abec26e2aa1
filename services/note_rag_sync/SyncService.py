"""Synchronisation service.

Keeps the RAG backend in step with the notes in the vault. Change events are
collected in a debounced EventQueue; a drain then deletes the vectors of
removed notes and replaces the vectors of changed notes, in batches bounded
by the RAG batch size.

Replacing a note's vectors is delete-before-insert: all points of every note
in a batch are deleted before anything is embedded. If embedding or upsert
fails afterwards, those notes have no points until the next successful
drain, but a reader never sees old and new chunks of one note side by side.
"""

import asyncio
import hashlib
from datetime import datetime, timezone

from services.note_rag_sync.EventQueue import EventQueue, Scheduler
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperNote import resolve_doc_id, strip_frontmatter
from shared.helper.HelperTextSplitter import HelperTextSplitter
from shared.models.note import Note, NoteEventKind, PendingChunk, QueueEntry, SyncAction
from shared.models.sync import NoteSyncResult, SyncStatus
from shared.vault.NoteVault import NoteVault


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _chunk_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class SyncService:
    """Orchestrates the sync pipeline from the vault to the RAG backend."""

    def __init__(
        self,
        helper_config: HelperConfig,
        vault: NoteVault,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.logging = helper_config.get_logger().child("sync")
        self._vault = vault
        self._rag_client = rag_client
        self._embed_client = embed_client

        self.id_field = helper_config.get_string_val("SYNC_ID_FIELD", default="uuid")
        self.debounce_ms = helper_config.get_positive_int_val("SYNC_DEBOUNCE_MS", default=60000)
        chunk_overlap = helper_config.get_number_val("SYNC_CHUNK_OVERLAP", default=100)
        if int(chunk_overlap) != chunk_overlap:
            raise ValueError(f"Environment variable 'SYNC_CHUNK_OVERLAP' must be a whole number, got '{chunk_overlap}'.")
        self._splitter = HelperTextSplitter(
            chunk_size=helper_config.get_positive_int_val("SYNC_MAX_CHUNK_SIZE", default=1000),
            chunk_overlap=int(chunk_overlap),
        )

        self._queue = EventQueue(
            delay_seconds=self.debounce_ms / 1000,
            on_elapsed=self._on_debounce_elapsed,
            scheduler=scheduler,
        )
        self._is_flushing = False
        self._flush_task: asyncio.Task | None = None
        self.last_flush_at: str | None = None
        self.last_error: str | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_queue(self) -> EventQueue:
        return self._queue

    def is_flushing(self) -> bool:
        return self._is_flushing

    def get_pending_flush(self) -> asyncio.Task | None:
        """Return the drain started by the debounce timer, if it is still running."""
        if self._flush_task is not None and self._flush_task.done():
            self._flush_task = None
        return self._flush_task

    def get_status(self) -> SyncStatus:
        return SyncStatus(
            state="draining" if self._is_flushing else "idle",
            queued=len(self._queue),
            debounce_pending=self._queue.debounce_pending,
            last_flush_at=self.last_flush_at,
            last_error=self.last_error,
        )

    ##########################################
    ################ EVENTS ##################
    ##########################################

    def queue_note(self, note: Note, action: SyncAction, debounce: bool = True) -> bool:
        """Queue an action for a note.

        Args:
            note (Note): The note the event is about.
            action (SyncAction): What should happen to its vectors.
            debounce (bool): Restart the debounce timer.

        Returns:
            bool: True if queued, False if the note has no DocumentID and was skipped.
        """
        doc_id = resolve_doc_id(note.metadata, self.id_field)
        if doc_id is None:
            self.logging.debug("Skipping note '%s': no '%s' in frontmatter.", note.path, self.id_field)
            return False
        self._queue.enqueue(QueueEntry(doc_id=doc_id, note=note, action=action), debounce=debounce)
        return True

    def handle_event(self, path: str, event: NoteEventKind) -> bool:
        """Turn a change notification from the host into a queued action.

        Args:
            path (str): Vault-relative path of the note.
            event (NoteEventKind): What happened to it.

        Returns:
            bool: True if the note was queued.

        Raises:
            VaultPathError: If the path points outside the vault.
        """
        note = self._vault.get_note(path)
        if note is None:
            return False
        self.logging.info("Note %s: '%s'", event.value, path)
        return self.queue_note(note, event.to_action())

    def _on_debounce_elapsed(self) -> None:
        self._flush_task = asyncio.ensure_future(self.flush_queue())

    ##########################################
    ############### COMMANDS #################
    ##########################################

    async def do_flush_now(self) -> bool:
        """Drain the queue immediately, skipping the debounce delay.

        Returns:
            bool: True if a drain ran and completed without error.
        """
        self._queue.cancel_debounce()
        return await self.flush_queue()

    async def do_reindex_vault(self) -> int:
        """Queue every note of the vault for upsert and drain right away.

        Returns:
            int: Number of notes queued.
        """
        self.logging.info("Reindexing the entire vault...", color="cyan")
        queued = 0
        for note in await asyncio.to_thread(self._vault.list_notes):
            if self.queue_note(note, SyncAction.UPSERT, debounce=False):
                queued += 1
        self.logging.info("Queued %d note(s) for reindex.", queued)
        await self.do_flush_now()
        return queued

    async def do_sync_note(self, path: str) -> NoteSyncResult:
        """Replace a single note's vectors now, outside the debounce window.

        If a drain is already running, the note is queued for the next one
        instead so two cycles never touch the same note at once.

        Args:
            path (str): Vault-relative path of the note.

        Returns:
            NoteSyncResult: What happened to the note.

        Raises:
            VaultPathError: If the path points outside the vault.
            Exception: Propagated if the delete, embedding or upsert fails. The note stays queued.
        """
        note = self._vault.get_note(path)
        doc_id = resolve_doc_id(note.metadata, self.id_field) if note else None
        if note is None or doc_id is None:
            self.logging.warning("Note '%s' has no valid '%s' and cannot be synced.", path, self.id_field)
            return NoteSyncResult(path=path, status="skipped")

        entry = QueueEntry(doc_id=doc_id, note=note, action=SyncAction.UPSERT)
        if self._is_flushing:
            self._queue.enqueue(entry)
            self.logging.info("A drain is running, note '%s' was queued instead.", path)
            return NoteSyncResult(path=path, doc_id=doc_id, status="queued")

        self._is_flushing = True
        try:
            self._queue.enqueue(entry, debounce=False)
            points = await self._upsert_batch([entry])
            self._queue.acknowledge([entry])
        finally:
            self._is_flushing = False

        self.logging.info("Synced note '%s' (id=%s): %d chunk(s).", path, doc_id, points, color="green")
        return NoteSyncResult(path=path, doc_id=doc_id, status="synced", points=points)

    async def shutdown(self) -> None:
        """Stop the debounce timer and push whatever is still queued."""
        self._queue.cancel_debounce()
        pending = self.get_pending_flush()
        if pending is not None:
            await pending
        if len(self._queue):
            self.logging.info("Flushing %d queued note(s) before shutdown.", len(self._queue))
            await self.flush_queue()

    ##########################################
    ############### CORE SYNC ################
    ##########################################

    async def flush_queue(self) -> bool:
        """Run one drain cycle: deletes first, then upserts.

        Only one drain runs at a time; a call while one is in flight returns
        at once. A failing remote call aborts the cycle: batches already done
        stay done, everything else stays queued for the next trigger. The
        error is logged and recorded in last_error, never raised.

        Returns:
            bool: True if a drain ran and completed without error.
        """
        if self._is_flushing:
            self.logging.debug("Drain already in progress. Skipping this trigger.")
            return False

        self._is_flushing = True
        try:
            upserts, deletes = self._queue.snapshot()
            if not upserts and not deletes:
                return True
            self.logging.info("Draining sync queue: %d upsert(s), %d delete(s).", len(upserts), len(deletes))
            await self._process_delete_entries(deletes)
            await self._process_upsert_entries(upserts)
        except Exception as exc:
            self.last_error = f"{type(exc).__name__}: {exc}"
            self.logging.error(
                "Sync failed, %d note(s) stay queued for the next run: %s", len(self._queue), self.last_error,
            )
            return False
        finally:
            self._is_flushing = False

        self.last_error = None
        self.last_flush_at = _utc_now()
        self.logging.info("Sync queue drained.", color="green")
        return True

    async def _process_delete_entries(self, entries: list[QueueEntry]) -> None:
        """Delete the vectors of removed notes, one filtered delete per batch.

        Args:
            entries (list[QueueEntry]): Delete entries from the queue snapshot.

        Raises:
            Exception: Propagated if a delete request fails.
        """
        batch_size = self._rag_client.batch_size
        for batch_start in range(0, len(entries), batch_size):
            batch = entries[batch_start: batch_start + batch_size]
            await self._rag_client.do_delete_by_doc_ids([entry.doc_id for entry in batch])
            self._queue.acknowledge(batch)
            self.logging.info("Deleted vectors for %d removed note(s).", len(batch))

    async def _process_upsert_entries(self, entries: list[QueueEntry]) -> None:
        """Replace the vectors of changed notes, batch by batch.

        Args:
            entries (list[QueueEntry]): Upsert entries from the queue snapshot.

        Raises:
            Exception: Propagated if any remote call of a batch fails.
        """
        batch_size = self._rag_client.batch_size
        for batch_start in range(0, len(entries), batch_size):
            batch = entries[batch_start: batch_start + batch_size]
            points = await self._upsert_batch(batch)
            self._queue.acknowledge(batch)
            self.logging.info("Stored %d point(s) for %d note(s).", points, len(batch))

    async def _upsert_batch(self, batch: list[QueueEntry]) -> int:
        """Chunk, delete, embed and upsert one batch of notes.

        Notes whose text is empty after stripping the frontmatter produce no
        chunks but are still part of the delete, so they end with no points.

        Args:
            batch (list[QueueEntry]): At most batch_size upsert entries.

        Returns:
            int: Number of points upserted.

        Raises:
            Exception: Propagated if the delete, embedding or upsert fails.
        """
        pending: list[PendingChunk] = []
        doc_ids: list[str] = []
        for entry in batch:
            raw, metadata = await self._vault.read_note(entry.note)
            content = strip_frontmatter(raw)
            note = Note(path=entry.note.path, metadata=metadata)
            doc_ids.append(entry.doc_id)
            if not content:
                self.logging.debug("Note '%s' (id=%s) has no content.", note.path, entry.doc_id)
                continue
            for chunk_index, text in enumerate(self._splitter.split_text(content)):
                pending.append(PendingChunk(doc_id=entry.doc_id, note=note, chunk_index=chunk_index, text=text))

        self.logging.info("Vectorizing %d note(s) into %d chunk(s).", len(doc_ids), len(pending))

        # delete-before-insert
        await self._rag_client.do_delete_by_doc_ids(doc_ids)
        if not pending:
            return 0

        vectors = await self._embed_client.do_embed_many([chunk.text for chunk in pending])
        if len(vectors) != len(pending):
            raise ValueError(f"Got {len(vectors)} embeddings for {len(pending)} chunks.")

        created_at = _utc_now()
        payloads = [
            VectorPoint(
                doc_id=chunk.doc_id,
                note_path=chunk.note.path,
                frontmatter=chunk.note.metadata,
                chunk_text=chunk.text,
                chunk_hash=_chunk_hash(chunk.text),
                chunk_index=chunk.chunk_index,
                created_at=created_at,
            )
            for chunk in pending
        ]
        return await self._rag_client.do_upsert_points(vectors, payloads)
