"""Debounced, deduplicating queue of pending note sync actions.

Holds at most one entry per DocumentID (the latest action wins) and a single
debounce timer for the whole queue. Every debounced enqueue restarts the
timer; when it runs out undisturbed, the on_elapsed callback fires once.

All methods are synchronous and never yield, so under asyncio no lock is
needed around the entry map.
"""

import asyncio
from typing import Callable, Protocol

from shared.models.note import QueueEntry, SyncAction


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


# (delay_seconds, callback) -> cancellable handle
Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Default scheduler: a call_later on the running event loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


class EventQueue:
    """Last-write-wins mailbox keyed by DocumentID."""

    def __init__(
        self,
        delay_seconds: float,
        on_elapsed: Callable[[], None],
        scheduler: Scheduler | None = None,
    ) -> None:
        self._delay = delay_seconds
        self._on_elapsed = on_elapsed
        self._scheduler = scheduler or loop_scheduler
        self._entries: dict[str, QueueEntry] = {}
        self._timer: TimerHandle | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._entries

    def get(self, doc_id: str) -> QueueEntry | None:
        return self._entries.get(doc_id)

    @property
    def debounce_pending(self) -> bool:
        return self._timer is not None

    ##########################################
    ################ QUEUE ###################
    ##########################################

    def enqueue(self, entry: QueueEntry, debounce: bool = True) -> None:
        """Store an entry, replacing any earlier one for the same DocumentID.

        Args:
            entry (QueueEntry): The new action for the note.
            debounce (bool): Restart the debounce timer. Bulk callers pass False and drain explicitly.
        """
        self._entries[entry.doc_id] = entry
        if debounce:
            self.cancel_debounce()
            self._timer = self._scheduler(self._delay, self._fire)

    def snapshot(self) -> tuple[list[QueueEntry], list[QueueEntry]]:
        """Partition the current entries by action without removing anything.

        Returns:
            tuple[list[QueueEntry], list[QueueEntry]]: (upsert entries, delete entries), each in insertion order.
        """
        upserts: list[QueueEntry] = []
        deletes: list[QueueEntry] = []
        for entry in self._entries.values():
            if entry.action == SyncAction.DELETE:
                deletes.append(entry)
            else:
                upserts.append(entry)
        return upserts, deletes

    def acknowledge(self, entries: list[QueueEntry]) -> int:
        """Remove entries that were processed successfully.

        An entry replaced by a newer event since the snapshot is left in
        place so the newer action still runs.

        Args:
            entries (list[QueueEntry]): Entries taken from snapshot().

        Returns:
            int: Number of entries actually removed.
        """
        removed = 0
        for entry in entries:
            if self._entries.get(entry.doc_id) is entry:
                del self._entries[entry.doc_id]
                removed += 1
        return removed

    ##########################################
    ############### DEBOUNCE #################
    ##########################################

    def cancel_debounce(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self._on_elapsed()
