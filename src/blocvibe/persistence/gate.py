"""
Persistence gate: debounced, asynchronous project saves.

The snapshot (tree -> JSON) is taken synchronously on the caller's thread,
which is the session's control thread, so later mutations can never leak
into a save in flight. Only the write itself runs on a single-worker
executor, and the caller never waits for it.

With a save delay the gate keeps only the newest snapshot and writes it
once the burst settles.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import TYPE_CHECKING

from blocvibe.core.tree import DocumentTree
from blocvibe.persistence.store import ProjectRecord, ProjectStore
from blocvibe.sync.debounce import Debouncer, Scheduler
from blocvibe.sync.surface import LoggingNotifier, Notifier

if TYPE_CHECKING:
    from blocvibe.config import EditorConfig

logger = logging.getLogger(__name__)

DEFAULT_SAVE_DELAY = 0.5  # seconds; matches the render debounce


class PersistenceGate:
    """
    Schedules background writes of the latest tree snapshot.

    Args:
        store: Where records are written.
        project: The record being edited; each save writes an updated copy.
        save_delay: Seconds to coalesce saves over; 0 submits every save.
        executor: Write executor (default: one worker thread).
        scheduler: Timer source for the save delay.
        notifier: Receives write failures.
    """

    def __init__(
        self,
        store: ProjectStore,
        project: ProjectRecord,
        *,
        save_delay: float = DEFAULT_SAVE_DELAY,
        executor: Executor | None = None,
        scheduler: Scheduler | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.store = store
        self.project = project
        self.notifier = notifier or LoggingNotifier()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="blocvibe-save"
        )
        self._lock = threading.Lock()
        self._pending: ProjectRecord | None = None
        self._futures: list[Future[None]] = []
        self._closed = False
        self.saves = 0
        self.failures = 0
        self._debouncer = (
            Debouncer(self._submit_pending, save_delay, scheduler, name="save")
            if save_delay > 0
            else None
        )

    @classmethod
    def from_config(
        cls,
        config: EditorConfig,
        project: ProjectRecord,
        *,
        executor: Executor | None = None,
        scheduler: Scheduler | None = None,
        notifier: Notifier | None = None,
    ) -> PersistenceGate:
        """Gate writing into ``config``'s store with its configured save delay."""
        return cls(
            ProjectStore(config.persistence.store_dir),
            project,
            save_delay=config.save_delay_seconds,
            executor=executor,
            scheduler=scheduler,
            notifier=notifier,
        )

    @property
    def in_flight(self) -> bool:
        """True while a write is queued or running."""
        with self._lock:
            return any(not f.done() for f in self._futures)

    @property
    def pending(self) -> bool:
        """True while a debounced save has not been submitted yet."""
        return self._debouncer is not None and self._debouncer.pending

    def schedule(self, tree: DocumentTree) -> None:
        """Snapshot ``tree`` now and arrange for it to be written."""
        if self._closed:
            logger.warning("Save requested after the gate was closed; ignoring")
            return
        record = self.project.model_copy(
            update={
                "elements_json": tree.to_json(),
                "last_modified": int(time.time() * 1000),
            }
        )
        with self._lock:
            self.project = record
            self._pending = record

        if self._debouncer is not None:
            self._debouncer.trigger()
        else:
            self._submit_pending()

    def flush(self, timeout: float | None = None) -> None:
        """Submit any debounced snapshot and wait for queued writes to finish."""
        if self._debouncer is not None:
            self._debouncer.flush()
        with self._lock:
            futures = list(self._futures)
        for future in futures:
            future.exception(timeout=timeout)

    def close(self) -> None:
        """Flush outstanding saves and stop the worker."""
        if self._closed:
            return
        self.flush()
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def _submit_pending(self) -> None:
        with self._lock:
            record, self._pending = self._pending, None
            if record is None:
                return
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(self._executor.submit(self._write, record))

    def _write(self, record: ProjectRecord) -> None:
        try:
            self.store.put(record)
        except Exception:
            self.failures += 1
            logger.error("Failed to save project %s", record.id, exc_info=True)
            self.notifier.notify("error", f"Could not save project '{record.name}'")
            return
        self.saves += 1
        logger.debug("Project %s saved (%d bytes)", record.id, len(record.elements_json))
