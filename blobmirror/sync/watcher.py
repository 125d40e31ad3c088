"""Debounced filesystem watching built on watchdog."""

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Iterator, Optional

from watchdog.events import (
    DirModifiedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from ..paths import PathLike
from ..utils import DEFAULT_DEBOUNCE_SECONDS
from .events import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

# (pending kind, new kind) -> coalesced kind; None drops the path entirely
_COALESCE: dict[tuple[ChangeKind, ChangeKind], Optional[ChangeKind]] = {
    (ChangeKind.CREATED, ChangeKind.WRITTEN): ChangeKind.CREATED,
    (ChangeKind.CREATED, ChangeKind.REMOVED): None,
    (ChangeKind.WRITTEN, ChangeKind.WRITTEN): ChangeKind.WRITTEN,
    (ChangeKind.WRITTEN, ChangeKind.REMOVED): ChangeKind.REMOVED,
    (ChangeKind.REMOVED, ChangeKind.CREATED): ChangeKind.WRITTEN,
    (ChangeKind.REMOVED, ChangeKind.WRITTEN): ChangeKind.WRITTEN,
}


class EventDebouncer:
    """Coalesces bursts of changes to the same path.

    A path's pending change is emitted once ``delay`` seconds have passed
    without a new change to it. Due changes come out in the order their
    paths were first seen.
    """

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_SECONDS):
        self.delay = delay
        self._pending: dict[str, tuple[ChangeKind, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def push(self, kind: ChangeKind, path: str, now: Optional[float] = None) -> None:
        """Record a raw change for ``path``."""
        if kind is ChangeKind.OTHER:
            return
        if now is None:
            now = time.monotonic()
        deadline = now + self.delay

        with self._lock:
            pending = self._pending.get(path)
            if pending is None:
                self._pending[path] = (kind, deadline)
                return

            merged = _COALESCE.get((pending[0], kind), pending[0])
            if merged is None:
                del self._pending[path]
            else:
                self._pending[path] = (merged, deadline)

    def drain_due(self, now: Optional[float] = None) -> list[ChangeEvent]:
        """Remove and return every change whose window has elapsed."""
        if now is None:
            now = time.monotonic()
        with self._lock:
            due = [
                path
                for path, (_, deadline) in self._pending.items()
                if deadline <= now
            ]
            return [ChangeEvent(self._pending.pop(path)[0], path) for path in due]


def classify(event: FileSystemEvent) -> list[tuple[ChangeKind, str]]:
    """Translate a watchdog event into raw changes.

    Moves become a removal of the source and a creation of the destination.
    Directory modifications carry no content and map to OTHER.
    """
    src = os.fsdecode(event.src_path)
    if event.event_type == "created":
        return [(ChangeKind.CREATED, src)]
    if event.event_type == "deleted":
        return [(ChangeKind.REMOVED, src)]
    if event.event_type == "modified":
        if isinstance(event, DirModifiedEvent):
            return [(ChangeKind.OTHER, src)]
        return [(ChangeKind.WRITTEN, src)]
    if isinstance(event, FileSystemMovedEvent):
        dest = os.fsdecode(event.dest_path)
        return [(ChangeKind.REMOVED, src), (ChangeKind.CREATED, dest)]
    return [(ChangeKind.OTHER, src)]


class _DebouncingHandler(FileSystemEventHandler):
    def __init__(self, debouncer: EventDebouncer):
        super().__init__()
        self._debouncer = debouncer

    def on_any_event(self, event: FileSystemEvent) -> None:
        for kind, path in classify(event):
            self._debouncer.push(kind, path)


class WatchAdapter:
    """Watches a directory tree and yields debounced change events.

    Examples:
        >>> with WatchAdapter("/bucket", debounce_seconds=10) as watch:
        ...     for event in watch.events():
        ...         print(event.kind, event.path)
    """

    def __init__(
        self,
        root: PathLike,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        tick: Optional[float] = None,
    ):
        """Initialize the adapter.

        Args:
            root: Directory to watch recursively
            debounce_seconds: Debounce window per path
            tick: Interval at which due changes are flushed
                (default: a tenth of the window, at most 0.5s)
        """
        self.root = Path(root)
        self.debouncer = EventDebouncer(debounce_seconds)
        self.tick = tick if tick is not None else min(0.5, debounce_seconds / 10 or 0.05)
        self._queue: "queue.Queue[Optional[ChangeEvent]]" = queue.Queue()
        self._stop_event = threading.Event()
        self._observer: Optional[Observer] = None
        self._flusher: Optional[threading.Thread] = None

    def __enter__(self) -> "WatchAdapter":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Start watching the root folder."""
        if self._observer is not None:
            return
        self._stop_event.clear()
        observer = Observer()
        observer.schedule(_DebouncingHandler(self.debouncer), str(self.root), recursive=True)
        observer.start()
        self._observer = observer

        self._flusher = threading.Thread(
            target=self._flush_loop, name="blobmirror-debounce", daemon=True
        )
        self._flusher.start()
        logger.info(
            "Watching %s (debounce %.1fs)", self.root, self.debouncer.delay
        )

    def stop(self) -> None:
        """Stop watching and close the event stream."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._flusher is not None:
            self._flusher.join()
            self._flusher = None
        self._queue.put(None)
        logger.info("Stopped watching %s", self.root)

    def _flush_loop(self) -> None:
        while not self._stop_event.wait(self.tick):
            for event in self.debouncer.drain_due():
                self._queue.put(event)

    def events(self) -> Iterator[ChangeEvent]:
        """Yield debounced events until the adapter is stopped."""
        while True:
            event = self._queue.get()
            if event is None:
                return
            yield event
