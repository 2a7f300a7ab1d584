"""
Filesystem change subscription for a single path, built on watchdog.

watchdog only reports renames, creations and deletions reliably for a
watched directory, so the parent directory is watched non-recursively and
everything that does not concern the followed path is dropped here. What
remains is translated into the small FileEvent vocabulary the follower
understands.
"""
from __future__ import annotations
import enum
import logging
import os
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import SubscriptionError

log = logging.getLogger(__name__)

_CLOSED = object()
_JOIN_TIMEOUT = 5.0


class EventKind(enum.Enum):
    WRITTEN = "written"
    RENAMED = "renamed"
    REMOVED = "removed"
    CREATED = "created"
    METADATA_CHANGED = "metadata_changed"


@dataclass(frozen=True)
class FileEvent:
    kind: EventKind
    path: str


def _normalize(path) -> str:
    return os.path.abspath(os.fsdecode(path))


class PathEventHandler(FileSystemEventHandler):
    """
    Classifies raw watchdog events for one file.

    Modifications are compared against the last (size, mtime) seen so that
    attribute-only changes (chmod, ownership) come out as METADATA_CHANGED
    instead of waking the reader for nothing.
    """

    def __init__(
        self,
        path: str,
        emit: Callable[[FileEvent], None],
        fail: Callable[[BaseException], None],
    ) -> None:
        super().__init__()
        self.path = _normalize(path)
        self.directory = os.path.dirname(self.path)
        self._emit = emit
        self._fail = fail
        self._last_stat = self._stat()

    def _stat(self) -> Optional[Tuple[int, int]]:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            return None
        return st.st_size, st.st_mtime_ns

    def _is_target(self, path) -> bool:
        return bool(path) and _normalize(path) == self.path

    def _send(self, kind: EventKind) -> None:
        log.debug("%s -> %s", self.path, kind.value)
        self._emit(FileEvent(kind, self.path))

    def _changed(self) -> None:
        try:
            current = self._stat()
        except OSError as e:
            self._fail(SubscriptionError(f"cannot stat {self.path}: {e}"))
            return
        if current is None:
            # gone already; the deletion event follows
            return
        if current == self._last_stat:
            self._send(EventKind.METADATA_CHANGED)
            return
        self._last_stat = current
        self._send(EventKind.WRITTEN)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self._changed()

    def on_closed(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self._changed()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self._last_stat = self._stat()
            self._send(EventKind.CREATED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self._is_target(event.src_path):
            self._last_stat = None
            self._send(EventKind.RENAMED)
        elif self._is_target(getattr(event, "dest_path", "")):
            self._last_stat = self._stat()
            self._send(EventKind.CREATED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            if _normalize(event.src_path) == self.directory:
                self._fail(SubscriptionError(f"watched directory was removed: {self.directory}"))
            return
        if self._is_target(event.src_path):
            self._last_stat = None
            self._send(EventKind.REMOVED)


class Subscription:
    """
    A live watch on one path.

    Events and subscription errors are delivered in arrival order through
    next_event(); close() ends the stream for any consumer.
    """

    def __init__(self, path: str, observer_factory=Observer) -> None:
        self.path = _normalize(path)
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._handler = PathEventHandler(self.path, self._deliver, self._deliver)
        self._observer = observer_factory()

    def _deliver(self, item: object) -> None:
        with self._lock:
            if self._closed:
                return
            self._queue.put(item)

    def start(self) -> "Subscription":
        try:
            self._observer.schedule(self._handler, self._handler.directory, recursive=False)
            self._observer.start()
        except OSError as e:
            raise SubscriptionError(f"cannot watch {self._handler.directory}: {e}") from e
        log.debug("Watching %s for changes to %s", self._handler.directory, self.path)
        return self

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def next_event(self) -> Optional[FileEvent]:
        """
        Block for the next event. Raises a subscription error when one is
        next in line; returns None once the subscription is closed.
        """
        item = self._queue.get()
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSED)
        self._observer.stop()
        if self._observer.is_alive() and self._observer is not threading.current_thread():
            self._observer.join(_JOIN_TIMEOUT)
        log.debug("Stopped watching %s", self.path)


def subscribe(path: str) -> Subscription:
    return Subscription(path).start()
