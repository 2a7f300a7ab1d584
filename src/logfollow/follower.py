"""
A read stream over a file that never runs out: ``tail -f`` as a stream object.

Reads return bytes appended to the file and, when there are none, block
until the filesystem reports a change. Closing the follower removes the
watch; reads then drain whatever was already staged and report
end-of-stream.

Read outcomes follow Python's raw stream conventions:
  * non-empty bytes: new data (short reads are normal)
  * None: something changed or nothing did, call read again
  * b"": end of stream, only reached after close or a delivered terminal error
read(0) and readinto() of an empty buffer return b"" / 0 at once without
looking at the stream, as io streams do; only a request for at least one
byte can report end of stream.
Terminal conditions (FileTruncated, FileRemoved, SubscriptionError, OSError)
are raised once, by the read that observes them.
"""
from __future__ import annotations
import logging
import os
import threading
import time
from typing import Callable, Optional

from .buffer import DEFAULT_BUFFER_SIZE, ReadBuffer
from .errors import (
    CloseError,
    FileRemoved,
    FileTruncated,
    FollowerError,
    UnexpectedEventError,
)
from .events import EventKind, FileEvent, Subscription, subscribe as watch_path
from .signals import ErrorSignal, WakeSignal

log = logging.getLogger(__name__)

# how long a moved-away file may take to reappear at its path
DEFAULT_RENAME_GRACE = 0.5
_RENAME_POLL = 0.01


def follow(
    path,
    from_start: bool = False,
    *,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    rename_grace: float = DEFAULT_RENAME_GRACE,
    subscribe: Callable[[str], Subscription] = watch_path,
) -> "Follower":
    """
    Open `path` and follow its writes.
    Starts at the current end of file unless `from_start` is set.
    After the file is moved away, a new file has `rename_grace` seconds to
    appear at `path` before the stream ends with FileRemoved.
    """
    if rename_grace < 0:
        raise ValueError(f"rename grace must not be negative, got {rename_grace}")
    path = os.fspath(path)
    handle = open(path, "rb", buffering=0)
    try:
        if not from_start:
            handle.seek(0, os.SEEK_END)
        buffer = ReadBuffer(handle, buffer_size)
        subscription = subscribe(path)
    except BaseException:
        handle.close()
        raise
    return Follower(path, buffer, subscription, rename_grace=rename_grace)


class Follower:
    def __init__(
        self,
        path: str,
        buffer: ReadBuffer,
        subscription: Subscription,
        *,
        rename_grace: float = DEFAULT_RENAME_GRACE,
    ) -> None:
        self.path = path
        self.rename_grace = rename_grace
        self._lock = threading.Lock()
        self._buffer = buffer
        self._subscription = subscription
        self._wake = WakeSignal()
        self._errors = ErrorSignal()
        self._closed = False

        self._loop = threading.Thread(
            target=self._follow_file,
            name=f"logfollow:{os.path.basename(path)}",
            daemon=True,
        )
        self._loop.start()
        log.info("Following %s from offset %d", path, buffer.offset())

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<Follower path={self.path!r} {state}>"

    def __enter__(self) -> "Follower":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def readable(self) -> bool:
        return True

    # -------------------------
    # Reader side
    # -------------------------
    def read(self, size: int = -1) -> Optional[bytes]:
        if size == 0:
            return b""

        with self._lock:
            readable = self._refill()
            error, ended = self._errors.poll()
            if error is not None:
                raise error
            if readable:
                return self._buffer.read(readable if size < 0 else min(readable, size))
            if ended:
                return b""

        # never hold the lock here: the event loop needs it to make progress
        if self._wake.wait():
            return None
        error, _ = self._errors.poll()
        if error is not None:
            raise error
        return b""

    def readinto(self, b) -> Optional[int]:
        view = memoryview(b).cast("B")
        data = self.read(len(view))
        if data is None:
            return None
        view[: len(data)] = data
        return len(data)

    def _refill(self) -> int:
        if self._closed:
            return self._buffer.buffered
        return self._buffer.fill()

    def close(self) -> None:
        """
        Remove the watch and release the file. Safe to call more than once.
        Does not wait for the event loop; it winds down on its own.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            handle = self._buffer.release()

        errors = []
        try:
            self._subscription.close()
        except Exception as e:
            errors.append(e)
        try:
            if handle is not None:
                handle.close()
        except OSError as e:
            errors.append(e)

        if errors:
            log.error("Closing follower for %s failed: %s", self.path, errors)
            raise CloseError(errors)
        log.info("Stopped following %s", self.path)

    # -------------------------
    # Event loop
    # -------------------------
    def _follow_file(self) -> None:
        try:
            while True:
                try:
                    event = self._subscription.next_event()
                except (FollowerError, OSError) as err:
                    log.warning("Watch on %s failed: %s", self.path, err)
                    self._errors.put(err)
                    return
                if event is None:
                    return

                try:
                    self._handle(event)
                except UnexpectedEventError as err:
                    log.critical("Event loop for %s aborted: %s", self.path, err)
                    self._errors.put(err)
                    return
                except (FollowerError, OSError) as err:
                    log.warning("Stopped following %s: %s", self.path, err)
                    self._errors.put(err)
                    return
                except Exception as err:
                    log.exception("Event loop for %s crashed on %r", self.path, event)
                    self._errors.put(err)
                    return

                if self._wake.offer():
                    log.debug("Woke reader of %s", self.path)
        finally:
            try:
                self._subscription.close()
            except Exception:
                log.exception("Removing watch on %s failed", self.path)
            self._errors.close()
            self._wake.close()

    def _handle(self, event: FileEvent) -> None:
        if event.kind is EventKind.RENAMED:
            self._await_path()
        with self._lock:
            if self._closed:
                return
            kind = event.kind
            if kind is EventKind.CREATED:
                self._on_created()
            elif kind is EventKind.REMOVED:
                raise FileRemoved(f"file was removed: {self.path}")
            elif kind is EventKind.RENAMED:
                self._on_renamed()
            elif kind is EventKind.WRITTEN:
                self._on_written()
            elif kind is EventKind.METADATA_CHANGED:
                pass
            else:
                raise UnexpectedEventError(f"unknown event: {event!r}")

    def _on_written(self) -> None:
        size = self._buffer.size_on_disk()
        offset = self._buffer.offset()
        if size < offset:
            raise FileTruncated(f"file shrank below the read offset ({size} < {offset}): {self.path}")
        self._buffer.fill()

    def _await_path(self) -> None:
        """Give a rotating writer a moment to create the new file. Runs unlocked."""
        deadline = time.monotonic() + self.rename_grace
        while not os.path.exists(self.path) and not self.closed:
            if time.monotonic() >= deadline:
                return
            time.sleep(_RENAME_POLL)

    def _on_renamed(self) -> None:
        # the old handle still points at the moved file: take what it has
        self._buffer.drain()
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            raise FileRemoved(f"file was moved away and not recreated: {self.path}")
        if (st.st_dev, st.st_ino) == self._buffer.identity():
            return
        self._reopen()

    def _on_created(self) -> None:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            raise FileRemoved(f"file was removed: {self.path}")
        if (st.st_dev, st.st_ino) == self._buffer.identity():
            # the new file of a rotation that was already picked up
            self._buffer.fill()
            return
        raise FileTruncated(f"new file created with this name: {self.path}")

    def _reopen(self) -> None:
        handle = open(self.path, "rb", buffering=0)
        self._buffer.drain()
        old = self._buffer.swap(handle)
        if old is not None:
            old.close()
        log.info("%s was rotated, %d staged bytes carried over", self.path, self._buffer.buffered)
