"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides
common fixtures and configuration for all test files.
"""
from __future__ import annotations
import queue
import threading
import pytest
from pathlib import Path

from logfollow.events import FileEvent


class ScriptedSubscription:
    """
    In-memory stand-in for a filesystem subscription.
    Tests push events and errors; the follower's event loop consumes them.
    """

    def __init__(self, path: str, close_error: Exception = None) -> None:
        self.path = path
        self.close_error = close_error
        self.close_calls = 0
        self.requests = 0
        self._items: "queue.Queue[object]" = queue.Queue()
        self._cond = threading.Condition()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def push(self, kind) -> None:
        self._items.put(FileEvent(kind, self.path))

    def fail(self, error: BaseException) -> None:
        self._items.put(error)

    def next_event(self):
        with self._cond:
            self.requests += 1
            self._cond.notify_all()
        item = self._items.get()
        if item is None:
            self._items.put(None)
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    def wait_handled(self, count: int, timeout: float = 5.0) -> bool:
        """Wait until the loop has finished handling `count` items."""
        with self._cond:
            return self._cond.wait_for(lambda: self.requests > count, timeout)

    def close(self) -> None:
        self.close_calls += 1
        if self._closed.is_set():
            return
        self._closed.set()
        self._items.put(None)
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root):
    """Return path to the sample follow configuration."""
    return project_root / "configs" / "follow.yaml"


@pytest.fixture
def log_path(tmp_path):
    """An empty file to follow, alone in its own directory."""
    path = tmp_path / "app.log"
    path.write_bytes(b"")
    return path


@pytest.fixture
def append(log_path):
    """Append bytes to the followed file and flush them to disk."""
    def _append(data: bytes, path: Path = None) -> None:
        with open(path or log_path, "ab") as f:
            f.write(data)
            f.flush()
    return _append


@pytest.fixture
def scripted():
    """A subscribe() replacement handing out ScriptedSubscriptions."""
    subscriptions = []

    def subscribe(path: str) -> ScriptedSubscription:
        sub = ScriptedSubscription(path)
        subscriptions.append(sub)
        return sub

    subscribe.subscriptions = subscriptions
    return subscribe


def _read_until(follower, n: int, timeout: float = 5.0) -> bytes:
    """
    Read until n bytes arrived or the stream ended.
    The follower is closed after `timeout` so a stuck read cannot hang the suite.
    """
    data = bytearray()
    timer = threading.Timer(timeout, follower.close)
    timer.daemon = True
    timer.start()
    try:
        while len(data) < n:
            chunk = follower.read(n - len(data))
            if chunk is None:
                continue
            if not chunk:
                break
            data += chunk
    finally:
        timer.cancel()
    return bytes(data)


def _read_to_end(follower, timeout: float = 5.0) -> bytes:
    """Read until end-of-stream, closing the follower after `timeout`."""
    data = bytearray()
    timer = threading.Timer(timeout, follower.close)
    timer.daemon = True
    timer.start()
    try:
        while True:
            chunk = follower.read()
            if chunk is None:
                continue
            if not chunk:
                break
            data += chunk
    finally:
        timer.cancel()
    return bytes(data)


@pytest.fixture
def read_until():
    return _read_until


@pytest.fixture
def read_to_end():
    return _read_to_end
