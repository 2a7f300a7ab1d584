"""
Test cases for translating watchdog events into follower events.

Tests cover:
- Classification of watchdog events for the followed path
- Filtering of unrelated paths and event types
- Subscription errors
- A live watchdog subscription
"""
from __future__ import annotations
import os
import threading
import pytest
from watchdog.events import (
    DirDeletedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileOpenedEvent,
)

from logfollow.errors import SubscriptionError
from logfollow.events import EventKind, FileEvent, PathEventHandler, subscribe


@pytest.fixture
def handled(log_path):
    """A PathEventHandler for log_path plus the lists it reports into."""
    events, errors = [], []
    handler = PathEventHandler(str(log_path), events.append, errors.append)
    return handler, events, errors


def _kinds(events):
    return [e.kind for e in events]


class TestClassification:
    """Test mapping of raw watchdog events."""

    def test_modified_with_new_content(self, handled, log_path, append):
        handler, events, _ = handled
        append(b"grown")
        handler.dispatch(FileModifiedEvent(str(log_path)))
        assert events == [FileEvent(EventKind.WRITTEN, str(log_path))]

    def test_modified_without_new_content(self, handled, log_path):
        """Attribute-only changes are reported as metadata changes."""
        handler, events, _ = handled
        os.chmod(log_path, 0o600)
        handler.dispatch(FileModifiedEvent(str(log_path)))
        assert _kinds(events) == [EventKind.METADATA_CHANGED]

    def test_close_after_write(self, handled, log_path, append):
        handler, events, _ = handled
        append(b"x")
        handler.dispatch(FileClosedEvent(str(log_path)))
        handler.dispatch(FileClosedEvent(str(log_path)))
        assert _kinds(events) == [EventKind.WRITTEN, EventKind.METADATA_CHANGED]

    def test_moved_away(self, handled, log_path):
        handler, events, _ = handled
        handler.dispatch(FileMovedEvent(str(log_path), str(log_path) + ".1"))
        assert _kinds(events) == [EventKind.RENAMED]

    def test_moved_onto(self, handled, log_path):
        """Another file renamed onto the path counts as a new file there."""
        handler, events, _ = handled
        handler.dispatch(FileMovedEvent(str(log_path) + ".tmp", str(log_path)))
        assert _kinds(events) == [EventKind.CREATED]

    def test_created(self, handled, log_path):
        handler, events, _ = handled
        handler.dispatch(FileCreatedEvent(str(log_path)))
        assert _kinds(events) == [EventKind.CREATED]

    def test_deleted(self, handled, log_path):
        handler, events, _ = handled
        handler.dispatch(FileDeletedEvent(str(log_path)))
        assert _kinds(events) == [EventKind.REMOVED]

    def test_modified_after_removal_is_dropped(self, handled, log_path):
        """A late modify for a file that is already gone waits for the delete."""
        handler, events, _ = handled
        os.remove(log_path)
        handler.dispatch(FileModifiedEvent(str(log_path)))
        assert events == []

    def test_relative_and_absolute_paths_match(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "rel.log").write_bytes(b"")
        events = []
        handler = PathEventHandler("rel.log", events.append, events.append)
        handler.dispatch(FileDeletedEvent(str(tmp_path / "rel.log")))
        assert events == [FileEvent(EventKind.REMOVED, str(tmp_path / "rel.log"))]


class TestFiltering:
    """Test events that never reach the follower."""

    def test_other_file(self, handled, tmp_path):
        handler, events, _ = handled
        other = str(tmp_path / "other.log")
        handler.dispatch(FileModifiedEvent(other))
        handler.dispatch(FileCreatedEvent(other))
        handler.dispatch(FileDeletedEvent(other))
        handler.dispatch(FileMovedEvent(other, other + ".1"))
        assert events == []

    def test_opened(self, handled, log_path):
        handler, events, _ = handled
        handler.dispatch(FileOpenedEvent(str(log_path)))
        assert events == []


class TestSubscriptionErrors:
    """Test failures of the watch itself."""

    def test_watched_directory_removed(self, handled, tmp_path):
        handler, events, errors = handled
        handler.dispatch(DirDeletedEvent(str(tmp_path)))
        assert events == []
        assert len(errors) == 1
        assert isinstance(errors[0], SubscriptionError)

    def test_other_directory_removed(self, handled, tmp_path):
        handler, events, errors = handled
        handler.dispatch(DirDeletedEvent(str(tmp_path / "sub")))
        assert events == [] and errors == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(SubscriptionError):
            subscribe(str(tmp_path / "nowhere" / "app.log"))


class TestLiveSubscription:
    """Test a real watchdog subscription."""

    def test_reports_write(self, log_path, append):
        sub = subscribe(str(log_path))
        timer = threading.Timer(5.0, sub.close)
        timer.daemon = True
        timer.start()
        try:
            append(b"hello\n")
            event = sub.next_event()
        finally:
            timer.cancel()
            sub.close()
        assert event == FileEvent(EventKind.WRITTEN, os.path.abspath(str(log_path)))

    def test_close_ends_stream(self, log_path):
        sub = subscribe(str(log_path))
        sub.close()
        sub.close()
        assert sub.closed
        assert sub.next_event() is None
        assert sub.next_event() is None
