"""
Hand-off primitives between the event loop and a blocked reader.

WakeSignal is a single slot: offering while a wake is already pending is a
no-op, so a burst of events collapses into one "re-check" for the reader.
ErrorSignal carries at most one terminal error, then reads as closed.
"""
from __future__ import annotations
import threading
from typing import Optional, Tuple


class WakeSignal:
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = False
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def offer(self) -> bool:
        """Post a wake without blocking. Returns False if it was coalesced or dropped."""
        with self._cond:
            if self._closed or self._pending:
                return False
            self._pending = True
            self._cond.notify()
            return True

    def wait(self) -> bool:
        """
        Block until a wake is posted or the signal is closed.
        Returns True for a wake, False once closed.
        """
        with self._cond:
            while not self._pending and not self._closed:
                self._cond.wait()
            if self._closed:
                return False
            self._pending = False
            return True

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class ErrorSignal:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._error: Optional[BaseException] = None
        self._closed = False

    def put(self, error: BaseException) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("error signal already closed")
            self._error = error
            self._closed = True

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def poll(self) -> Tuple[Optional[BaseException], bool]:
        """
        Non-blocking check. Returns (error, closed); a returned error is
        consumed, so later polls report only (None, True).
        """
        with self._lock:
            error, self._error = self._error, None
            return error, self._closed
