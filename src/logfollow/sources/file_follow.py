from __future__ import annotations
from typing import Iterator, Optional, Tuple

from ..buffer import DEFAULT_BUFFER_SIZE
from ..follower import Follower, follow


def iter_lines(
    stream: Follower,
    *,
    encoding: str = "utf-8",
    errors: str = "replace",
    yield_heartbeat: bool = False,
) -> Iterator[Tuple[int, str]]:
    """
    Split a follower's byte stream into lines.
    Yields (line_no, line) with the newline kept. A line is only yielded once
    its newline has arrived; whatever is left when the stream ends is yielded
    as a final line.
    With yield_heartbeat, every "nothing new" wake-up yields (0, "") so the
    caller gets a chance to run idle work.
    """
    line_no = 0
    pending = bytearray()

    while True:
        chunk: Optional[bytes] = stream.read()
        if chunk is None:
            if yield_heartbeat:
                yield 0, ""
            continue
        if not chunk:
            break
        pending += chunk
        while True:
            end = pending.find(b"\n")
            if end < 0:
                break
            line = bytes(pending[: end + 1])
            del pending[: end + 1]
            line_no += 1
            yield line_no, line.decode(encoding, errors)

    if pending:
        line_no += 1
        yield line_no, pending.decode(encoding, errors)


def follow_file(
    path: str,
    *,
    start_at_end: bool = True,
    encoding: str = "utf-8",
    errors: str = "replace",
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    yield_heartbeat: bool = False,
) -> Iterator[Tuple[int, str]]:
    """
    Follow a text file like `tail -f`.
    Yields (line_no, line). line_no counts from 1 at the first line read,
    which is the first line of the file only when start_at_end=False.
    Rotation by move-and-recreate is followed transparently; truncation and
    removal raise FileTruncated / FileRemoved.
    """
    follower = follow(path, from_start=not start_at_end, buffer_size=buffer_size)
    try:
        yield from iter_lines(
            follower,
            encoding=encoding,
            errors=errors,
            yield_heartbeat=yield_heartbeat,
        )
    finally:
        follower.close()
