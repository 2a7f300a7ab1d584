from __future__ import annotations
from typing import List


class FollowerError(Exception):
    """Base class for conditions raised by a Follower."""


class FileTruncated(FollowerError):
    """
    The followed file was replaced or shrunk under the reader.
    Offsets already delivered no longer match the file; discard the follower.
    """


class FileRemoved(FollowerError):
    """The followed file was removed. Discard the follower."""


class SubscriptionError(FollowerError):
    """The filesystem notification mechanism itself failed."""


class UnexpectedEventError(FollowerError):
    """An event outside the documented vocabulary reached the follower."""


class CloseError(FollowerError):
    def __init__(self, errors: List[BaseException]) -> None:
        self.errors = list(errors)
        detail = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(f"close failed ({detail})")
