from __future__ import annotations
import os
from typing import BinaryIO, Optional

DEFAULT_BUFFER_SIZE = 64 * 1024


class ReadBuffer:
    """
    Staging buffer in front of a raw file handle.

    `buffered` is the only measure of what can be delivered right now.
    The handle can be swapped while bytes are staged; staged bytes stay in
    front of whatever the new handle produces.
    """

    def __init__(self, handle: BinaryIO, size: int = DEFAULT_BUFFER_SIZE) -> None:
        if size <= 0:
            raise ValueError(f"buffer size must be positive, got {size}")
        self.handle: Optional[BinaryIO] = handle
        self.size = size
        self._staged = bytearray()

    @property
    def buffered(self) -> int:
        return len(self._staged)

    def fill(self) -> int:
        """
        Stage one chunk from the handle if nothing is staged.
        Hitting end-of-file is not an error; returns the staged count.
        """
        if not self._staged and self.handle is not None:
            chunk = self.handle.read(self.size)
            if chunk:
                self._staged += chunk
        return len(self._staged)

    def drain(self) -> int:
        """Stage everything left in the handle up to its current end."""
        if self.handle is None:
            return len(self._staged)
        while True:
            chunk = self.handle.read(self.size)
            if not chunk:
                break
            self._staged += chunk
        return len(self._staged)

    def read(self, n: int) -> bytes:
        if n < 0:
            n = len(self._staged)
        out = bytes(self._staged[:n])
        del self._staged[:n]
        return out

    def offset(self) -> int:
        """Position of the handle in the file (bytes staged are already behind it)."""
        if self.handle is None:
            return 0
        return self.handle.tell()

    def size_on_disk(self) -> int:
        if self.handle is None:
            return 0
        return os.fstat(self.handle.fileno()).st_size

    def identity(self):
        if self.handle is None:
            return None
        st = os.fstat(self.handle.fileno())
        return st.st_dev, st.st_ino

    def swap(self, handle: BinaryIO) -> BinaryIO:
        """Replace the handle, keeping staged bytes. Returns the old handle."""
        old, self.handle = self.handle, handle
        return old

    def release(self) -> Optional[BinaryIO]:
        """Detach the handle so nothing refills the buffer again."""
        old, self.handle = self.handle, None
        return old
