from __future__ import annotations

from typing import List, Optional

from .config import EngineConfig
from .errors import AllocationFailure, OutOfBoundsWrite


class GrowableBuffer:
    """Byte storage addressed by integer cursors that grows on demand.

    Writes validate the cursor and extend the storage with zero bytes;
    reads never fail and never grow. A read outside the allocated region
    (left of the origin, or at/after ``capacity``) yields ``0``, so cells
    that were never written behave as zero whether or not they exist yet.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self._data = bytearray(self.config.initial_capacity)

    @property
    def capacity(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def ensure(self, cursor: int) -> None:
        """Make ``cursor`` addressable, growing the storage if needed.

        Raises ``OutOfBoundsWrite`` for a cursor left of the origin and
        ``AllocationFailure`` when the configured ceiling (or the host)
        refuses the growth. Existing bytes are preserved.
        """
        if cursor < 0:
            raise OutOfBoundsWrite(f"cursor {cursor} is before the buffer origin")
        capacity = len(self._data)
        if capacity and cursor < capacity - 1:
            return
        size = max(cursor + 1, capacity + self.config.growth_chunk)
        max_size = self.config.max_size
        if max_size is not None:
            if cursor + 1 > max_size:
                raise AllocationFailure(
                    f"cursor {cursor} exceeds the allocation limit of {max_size} bytes"
                )
            size = min(size, max_size)
        if size <= capacity:
            return
        try:
            self._data.extend(bytes(size - capacity))
        except MemoryError as exc:
            raise AllocationFailure(f"unable to grow buffer to {size} bytes") from exc

    def write(self, cursor: int, value: int) -> None:
        self.ensure(cursor)
        self._data[cursor] = value & 0xFF

    def read(self, cursor: int) -> int:
        if cursor < 0 or cursor >= len(self._data):
            return 0
        return self._data[cursor]

    def delta(self, cursor: int, amount: int) -> None:
        self.ensure(cursor)
        self._data[cursor] = (self._data[cursor] + amount) & 0xFF

    def window(self, start: int, end: int) -> List[int]:
        """Lazy read of ``[start, end)``; unallocated cells read as zero."""
        return [self.read(position) for position in range(start, end)]

    def tobytes(self, length: Optional[int] = None) -> bytes:
        if length is None:
            return bytes(self._data)
        return bytes(self._data[:length])

    def release(self) -> None:
        self._data = bytearray(self.config.initial_capacity)


__all__ = ["GrowableBuffer"]
