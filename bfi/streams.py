from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import IO, Iterable, List, Optional, Union

from .errors import OutputFailure


def _standard_stream(name: str) -> Optional[IO]:
    stream = getattr(sys, name, None)
    if stream is None:
        return None
    # Redirected or embedded hosts (StringIO, IDLE, notebooks) expose text only
    return getattr(stream, "buffer", stream)


def _is_text(stream: Optional[IO]) -> bool:
    return isinstance(stream, io.TextIOBase)


class _Endpoint:
    def __init__(self, stream: Optional[IO], owned: bool = False) -> None:
        self.stream = stream
        self.owned = owned

    @property
    def closed(self) -> bool:
        return self.stream is None or getattr(self.stream, "closed", False)

    def close(self) -> None:
        """Close the stream only if this endpoint opened it."""
        if self.owned and not self.closed:
            self.stream.close()
        self.stream = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(stream={self.stream!r}, owned={self.owned})"


class ByteInput(_Endpoint):
    """Single-byte reader over a stream.

    Binary streams are read byte by byte. Text streams are read one
    character at a time and handed out as its UTF-8 bytes.
    """

    def __init__(self, stream: Optional[IO], owned: bool = False) -> None:
        super().__init__(stream, owned)
        self._pending: List[int] = []

    @classmethod
    def stdin(cls) -> "ByteInput":
        return cls(_standard_stream("stdin"))

    @classmethod
    def from_bytes(cls, data: Union[bytes, bytearray, Iterable[int]]) -> "ByteInput":
        return cls(io.BytesIO(bytes(data)), owned=True)

    @classmethod
    def open(cls, path: Union[str, Path]) -> "ByteInput":
        return cls(open(path, "rb"), owned=True)

    def read_byte(self) -> Optional[int]:
        """Return the next byte, or ``None`` when nothing is available."""
        if self._pending:
            return self._pending.pop(0)
        if self.closed:
            return None
        try:
            chunk = self.stream.read(1)
        except (OSError, ValueError, TypeError):
            return None
        if not chunk:
            return None
        if isinstance(chunk, str):
            encoded = chunk.encode("utf-8")
            self._pending.extend(encoded[1:])
            return encoded[0]
        return chunk[0]


class ByteOutput(_Endpoint):
    """Single-byte writer that flushes after every byte.

    A text sink receives ``chr(byte)``, i.e. the latin-1 character.
    """

    @classmethod
    def stdout(cls) -> "ByteOutput":
        return cls(_standard_stream("stdout"))

    @classmethod
    def capture(cls) -> "ByteOutput":
        return cls(io.BytesIO())

    @classmethod
    def open(cls, path: Union[str, Path]) -> "ByteOutput":
        return cls(open(path, "wb"), owned=True)

    def write_byte(self, value: int) -> None:
        if self.closed:
            raise OutputFailure("no output stream available")
        value &= 0xFF
        payload = chr(value) if _is_text(self.stream) else bytes((value,))
        try:
            written = self.stream.write(payload)
            self.stream.flush()
        except (OSError, ValueError, TypeError) as exc:
            raise OutputFailure(f"output stream rejected byte: {exc}") from exc
        if written == 0:
            raise OutputFailure("output stream accepted no bytes")

    def getvalue(self) -> bytes:
        """Captured bytes, for endpoints created by ``capture()``."""
        if not isinstance(self.stream, io.BytesIO):
            raise TypeError("getvalue() is only available on captured output")
        return self.stream.getvalue()


__all__ = ["ByteInput", "ByteOutput"]
