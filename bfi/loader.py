from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

from .buffer import GrowableBuffer
from .config import DEFAULT_READ_CHUNK
from .errors import TapeError

logger = logging.getLogger(__name__)

INSTRUCTIONS = b"<>+-.,[]"
_INSTRUCTION_SET = frozenset(INSTRUCTIONS)

Source = Union[bytes, bytearray, memoryview, str]


def is_instruction(value: int) -> bool:
    return value in _INSTRUCTION_SET


@dataclass(frozen=True)
class LoadFault:
    """Loading stopped at the 1-based source ``offset``."""

    offset: int
    error: TapeError


@dataclass(frozen=True)
class LoadResult:
    read_length: int
    script_length: int
    fault: Optional[LoadFault] = None

    def __bool__(self) -> bool:
        return self.fault is None


class ScriptLoader:
    """Filters source bytes down to instructions and appends them to a buffer.

    Every consumed byte counts toward ``read_length``, comments included,
    so a load fault can point at the exact source offset. After a fault the
    loader refuses further input.
    """

    def __init__(self, script: GrowableBuffer) -> None:
        self.script = script
        self.write_cursor = 0
        self.read_length = 0
        self.fault: Optional[LoadFault] = None

    def put_byte(self, value: int) -> bool:
        if self.fault is not None:
            return False
        self.read_length += 1
        if not is_instruction(value):
            return True
        try:
            self.script.write(self.write_cursor, value)
        except TapeError as exc:
            self.fault = LoadFault(self.read_length, exc)
            logger.warning("Failed to load script at byte %d: %s", self.read_length, exc)
            return False
        self.write_cursor += 1
        return True

    def feed(self, chunk: Source) -> bool:
        if self.fault is not None:
            return False
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        for value in bytes(chunk):
            if not self.put_byte(value):
                return False
        return True

    def feed_stream(self, stream: BinaryIO, read_chunk: int = DEFAULT_READ_CHUNK) -> bool:
        while True:
            chunk = stream.read(read_chunk)
            if not chunk:
                return self.fault is None
            if not self.feed(chunk):
                return False

    def result(self) -> LoadResult:
        return LoadResult(
            read_length=self.read_length,
            script_length=self.write_cursor,
            fault=self.fault,
        )


__all__ = [
    "INSTRUCTIONS",
    "LoadFault",
    "LoadResult",
    "ScriptLoader",
    "is_instruction",
]
