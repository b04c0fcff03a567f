from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


DEFAULT_GROWTH_CHUNK = 256
DEFAULT_READ_CHUNK = 256


@dataclass(frozen=True)
class EngineConfig:
    """Sizing knobs shared by the script buffer and the data tape."""

    growth_chunk: int = DEFAULT_GROWTH_CHUNK
    max_size: Optional[int] = None
    initial_capacity: int = 0
    read_chunk: int = DEFAULT_READ_CHUNK

    def __post_init__(self) -> None:
        if self.growth_chunk < 1:
            raise ValueError("growth_chunk must be at least 1")
        if self.initial_capacity < 0:
            raise ValueError("initial_capacity must not be negative")
        if self.read_chunk < 1:
            raise ValueError("read_chunk must be at least 1")
        if self.max_size is not None:
            if self.max_size < 1:
                raise ValueError("max_size must be at least 1")
            if self.initial_capacity > self.max_size:
                raise ValueError("initial_capacity exceeds max_size")


__all__ = ["DEFAULT_GROWTH_CHUNK", "DEFAULT_READ_CHUNK", "EngineConfig"]
