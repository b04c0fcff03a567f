from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Union

from .buffer import GrowableBuffer
from .config import EngineConfig
from .errors import (
    BfiError,
    InputExhausted,
    OutOfBoundsWrite,
    StepLimitExceeded,
    UnterminatedLoop,
)
from .loader import LoadFault, LoadResult, ScriptLoader, Source, is_instruction
from .streams import ByteInput, ByteOutput

logger = logging.getLogger(__name__)

_LEFT, _RIGHT, _INC, _DEC, _OUT, _IN, _OPEN, _CLOSE = b"<>+-.,[]"

_FAILURE_VERBS = {
    _INC: "increment",
    _DEC: "decrement",
    _OUT: "write",
    _IN: "read",
    _OPEN: "test",
    _CLOSE: "test",
}


class EngineStatus(str, Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    RUNNING = "running"
    HALTED = "halted"
    FAULTED = "faulted"


class Outcome(str, Enum):
    CLEAN = "clean"
    LOAD_FAILED = "load_failed"
    RUN_FAILED = "run_failed"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    Outcome.CLEAN: 0,
    Outcome.LOAD_FAILED: 1,
    Outcome.RUN_FAILED: 2,
}


@dataclass(frozen=True)
class RunFault:
    """Execution stopped on ``command`` at script position ``pc``."""

    error: BfiError
    pc: int
    command: str


Fault = Union[LoadFault, RunFault]


@dataclass
class ExecutionState:
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


class BrainfuckEngine:
    """Executes a filtered script against a lazily grown data tape.

    Loops are resolved by scanning the script at jump time, so malformed
    bracket nesting only surfaces when the offending loop is reached.
    Every failure is recorded as a fault on the engine instead of being
    raised; a faulted engine will not step again until it is reloaded
    or reset.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        input: Optional[ByteInput] = None,
        output: Optional[ByteOutput] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.input = input if input is not None else ByteInput.stdin()
        self.output = output if output is not None else ByteOutput.stdout()
        self.script = GrowableBuffer(self.config)
        self.data = GrowableBuffer(self.config)
        self._loader = ScriptLoader(self.script)
        self._loaded = False
        self._run_fault: Optional[RunFault] = None
        self._status = EngineStatus.UNLOADED
        self.instruction_cursor = 0
        self.data_cursor = 0
        self.steps = 0

    def __enter__(self) -> "BrainfuckEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- state -----------------------------------------------------------

    @property
    def fault(self) -> Optional[Fault]:
        if self._loader.fault is not None:
            return self._loader.fault
        return self._run_fault

    @property
    def status(self) -> EngineStatus:
        if self.fault is not None:
            return EngineStatus.FAULTED
        return self._status

    @property
    def outcome(self) -> Outcome:
        fault = self.fault
        if isinstance(fault, LoadFault):
            return Outcome.LOAD_FAILED
        if isinstance(fault, RunFault):
            return Outcome.RUN_FAILED
        return Outcome.CLEAN

    @property
    def code_length(self) -> int:
        return self._loader.write_cursor

    @property
    def code(self) -> str:
        return self.script.tobytes(self.code_length).decode("ascii")

    def cell(self, position: Optional[int] = None) -> int:
        if position is None:
            position = self.data_cursor
        return self.data.read(position)

    def tape_window(self, start: int, end: int) -> List[int]:
        """Cells in ``[start, end)``; unwritten or out-of-range cells read as zero."""
        return self.data.window(start, end)

    def current_instruction(self) -> Optional[str]:
        value = self.script.read(self.instruction_cursor)
        if not is_instruction(value):
            return None
        return chr(value)

    # -- lifecycle -------------------------------------------------------

    def restart(self) -> None:
        """Rewind to the first instruction on a fresh tape, keeping the script."""
        self.data.release()
        self.instruction_cursor = 0
        self.data_cursor = 0
        self.steps = 0
        self._status = EngineStatus.LOADED if self._loaded else EngineStatus.UNLOADED

    def reset(self) -> None:
        """Drop the script and any fault, returning to the unloaded state."""
        self.script.release()
        self._loader = ScriptLoader(self.script)
        self._loaded = False
        self._run_fault = None
        self.restart()

    def close(self) -> None:
        self.reset()
        self.input.close()
        self.output.close()

    def set_input(self, endpoint: Union[ByteInput, bytes]) -> None:
        if not isinstance(endpoint, ByteInput):
            endpoint = ByteInput.from_bytes(endpoint)
        if endpoint is not self.input:
            self.input.close()
            self.input = endpoint

    def set_output(self, endpoint: ByteOutput) -> None:
        if endpoint is not self.output:
            self.output.close()
            self.output = endpoint

    # -- loading ---------------------------------------------------------

    def load(self, source: Union[Source, BinaryIO]) -> LoadResult:
        self.reset()
        self._loaded = True
        self._status = EngineStatus.LOADED
        if hasattr(source, "read"):
            self._loader.feed_stream(source, self.config.read_chunk)
        else:
            self._loader.feed(source)
        result = self._loader.result()
        logger.debug(
            "Loaded %d instructions from %d source bytes",
            result.script_length,
            result.read_length,
        )
        return result

    def load_file(self, path: Union[str, Path]) -> LoadResult:
        with open(path, "rb") as script:
            return self.load(script)

    def feed(self, chunk: Source) -> bool:
        """Append more source to the current load cycle."""
        if self.fault is not None:
            return False
        if not self._loaded:
            self._loaded = True
            self._status = EngineStatus.LOADED
        return self._loader.feed(chunk)

    # -- execution -------------------------------------------------------

    def step(self) -> bool:
        """Execute one instruction; ``False`` once halted or faulted."""
        if self.fault is not None:
            return False
        command = self.script.read(self.instruction_cursor)
        if not is_instruction(command):
            self._status = EngineStatus.HALTED
            return False
        self._status = EngineStatus.RUNNING
        try:
            self._execute(command)
        except BfiError as exc:
            self._run_fault = RunFault(exc, self.instruction_cursor, chr(command))
            logger.warning(
                "Failed to %s byte %d (%s): %s",
                _FAILURE_VERBS.get(command, "execute"),
                self.data_cursor,
                chr(command),
                exc,
            )
            return False
        self.instruction_cursor += 1
        self.steps += 1
        return True

    def run(self, max_steps: Optional[int] = None) -> Outcome:
        self.restart()
        while True:
            self._check_budget(max_steps)
            if not self.step():
                break
        return self.outcome

    def trace(
        self,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        """Restart, then yield a snapshot after every executed instruction."""
        self.restart()
        while True:
            self._check_budget(max_steps)
            command = self.current_instruction()
            if not self.step():
                break
            yield self.snapshot(command, tape_window)

        # Emit final snapshot indicating completion
        yield self.snapshot(None, tape_window)

    def snapshot(self, command: Optional[str] = None, tape_window: int = 10) -> ExecutionState:
        start = max(0, self.data_cursor - tape_window)
        end = max(start, self.data_cursor + tape_window + 1)
        return ExecutionState(
            step=self.steps,
            pc=self.instruction_cursor,
            command=command,
            pointer=self.data_cursor,
            tape_start=start,
            tape=self.tape_window(start, end),
            output=self._captured_output(),
            code_length=self.code_length,
        )

    def _check_budget(self, max_steps: Optional[int]) -> None:
        if max_steps is None or self.steps < max_steps:
            return
        if self.fault is None and self.current_instruction() is not None:
            raise StepLimitExceeded("Brainfuck program exceeded allowed step count")

    def _captured_output(self) -> str:
        stream = self.output.stream
        if isinstance(stream, io.BytesIO) and not stream.closed:
            return stream.getvalue().decode("latin-1")
        return ""

    def _execute(self, command: int) -> None:
        if command == _LEFT:
            # Bounds are checked when the cell is next accessed
            self.data_cursor -= 1
        elif command == _RIGHT:
            self.data_cursor += 1
        elif command == _INC:
            self.data.delta(self.data_cursor, 1)
        elif command == _DEC:
            self.data.delta(self.data_cursor, -1)
        elif command == _OUT:
            if self.data_cursor < 0:
                raise OutOfBoundsWrite(f"cell {self.data_cursor} is before the tape origin")
            self.output.write_byte(self.data.read(self.data_cursor))
        elif command == _IN:
            value = self.input.read_byte()
            if value is None:
                raise InputExhausted("no input byte available")
            self.data.write(self.data_cursor, value)
        elif command == _OPEN:
            if not self.data.read(self.data_cursor):
                self.instruction_cursor = self._match_forward(self.instruction_cursor)
        elif command == _CLOSE:
            if self.data.read(self.data_cursor):
                self.instruction_cursor = self._match_backward(self.instruction_cursor)

    def _match_forward(self, start: int) -> int:
        depth = 1
        position = start
        while True:
            position += 1
            value = self.script.read(position)
            if not is_instruction(value):
                raise UnterminatedLoop(f"no ']' matches '[' at {start}")
            if value == _OPEN:
                depth += 1
            elif value == _CLOSE:
                depth -= 1
                if not depth:
                    return position

    def _match_backward(self, start: int) -> int:
        depth = 1
        position = start
        while position > 0:
            position -= 1
            value = self.script.read(position)
            if value == _CLOSE:
                depth += 1
            elif value == _OPEN:
                depth -= 1
                if not depth:
                    return position
        raise UnterminatedLoop(f"no '[' matches ']' at {start}")


__all__ = [
    "BrainfuckEngine",
    "EngineStatus",
    "ExecutionState",
    "Fault",
    "Outcome",
    "RunFault",
]
