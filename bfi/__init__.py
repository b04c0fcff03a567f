from .buffer import GrowableBuffer
from .config import EngineConfig
from .engine import BrainfuckEngine, EngineStatus, ExecutionState, Outcome, RunFault
from .errors import (
    AllocationFailure,
    BfiError,
    InputExhausted,
    OutOfBoundsWrite,
    OutputFailure,
    StepLimitExceeded,
    UnterminatedLoop,
)
from .loader import LoadFault, LoadResult, ScriptLoader
from .streams import ByteInput, ByteOutput
from .visualizer import VisualizerSession

__all__ = [
    "AllocationFailure",
    "BfiError",
    "BrainfuckEngine",
    "ByteInput",
    "ByteOutput",
    "EngineConfig",
    "EngineStatus",
    "ExecutionState",
    "GrowableBuffer",
    "InputExhausted",
    "LoadFault",
    "LoadResult",
    "OutOfBoundsWrite",
    "Outcome",
    "OutputFailure",
    "RunFault",
    "ScriptLoader",
    "StepLimitExceeded",
    "UnterminatedLoop",
    "VisualizerSession",
]
