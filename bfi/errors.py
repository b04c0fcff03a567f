from __future__ import annotations


class BfiError(RuntimeError):
    """Base class for every failure the engine can record."""


class TapeError(BfiError):
    """A buffer refused to store a byte."""


class AllocationFailure(TapeError):
    """The buffer could not grow to reach the requested cursor."""


class OutOfBoundsWrite(TapeError):
    """A write or delta targeted a cursor left of the buffer origin."""


class UnterminatedLoop(BfiError):
    """A bracket scan ran off the script without finding its partner."""


class InputExhausted(BfiError):
    """The input endpoint had no byte left to give."""


class OutputFailure(BfiError):
    """The output endpoint rejected a byte."""


class StepLimitExceeded(BfiError):
    """Raised when execution exceeds the caller's step budget."""


__all__ = [
    "AllocationFailure",
    "BfiError",
    "InputExhausted",
    "OutOfBoundsWrite",
    "OutputFailure",
    "StepLimitExceeded",
    "TapeError",
    "UnterminatedLoop",
]
