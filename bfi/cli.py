from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import DEFAULT_GROWTH_CHUNK, EngineConfig
from .engine import BrainfuckEngine, Outcome
from .errors import StepLimitExceeded
from .streams import ByteInput, ByteOutput

logger = logging.getLogger(__name__)


def _read_source(path: str) -> bytes:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_bytes()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Brainfuck interpreter")
    parser.add_argument("source", nargs="?", help="Path to a Brainfuck script")
    parser.add_argument(
        "-e",
        "--execute",
        metavar="CODE",
        help="Run CODE instead of reading a script file",
    )
    parser.add_argument(
        "--input",
        metavar="FILE",
        help="Read program input from FILE (default: standard input)",
    )
    parser.add_argument(
        "--output",
        metavar="FILE",
        help="Write program output to FILE (default: standard output)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort after this many instructions",
    )
    parser.add_argument(
        "--growth-chunk",
        type=int,
        default=DEFAULT_GROWTH_CHUNK,
        help=f"Bytes added per buffer growth (default: {DEFAULT_GROWTH_CHUNK})",
    )
    parser.add_argument(
        "--max-memory",
        type=int,
        default=None,
        help="Refuse to grow the tape or script beyond this many bytes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug diagnostics to stderr",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if (args.source is None) == (args.execute is None):
        parser.error("provide either a script path or --execute CODE")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = EngineConfig(growth_chunk=args.growth_chunk, max_size=args.max_memory)
    except ValueError as exc:
        parser.error(str(exc))

    if args.execute is not None:
        source = args.execute.encode("utf-8")
    else:
        try:
            source = _read_source(args.source)
        except OSError as exc:
            print(str(exc), file=sys.stderr)
            return Outcome.LOAD_FAILED.exit_code

    program_input = ByteInput.stdin()
    program_output = ByteOutput.stdout()
    try:
        if args.input:
            program_input = ByteInput.open(args.input)
        if args.output:
            program_output = ByteOutput.open(args.output)
    except OSError as exc:
        program_input.close()
        print(f"Cannot open stream: {exc}", file=sys.stderr)
        return Outcome.LOAD_FAILED.exit_code

    with BrainfuckEngine(config, input=program_input, output=program_output) as engine:
        result = engine.load(source)
        if not result:
            print(
                f"Failed to load script at byte {result.fault.offset}",
                file=sys.stderr,
            )
            return Outcome.LOAD_FAILED.exit_code

        try:
            outcome = engine.run(max_steps=args.max_steps)
        except StepLimitExceeded as exc:
            print(str(exc), file=sys.stderr)
            return Outcome.RUN_FAILED.exit_code
        logger.debug("Finished after %d steps: %s", engine.steps, outcome.value)
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
