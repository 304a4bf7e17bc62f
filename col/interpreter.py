"""
Command-line interpreter for col programs.

Usage:
    col examples/hello.col
    col examples/countdown.col --delay 50
    echo hi | col examples/echo.col
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .errors import ColError
from .machine import ColMachine, GC_INTERVAL, S_HALTED
from .program import Program

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_HALTED = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Interpret a col program",
        prog="col",
    )
    parser.add_argument("file", help="Source file to interpret")
    parser.add_argument("--delay", type=int, default=0, metavar="MS",
                        help="Milliseconds to delay between steps")
    parser.add_argument("--max-steps", type=int, default=None, metavar="N",
                        help="Stop after N steps if the program has not terminated")
    parser.add_argument("--gc-interval", type=int, default=GC_INTERVAL, metavar="N",
                        help=f"Steps between stack collection sweeps (default: {GC_INTERVAL})")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log machine events to stderr")
    parser.add_argument("--stats", action="store_true",
                        help="Print execution counters to stderr when done")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    path = Path(args.file)
    try:
        program = Program.load_file(path)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: could not read {path}: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        machine = ColMachine(
            program,
            reader=sys.stdin.buffer,
            writer=sys.stdout,
            gc_interval=args.gc_interval,
        )
        state = machine.run(max_steps=args.max_steps, delay_ms=args.delay)
    except ColError as e:
        sys.stdout.flush()
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except (OSError, UnicodeEncodeError) as e:
        print(f"Error: an I/O error occurred: {e}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        sys.stdout.flush()

    if args.stats:
        print(machine.stats_summary(), file=sys.stderr)

    if state == S_HALTED:
        print(f"Stopped after {args.max_steps} steps", file=sys.stderr)
        return EXIT_HALTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
