#!/usr/bin/env python3
"""
sim86 — 8086 subset disassembler / micro-emulator CLI

Usage:
    python sim86.py <input.bin> [MODE] [--exec] [--dump memory.bin]
                                [-v|-vv|-q] [--log-file run.log]

Any second positional argument (or --exec) turns on emulate mode: each
instruction is executed and annotated, and the final registers and flags
are printed after the listing.

Examples:
    python sim86.py listing_0039                  # disassemble to stdout
    python sim86.py listing_0048 exec             # disassemble + execute
    python sim86.py listing_0054 --exec --dump mem.data -v

Exit status: 0 when the whole buffer decoded, 1 on a decode failure or
unreadable input, 2 on bad arguments.
"""

import argparse
import logging
import sys
from pathlib import Path

from sim8086 import __version__
from sim8086.log import setup_logging
from sim8086.runner import RunState, run

log = logging.getLogger("sim8086.cli")


def _console_level(verbose: int, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sim86",
        description="8086 subset decoder and micro-emulator",
    )
    parser.add_argument("input", help="Raw 8086 machine code file")
    parser.add_argument("mode", nargs="?", default=None,
                        help="Any value enables emulate mode (e.g. 'exec')")
    parser.add_argument("--exec", dest="exec_", action="store_true",
                        help="Execute instructions and annotate their effects")
    parser.add_argument("--dump", type=Path, default=None, metavar="PATH",
                        help="Write the emulator memory image to PATH after the run")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="More log output on stderr (-v info, -vv debug)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", type=Path, default=None, metavar="PATH",
                        help="Also write a DEBUG log to PATH")
    parser.add_argument("--version", action="version",
                        version=f"sim86 {__version__}")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(_console_level(args.verbose, args.quiet), args.log_file)

    try:
        data = Path(args.input).read_bytes()
    except OSError as e:
        print(f"Error: cannot read {args.input}: {e}", file=sys.stderr)
        return 1

    emulate = args.exec_ or args.mode is not None
    result = run(data, sys.stdout, emulate=emulate)

    if args.dump:
        if emulate:
            written = result.emulator.dump_memory(args.dump)
            log.info("Wrote %d bytes of memory to %s", written, args.dump)
        else:
            log.warning("--dump ignored: emulate mode is off")

    return 0 if result.state is RunState.EXHAUSTED else 1


if __name__ == "__main__":
    sys.exit(main())
