#!/usr/bin/env python3
"""
svm - stackvm program runner

Usage:
    python svm.py [program.svm] [--profile default|lenient|bounded]
                  [--max-steps N] [--on-bad-jump error|halt]
                  [--break ADDR ...] [--trace] [--listing] [--strict]
                  [-v] [-q] [--log-file PATH]

The program is read from the given file, or from stdin when the file is
omitted or '-'. PRINT output goes to stdout; diagnostics go to stderr.

Exit codes:
    0  program halted, ran off its last line, or stopped at a breakpoint
    1  load error (--strict), empty program, or runtime fault
    2  internal error
    3  step limit reached

Examples:
    python svm.py hello.svm
    python svm.py loop.svm --profile bounded --trace
    python svm.py loop.svm --listing
    cat prog.svm | python svm.py --break 40 -v
"""

import argparse
import logging
import sys
from pathlib import Path

from stackvm import __version__
from stackvm.config import JumpPolicy, PROFILES, get_profile
from stackvm.engine import StopReason, VirtualMachine
from stackvm.errors import EmptyProgramError, VMError
from stackvm.loader import Loader
from stackvm.log_setup import setup_logging

log = logging.getLogger("stackvm.cli")

EXIT_OK = 0
EXIT_FAULT = 1
EXIT_INTERNAL = 2
EXIT_TIMEOUT = 3


def parse_int_arg(value: str) -> int:
    """Parse an integer argument that may be hex (0x...) or decimal."""
    value = value.strip()
    if value.lower().startswith(("0x", "-0x")):
        return int(value, 16)
    return int(value)


def parse_step_limit(value: str) -> int:
    """argparse type for --max-steps: a positive integer."""
    try:
        limit = parse_int_arg(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid step count: {value!r}")
    if limit < 1:
        raise argparse.ArgumentTypeError(f"step limit must be at least 1, got {limit}")
    return limit


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svm",
        description="Run a line-addressed stack machine program",
        epilog="Profiles: " + ", ".join(
            f"{name} ({cfg.description})" for name, cfg in PROFILES.items()),
    )
    parser.add_argument("program", nargs="?", default="-",
                        help="Program file (default: stdin)")
    parser.add_argument("--profile", default="default", choices=list(PROFILES.keys()),
                        help="Run profile (default: default)")
    parser.add_argument("--max-steps", type=parse_step_limit, default=None,
                        help="Stop after this many instructions (exit code 3)")
    parser.add_argument("--on-bad-jump", choices=[p.value for p in JumpPolicy],
                        default=None,
                        help="Jump to a missing address: fail the run or halt it")
    parser.add_argument("--break", dest="breakpoints", action="append",
                        type=parse_int_arg, default=[], metavar="ADDR",
                        help="Stop before executing the instruction at ADDR (repeatable)")
    parser.add_argument("--trace", action="store_true",
                        help="Print an execution trace to stderr after the run")
    parser.add_argument("--listing", action="store_true",
                        help="Print the loaded program and exit")
    parser.add_argument("--strict", action="store_true",
                        help="Refuse to run if any line was rejected by the loader")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="More console logging (-v info, -vv debug)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", default=None,
                        help="Also write a DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"svm {__version__}")
    return parser


def _console_level(args) -> int:
    if args.quiet:
        return logging.ERROR
    if args.verbose >= 2:
        return logging.DEBUG
    if args.verbose == 1:
        return logging.INFO
    return logging.WARNING


def _read_program(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(console_level=_console_level(args),
                  log_file=Path(args.log_file) if args.log_file else None)

    # Read input
    try:
        source = _read_program(args.program)
    except FileNotFoundError:
        print(f"Error: File not found: {args.program}", file=sys.stderr)
        return EXIT_FAULT
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading {args.program}: {e}", file=sys.stderr)
        return EXIT_FAULT

    # Profile first, then per-option overrides
    config = get_profile(args.profile).with_overrides(
        max_steps=args.max_steps,
        jump_policy=JumpPolicy(args.on_bad_jump) if args.on_bad_jump else None,
        trace=True if args.trace else None,
    )

    vm = VirtualMachine(config=config)
    loader = Loader()

    try:
        loader.load(source, vm)

        if loader.errors and args.strict:
            print(f"Error: {len(loader.errors)} line(s) rejected:", file=sys.stderr)
            for err in loader.errors:
                print(f"  {err}", file=sys.stderr)
            return EXIT_FAULT

        if args.listing:
            print(vm.program.listing())
            return EXIT_OK

        for addr in args.breakpoints:
            vm.add_breakpoint(addr)

        reason = vm.run()

    except EmptyProgramError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAULT
    except VMError as e:
        sys.stdout.flush()
        print(f"Runtime error: {e}", file=sys.stderr)
        _dump_trace(vm, args)
        return EXIT_FAULT
    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_INTERNAL

    sys.stdout.flush()
    _dump_trace(vm, args)

    if reason is StopReason.BREAK:
        print(f"[svm] Breakpoint at address {vm.state.pc}: {vm.state.display()}",
              file=sys.stderr)
    elif reason is StopReason.TIMEOUT:
        print(f"Error: step limit reached at address {vm.state.pc}", file=sys.stderr)
        return EXIT_TIMEOUT

    log.info("Stopped (%s) after %d step(s); stack=%s accumulator=%d",
             reason.value, vm.state.steps, vm.stack, vm.accumulator)
    return EXIT_OK


def _dump_trace(vm: VirtualMachine, args):
    if args.trace:
        print(vm.get_trace(), file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
