"""
SECD interpreter entry point.

Usage:
    python -m secd program.txt             # integer bytecode from a file
    python -m secd < program.txt           # ... or from stdin
    python -m secd --listing prog.secd     # assembly listing instead of integers
    python -m secd -x factorial            # run a built-in example
    python -m secd --trace --stats prog.txt

Prints the result on stdout. Exit status 0 on HALT, 1 on any fault.
"""

from __future__ import annotations

import argparse
import sys

from colorama import Fore, Style, just_fix_windows_console

from .assembler import AssemblyError, decode_at
from .examples import EXAMPLES
from .faults import MachineFault
from .host import SECDHost
from .machine import CODE_SIZE, DUMP_SIZE, HEAP_SIZE, STACK_SIZE, MachineConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SECD abstract machine interpreter",
        prog="python -m secd",
    )
    parser.add_argument("file", nargs="?",
                        help="Bytecode file (whitespace-separated integers); stdin if omitted")
    parser.add_argument("--listing", action="store_true",
                        help="Input is an assembly listing rather than integers")
    parser.add_argument("-x", "--example", choices=sorted(EXAMPLES),
                        help="Run a built-in example program")
    parser.add_argument("--trace", action="store_true",
                        help="Print each executed instruction to stderr")
    parser.add_argument("--stats", action="store_true",
                        help="Print machine counters to stderr after HALT")
    parser.add_argument("--code-size", type=int, default=CODE_SIZE)
    parser.add_argument("--stack-size", type=int, default=STACK_SIZE)
    parser.add_argument("--dump-size", type=int, default=DUMP_SIZE)
    parser.add_argument("--heap-size", type=int, default=HEAP_SIZE)
    return parser


def _trace_line(machine) -> str:
    text, _ = decode_at(machine.code.data, machine.pc)
    mnemonic, _, operands = text.partition(" ")
    return (f"{Style.DIM}{machine.pc:5d}{Style.RESET_ALL}  "
            f"{Fore.CYAN}{mnemonic:<5}{Style.RESET_ALL} {operands:<10} "
            f"{Style.DIM}sp={machine.sp} dp={machine.dp}{Style.RESET_ALL}")


def _run_traced(machine):
    while True:
        print(_trace_line(machine), file=sys.stderr, flush=True)
        if not machine.tick():
            return machine.result


def _load(host: SECDHost, args) -> int:
    if args.example:
        return host.load_listing(EXAMPLES[args.example])
    if args.listing:
        if args.file:
            with open(args.file, encoding="utf-8") as f:
                return host.load_listing(f.read())
        return host.load_listing(sys.stdin.read())
    if args.file:
        return host.load_file(args.file)
    return host.load_stream(sys.stdin)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    just_fix_windows_console()

    try:
        config = MachineConfig(
            code_size=args.code_size,
            stack_size=args.stack_size,
            dump_size=args.dump_size,
            heap_size=args.heap_size,
        )
        host = SECDHost(config)
        _load(host, args)

        if args.trace:
            host.machine.reset_counters()
            value = _run_traced(host.machine)
        else:
            value = host.eval()["value"]
    except MachineFault as fault:
        print(f"{Fore.RED}fatal:{Style.RESET_ALL} {fault.diagnostic()}",
              file=sys.stderr, flush=True)
        return 1
    except (AssemblyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr, flush=True)
        return 1

    print(host.output_integer(value))
    if args.stats:
        print(host.machine.stats_summary(), file=sys.stderr, flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
