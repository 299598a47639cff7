"""
Headless runs of the Textual debugger: stepping, run-to-end, restart and
fault reporting, driven through key bindings.
"""

from __future__ import annotations

import asyncio

from secd import examples
from secd.debugger import SECDDebugger, build_parser
from secd.host import SECDHost
from secd.machine import MachineConfig, S_DONE, S_FAULT, S_FETCH
from secd.opcodes import LDC, HALT


def _debugger(listing: str | None = None, words=None, **config) -> SECDDebugger:
    host = SECDHost(MachineConfig(**config))
    if listing is not None:
        host.load_listing(listing)
    else:
        host.load_words(words)
    return SECDDebugger(host)


def test_step_to_halt():
    async def scenario():
        app = _debugger(examples.factorial(3))
        async with app.run_test() as pilot:
            await pilot.press("s")
            assert app.machine.pc == 2          # past LDRF
            assert "CLOSURE" in app.heap_text()

            # Into the recursion: the dump holds branch and call frames
            await pilot.press("n")
            dump = app.dump_text()
            assert "ret→" in dump

            await pilot.press("f")
            await pilot.pause()
            assert app.machine.state == S_DONE
            assert app.machine.result == 6
            assert any("HALT" in line and "6" in line for line in app.output_lines)
            assert "S_DONE" in app.state_text()
    asyncio.run(scenario())


def test_run_to_end_and_restart():
    async def scenario():
        app = _debugger(examples.factorial(10), heap_size=20)
        async with app.run_test() as pilot:
            await pilot.press("r")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert app.machine.result == 3628800

            # Restart reruns on a fresh arena
            await pilot.press("R")
            assert app.machine.state == S_FETCH
            assert app.machine.heap.used == 0
            await pilot.press("r")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert app.machine.result == 3628800
            assert sum("HALT" in line for line in app.output_lines) == 2
    asyncio.run(scenario())


def test_fault_is_reported():
    async def scenario():
        app = _debugger(words=[LDC, 1, 99, HALT])
        async with app.run_test() as pilot:
            await pilot.press("s", "s")
            await pilot.pause()
            assert app.machine.state == S_FAULT
            faults = [line for line in app.output_lines if "FAULT" in line]
            assert len(faults) == 1
            assert "invalid opcode 99" in faults[0]
            assert "program counter 2" in faults[0]

            # A faulted machine does not step any further
            await pilot.press("s")
            assert app.machine.pc == 2
    asyncio.run(scenario())


def test_command_line_capacities():
    args = build_parser().parse_args(
        ["-x", "factorial", "--code-size", "64", "--stack-size", "32",
         "--dump-size", "48", "--heap-size", "100"])
    assert (args.code_size, args.stack_size, args.dump_size, args.heap_size) == (64, 32, 48, 100)
    defaults = build_parser().parse_args(["-x", "add"])
    assert defaults.code_size == MachineConfig().code_size
