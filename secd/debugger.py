"""
Textual TUI debugger for the SECD machine.

Instruction-stepping debugger that loads a program, runs it on the machine
and displays full machine state at every step.

Usage:
    python -m secd.debugger program.txt
    python -m secd.debugger --listing program.secd
    python -m secd.debugger -x factorial
    python -m secd.debugger --run -x sum-squares
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import ScrollableContainer
from textual.widgets import Static, RichLog, Footer
from textual import work

from .assembler import AssemblyError, disassemble
from .examples import EXAMPLES
from .faults import MachineFault
from .host import SECDHost
from .machine import (
    CODE_SIZE, DUMP_SIZE, HEAP_SIZE, STACK_SIZE, STATE_NAMES, S_DONE, MachineConfig,
)
from .values import BranchFrame, ClosureCell, EnvCell


def _esc(text: str) -> str:
    """Escape Rich markup characters in text."""
    return text.replace("[", "\\[")


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

DEBUGGER_CSS = """
Screen {
    layout: grid;
    grid-size: 2 4;
    grid-columns: 1fr 1fr;
    grid-rows: 1fr 1fr 1fr auto;
}

.panel {
    border: solid $accent;
    border-title-align: left;
    overflow-y: auto;
    height: 100%;
}

Footer {
    column-span: 2;
}
"""


# ---------------------------------------------------------------------------
# Panel widgets
# ---------------------------------------------------------------------------

class CodePanel(ScrollableContainer):
    """Disassembly with the current instruction highlighted."""
    BORDER_TITLE = "Code"

    def compose(self) -> ComposeResult:
        yield Static("", id="code-content")


class StatePanel(ScrollableContainer):
    """Registers, counters and the current environment."""
    BORDER_TITLE = "Machine State"

    def compose(self) -> ComposeResult:
        yield Static("", id="state-content")


class StackPanel(ScrollableContainer):
    """Operand stack, top-down."""
    BORDER_TITLE = "Stack"

    def compose(self) -> ComposeResult:
        yield Static("", id="stack-content")


class DumpPanel(ScrollableContainer):
    """Dump frames, top-down."""
    BORDER_TITLE = "Dump"

    def compose(self) -> ComposeResult:
        yield Static("", id="dump-content")


class HeapPanel(ScrollableContainer):
    """Arena cells, top-down from the cursor."""
    BORDER_TITLE = "Heap"

    def compose(self) -> ComposeResult:
        yield Static("", id="heap-content")


class OutputPanel(ScrollableContainer):
    """Results and faults."""
    BORDER_TITLE = "Output"

    def compose(self) -> ComposeResult:
        yield RichLog(id="output-log", markup=True, wrap=True)


# ---------------------------------------------------------------------------
# Main debugger app
# ---------------------------------------------------------------------------

class SECDDebugger(App):
    """Textual TUI debugger for the SECD machine."""

    CSS = DEBUGGER_CSS
    TITLE = "SECD Debugger"

    BINDINGS = [
        Binding("s", "step_1", "Step"),
        Binding("space", "step_1", "Step", show=False),
        Binding("n", "step_10", "x10"),
        Binding("f", "step_100", "x100"),
        Binding("r", "run_to_end", "Run"),
        Binding("b", "toggle_breakpoint", "Break"),
        Binding("R", "restart", "Restart"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, host: SECDHost, auto_run: bool = False):
        super().__init__()
        self.host = host
        self.machine = host.machine
        self.auto_run = auto_run
        self.breakpoints: set[int] = set()
        self.output_lines: list[str] = []
        self._output_line_count = 0

    def compose(self) -> ComposeResult:
        yield CodePanel(id="code-panel", classes="panel")
        yield StatePanel(id="state-panel", classes="panel")
        yield StackPanel(id="stack-panel", classes="panel")
        yield DumpPanel(id="dump-panel", classes="panel")
        yield HeapPanel(id="heap-panel", classes="panel")
        yield OutputPanel(id="output-panel", classes="panel")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_panels()
        if self.auto_run:
            self.action_run_to_end()

    # -------------------------------------------------------------------
    # Panel refresh
    # -------------------------------------------------------------------

    def refresh_panels(self) -> None:
        self._refresh_code()
        self._refresh_state()
        self._refresh_stack()
        self._refresh_dump()
        self._refresh_heap()
        self._refresh_output()

    def _refresh_code(self) -> None:
        m = self.machine
        lines = []
        for addr, text in disassemble(m.code.data, 0, len(m.code)):
            prefix = "●" if addr in self.breakpoints else " "
            marker = "▸" if addr == m.pc else " "
            line = f"{prefix}{marker} {addr:4d}│ {_esc(text)}"
            if addr == m.pc:
                line = f"[bold reverse]{line}[/bold reverse]"
            lines.append(line)
        content = self.query_one("#code-content", Static)
        content.update("\n".join(lines) if lines else "(no program loaded)")

    def state_text(self) -> str:
        m = self.machine
        state_name = STATE_NAMES.get(m.state, f"?({m.state})")
        env = m.env
        bindings = self.machine.heap.env_values(env, limit=8)
        env_text = ", ".join(
            f"{i}={_esc(self.host.decode_value(v))}" for i, v in enumerate(bindings))
        depth = self.machine.heap.depth(env)
        if depth > len(bindings):
            env_text += f", ... ({depth} total)"
        result = "-" if m.result is None else _esc(self.host.decode_value(m.result))

        text = (
            f"[bold]State:[/bold] {state_name}    [bold]Cycle:[/bold] {m.cycles}\n"
            f"[bold]PC:[/bold] {m.pc}  [bold]SP:[/bold] {m.sp}/{m.stack.capacity}  "
            f"[bold]DP:[/bold] {m.dp}/{m.dump.capacity}\n"
            f"[bold]Env:[/bold] {'empty' if env is None else f'@{env}'}\n"
            f"  → {env_text or '(no bindings)'}\n"
            f"[bold]Result:[/bold] {result}\n"
            f"[bold]ALU:[/bold] {m.alu_ops}  "
            f"[bold]Heap:[/bold] {m.heap.used}/{m.heap.capacity} cells, "
            f"{m.heap.reads}R\n"
            f"[bold]Stack peak:[/bold] {m.stack.peak}  [bold]Dump peak:[/bold] {m.dump.peak}"
        )
        return text

    def _refresh_stack(self) -> None:
        items = self.machine.stack.items()
        lines = []
        for i in range(len(items) - 1, -1, -1):
            lines.append(f"\\[{i:3d}] {_esc(self.host.decode_value(items[i]))}")
        content = self.query_one("#stack-content", Static)
        content.update("\n".join(lines) if lines else "(empty)")

    def dump_text(self) -> str:
        frames = self.machine.dump.items()
        lines = []
        for i in range(len(frames) - 1, -1, -1):
            frame = frames[i]
            if isinstance(frame, BranchFrame):
                lines.append(f"\\[{i:3d}] join→{frame.resume_pc}")
            else:
                env = "empty" if frame.env is None else f"@{frame.env}"
                lines.append(f"\\[{i:3d}] ret→{frame.resume_pc}  env={env}")
        return "\n".join(lines) if lines else "(empty)"

    def heap_text(self) -> str:
        arena = self.machine.heap.arena
        hp = arena.hp
        lines = []
        # Show up to 50 most recent cells
        start = max(0, hp - 50)
        for addr in range(hp - 1, start - 1, -1):
            cell = arena.cells[addr]
            if isinstance(cell, EnvCell):
                head = self.host.decode_value(cell.head) if cell.is_tied else "<untied>"
                tail = "empty" if cell.tail is None else f"@{cell.tail}"
                line = f"{addr:5d}: \\[ENV    ] {_esc(head)} :: {tail}"
            elif isinstance(cell, ClosureCell):
                env = "empty" if cell.env is None else f"@{cell.env}"
                line = f"{addr:5d}: \\[CLOSURE] entry={cell.entry} env={env}"
            else:
                line = f"{addr:5d}: \\[?      ] {_esc(repr(cell))}"
            if addr == self.machine.env:
                line = f"[green]{line}[/green]"
            lines.append(line)
        return "\n".join(lines) if lines else "(empty)"

    def _refresh_state(self) -> None:
        self.query_one("#state-content", Static).update(self.state_text())

    def _refresh_dump(self) -> None:
        self.query_one("#dump-content", Static).update(self.dump_text())

    def _refresh_heap(self) -> None:
        self.query_one("#heap-content", Static).update(self.heap_text())

    def _refresh_output(self) -> None:
        log = self.query_one("#output-log", RichLog)
        while self._output_line_count < len(self.output_lines):
            log.write(self.output_lines[self._output_line_count])
            self._output_line_count += 1

    # -------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------

    def _report_fault(self, fault: MachineFault) -> None:
        """Show a fault in the output panel."""
        self.output_lines.append(f"[red]\\[FAULT][/red] {_esc(fault.diagnostic())}")
        self.refresh_panels()

    def _report_halt(self) -> None:
        m = self.machine
        self.output_lines.append(
            f"[bold]HALT[/bold] → {_esc(self.host.decode_value(m.result))}  "
            f"({m.cycles} cycles)")

    def _tick(self) -> bool:
        running = self.machine.tick()
        if self.machine.state == S_DONE:
            self._report_halt()
        return running

    def _do_steps(self, count: int) -> None:
        try:
            for _ in range(count):
                if not self._tick():
                    break
        except MachineFault as fault:
            self._report_fault(fault)
            return
        self.refresh_panels()

    def action_step_1(self) -> None:
        self._do_steps(1)

    def action_step_10(self) -> None:
        self._do_steps(10)

    def action_step_100(self) -> None:
        self._do_steps(100)

    def action_toggle_breakpoint(self) -> None:
        pc = self.machine.pc
        if pc in self.breakpoints:
            self.breakpoints.discard(pc)
        else:
            self.breakpoints.add(pc)
        self._refresh_code()

    def action_restart(self) -> None:
        self.machine.restart()
        self.machine.reset_counters()
        self.output_lines.append("[dim]restart[/dim]")
        self.refresh_panels()

    @work(thread=True)
    def action_run_to_end(self) -> None:
        """Run to HALT, a fault or a breakpoint in a background thread."""
        try:
            cycle = 0
            while self._tick():
                cycle += 1
                if self.machine.pc in self.breakpoints:
                    break
                if cycle % 500 == 0:
                    self.call_from_thread(self.refresh_panels)
        except MachineFault as fault:
            self.call_from_thread(self._report_fault, fault)
            return
        self.call_from_thread(self.refresh_panels)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SECD machine TUI debugger",
        prog="python -m secd.debugger",
    )
    parser.add_argument("file", nargs="?", help="Program file (integers, or a listing with --listing)")
    parser.add_argument("--listing", action="store_true",
                        help="Program file is an assembly listing")
    parser.add_argument("-x", "--example", choices=sorted(EXAMPLES),
                        help="Load a built-in example program")
    parser.add_argument("--run", action="store_true",
                        help="Run to completion immediately (auto-run mode)")
    parser.add_argument("--code-size", type=int, default=CODE_SIZE)
    parser.add_argument("--stack-size", type=int, default=STACK_SIZE)
    parser.add_argument("--dump-size", type=int, default=DUMP_SIZE)
    parser.add_argument("--heap-size", type=int, default=HEAP_SIZE)
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.file and not args.example:
        parser.error("Provide a program file or -x example")

    try:
        host = SECDHost(MachineConfig(
            code_size=args.code_size,
            stack_size=args.stack_size,
            dump_size=args.dump_size,
            heap_size=args.heap_size,
        ))
        if args.example:
            host.load_listing(EXAMPLES[args.example])
        else:
            path = Path(args.file)
            if not path.exists():
                print(f"Error: File not found: {path}", file=sys.stderr)
                sys.exit(1)
            if args.listing:
                host.load_listing(path.read_text(encoding="utf-8"))
            else:
                host.load_file(path)
    except (AssemblyError, MachineFault) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    app = SECDDebugger(host, auto_run=args.run)
    app.run()


if __name__ == "__main__":
    main()
