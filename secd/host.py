"""
SECDHost: high-level interface to the SECD machine.

Provides program loading (raw words, integer streams, listings),
evaluation and result decoding.
"""

from __future__ import annotations

from pathlib import Path
from typing import TextIO

from .assembler import assemble
from .loader import load_code_file, read_code
from .machine import MachineConfig, SECDMachine
from .values import ClosureRef, Value


class SECDHost:
    """High-level interface to the SECD machine.

    Args:
        config: Segment and arena capacities. Defaults to MachineConfig().
    """

    def __init__(self, config: MachineConfig | None = None):
        self.machine = SECDMachine(config)
        self.config = self.machine.config

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------

    def load_words(self, words) -> int:
        return self.machine.load(words)

    def load_stream(self, stream: TextIO) -> int:
        return self.machine.load(read_code(stream, self.config.code_size))

    def load_file(self, path: str | Path) -> int:
        return self.machine.load(load_code_file(path, self.config.code_size))

    def load_listing(self, text: str) -> int:
        return self.machine.load(assemble(text))

    # -------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------

    def eval(self) -> dict:
        """
        Run the loaded program from pc 0 on a fresh arena until HALT.

        Returns dict with the raw result value, its decoded form and stats.
        Faults propagate as MachineFault.
        """
        self.machine.restart()
        self.machine.reset_counters()
        value = self.machine.run()
        return {
            "value": value,
            "result": self.decode_value(value),
            "stats": self.machine.stats(),
        }

    def run_words(self, words) -> Value:
        self.load_words(words)
        return self.eval()["value"]

    def run_listing(self, text: str) -> Value:
        self.load_listing(text)
        return self.eval()["value"]

    # -------------------------------------------------------------------
    # Result decoding
    # -------------------------------------------------------------------

    def decode_value(self, value) -> str:
        """Decode a machine value into a human-readable string."""
        if isinstance(value, ClosureRef):
            cell = self.machine.heap.arena.read(value.addr)
            env = "empty" if cell.env is None else f"@{cell.env}"
            return f"#closure[entry={cell.entry}, env={env}]"
        if value is None:
            return "(none)"
        return str(value)

    @staticmethod
    def output_integer(value: Value) -> int:
        """Integer form of a result at the output boundary."""
        if isinstance(value, ClosureRef):
            return value.addr
        return value
