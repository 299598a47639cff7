"""
Fatal machine conditions.

A fault stops the machine for good: the stack/environment/dump state is
not safe to continue from. Only the outer surfaces (CLI, debugger) turn a
fault into a diagnostic.
"""

from __future__ import annotations


class MachineFault(Exception):
    """Base class for every fatal condition raised by the machine."""

    kind = "fault"

    def __init__(self, detail: str, pc: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.pc = pc

    def diagnostic(self) -> str:
        if self.pc is None:
            return f"{self.kind}: {self.detail}"
        return f"{self.kind}: {self.detail} at program counter {self.pc}"

    def __str__(self) -> str:
        return self.diagnostic()


class ResourceExhausted(MachineFault):
    """A segment or the cell arena would overflow its fixed capacity."""

    kind = "resource exhausted"


class MalformedProgram(MachineFault):
    """Bad opcode, bad lookup, frame mismatch or a register out of range."""

    kind = "malformed program"


class AllocationFailure(MachineFault):
    """Segment or arena storage could not be reserved at startup."""

    kind = "allocation failure"
