"""
Runtime values, heap cells and dump frames.

A value is either a plain ``int`` (a signed machine word) or a
``ClosureRef`` pointing into the cell arena. Environments are arena
addresses of ``EnvCell`` chains, ``None`` being the empty environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


EMPTY_ENV = None


@dataclass(frozen=True)
class ClosureRef:
    """Non-owning reference to a ClosureCell in the arena."""
    addr: int
    def __repr__(self): return f"#closure@{self.addr}"


Value = Union[int, ClosureRef]
Env = Optional[int]


class EnvCell:
    """
    One binding frame: head value plus tail environment.

    Immutable once built. The only exception is a placeholder cell
    (``head`` unset) whose head is filled exactly once by ``_tie``.
    """

    __slots__ = ("_head", "_tail", "_tied")

    def __init__(self, head: Value | None, tail: Env, *, placeholder: bool = False):
        self._head = head
        self._tail = tail
        self._tied = not placeholder

    @property
    def head(self) -> Value | None:
        return self._head

    @property
    def tail(self) -> Env:
        return self._tail

    @property
    def is_tied(self) -> bool:
        return self._tied

    def _tie(self, value: Value):
        if self._tied:
            raise RuntimeError("environment cell head already set")
        self._head = value
        self._tied = True

    def __repr__(self):
        head = repr(self._head) if self._tied else "<untied>"
        return f"EnvCell({head}, tail={self._tail})"


@dataclass(frozen=True)
class ClosureCell:
    """Code entry point paired with the environment it captured."""
    entry: int
    env: Env


# ---------------------------------------------------------------------------
# Dump frames
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BranchFrame:
    """Pushed by SEL, popped by JOIN."""
    resume_pc: int


@dataclass(frozen=True)
class CallFrame:
    """Pushed by AP, popped by RTN."""
    resume_pc: int
    env: Env


DumpFrame = Union[BranchFrame, CallFrame]
