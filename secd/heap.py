"""
Environments and closures built in the cell arena.

Every constructor here allocates through the arena; the dispatch loop
never touches the arena directly.
"""

from __future__ import annotations

from .chips import Arena
from .faults import MalformedProgram
from .values import EMPTY_ENV, ClosureCell, ClosureRef, Env, EnvCell, Value


class Placeholder:
    """
    Fill-once handle on a freshly reserved environment cell.

    ``env`` is usable immediately (e.g. to capture it in a closure); the
    cell's head is set by ``tie``, after which the handle is spent.
    """

    def __init__(self, heap: "Heap", env: int):
        self._heap = heap
        self.env = env
        self._spent = False

    def tie(self, value: Value) -> int:
        if self._spent:
            raise RuntimeError(f"placeholder at {self.env} already tied")
        self._spent = True
        self._heap.cell(self.env)._tie(value)
        return self.env


class Heap:
    """Environment and closure constructors over a fixed arena."""

    def __init__(self, capacity: int):
        self.arena = Arena(capacity)
        self.allocs = 0
        self.reads = 0

    def _alloc(self, cell) -> int:
        self.allocs += 1
        return self.arena.alloc(cell)

    def cell(self, addr: int):
        self.reads += 1
        return self.arena.read(addr)

    # -------------------------------------------------------------------
    # Environments
    # -------------------------------------------------------------------

    def extend(self, value: Value, env: Env) -> int:
        """Cons ``value`` onto ``env``. ``env`` itself is left untouched."""
        return self._alloc(EnvCell(value, env))

    def reserve(self, env: Env) -> Placeholder:
        """Allocate a cell over ``env`` whose head is filled later."""
        return Placeholder(self, self._alloc(EnvCell(None, env, placeholder=True)))

    def lookup(self, index: int, env: Env) -> Value:
        """Walk ``index`` tail links from ``env`` and return that head."""
        if index < 0:
            raise MalformedProgram(f"negative environment index {index}")
        n = index
        while True:
            if env is EMPTY_ENV:
                raise MalformedProgram(f"environment index {index} out of range")
            cell = self.cell(env)
            if not isinstance(cell, EnvCell):
                raise MalformedProgram(f"arena cell {env} is not an environment")
            if n == 0:
                break
            env = cell.tail
            n -= 1
        if not cell.is_tied:
            raise MalformedProgram(f"environment cell {env} read before it was tied")
        return cell.head

    def env_values(self, env: Env, limit: int | None = None) -> list[Value]:
        """Bound values innermost-first."""
        out = []
        while env is not EMPTY_ENV and (limit is None or len(out) < limit):
            cell = self.arena.read(env)
            out.append(cell.head)
            env = cell.tail
        return out

    def depth(self, env: Env) -> int:
        n = 0
        while env is not EMPTY_ENV:
            env = self.arena.read(env).tail
            n += 1
        return n

    # -------------------------------------------------------------------
    # Closures
    # -------------------------------------------------------------------

    def make_closure(self, entry: int, env: Env) -> ClosureRef:
        return ClosureRef(self._alloc(ClosureCell(entry, env)))

    def make_recursive_closure(self, entry: int, env: Env) -> ClosureRef:
        """
        Closure that finds itself at index 0 of its own environment.

        Reserve a placeholder over ``env``, close over the placeholder's
        environment, then tie the placeholder to the new closure.
        """
        slot = self.reserve(env)
        ref = self.make_closure(entry, slot.env)
        slot.tie(ref)
        return ref

    def closure(self, ref) -> ClosureCell:
        if not isinstance(ref, ClosureRef):
            raise MalformedProgram(f"expected a closure, got {ref!r}")
        cell = self.cell(ref.addr)
        if not isinstance(cell, ClosureCell):
            raise MalformedProgram(f"arena cell {ref.addr} is not a closure")
        return cell

    # -------------------------------------------------------------------

    def release(self):
        self.arena.release()

    @property
    def used(self) -> int:
        return len(self.arena)

    @property
    def capacity(self) -> int:
        return self.arena.capacity
