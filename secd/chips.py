"""
Storage and arithmetic primitives for the SECD machine.

Models the machine's fixed-capacity parts: code ROM, cell arena,
bounded LIFO segments (operand stack, dump) and the word ALU.
"""

from __future__ import annotations

from .faults import AllocationFailure, MalformedProgram, ResourceExhausted


WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1
WORD_SIGN = 1 << (WORD_BITS - 1)


def to_word(val: int) -> int:
    """Wrap an integer to a signed machine word (two's complement)."""
    val &= WORD_MASK
    return val - (1 << WORD_BITS) if val & WORD_SIGN else val


def _reserve(name: str, capacity: int, fill=None) -> list:
    if capacity <= 0:
        raise AllocationFailure(f"cannot reserve {name} of {capacity} entries")
    try:
        return [fill] * capacity
    except MemoryError:
        raise AllocationFailure(f"cannot reserve {name} of {capacity} entries") from None


class ROM:
    """Code segment. Burned once before execution, read-only afterwards."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.data = _reserve("code segment", capacity, 0)
        self.size = 0

    def burn(self, words) -> int:
        """Write words from address 0, up to capacity. Returns count written."""
        n = 0
        for word in words:
            if n >= self.capacity:
                break
            self.data[n] = int(word)
            n += 1
        for i in range(n, self.size):
            self.data[i] = 0
        self.size = n
        return n

    def read(self, addr: int) -> int:
        if not 0 <= addr < self.capacity:
            raise MalformedProgram(f"code address {addr} outside code segment")
        return self.data[addr]

    def __len__(self) -> int:
        return self.size


class Arena:
    """
    Fixed-capacity cell arena with a monotonic cursor.

    Cells are handed out in order and never reused; ``release`` drops the
    whole arena at once.
    """

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.cells: list | None = _reserve("cell arena", capacity)
        self.hp = 0

    def alloc(self, cell) -> int:
        """Store a cell at the cursor, return its address."""
        if self.cells is None:
            raise AllocationFailure("cell arena already released")
        addr = self.hp
        if addr >= self.capacity:
            raise ResourceExhausted(f"cell arena exhausted ({self.capacity} cells)")
        self.cells[addr] = cell
        self.hp = addr + 1
        return addr

    def read(self, addr: int):
        if self.cells is None:
            raise AllocationFailure("cell arena already released")
        if not 0 <= addr < self.hp:
            raise MalformedProgram(f"dangling arena address {addr}")
        return self.cells[addr]

    def release(self):
        self.cells = None
        self.hp = 0

    def __len__(self) -> int:
        return self.hp


class Segment:
    """Bounded LIFO segment: operand stack or dump."""

    def __init__(self, name: str, capacity: int):
        self.name = name
        self.capacity = capacity
        self.data = _reserve(name, capacity)
        self.height = 0
        self.peak = 0

    def push(self, val):
        h = self.height
        if h >= self.capacity:
            raise ResourceExhausted(f"{self.name} overflow ({self.capacity} entries)")
        self.data[h] = val
        self.height = h + 1
        if self.height > self.peak:
            self.peak = self.height

    def pop(self):
        if self.height == 0:
            raise MalformedProgram(f"{self.name} underflow")
        self.height -= 1
        val = self.data[self.height]
        self.data[self.height] = None
        return val

    def peek(self, depth: int = 0):
        if depth >= self.height:
            raise MalformedProgram(f"{self.name} underflow")
        return self.data[self.height - 1 - depth]

    def clear(self):
        for i in range(self.height):
            self.data[i] = None
        self.height = 0

    def items(self) -> list:
        """Contents bottom-up."""
        return self.data[:self.height]

    def __len__(self) -> int:
        return self.height


class ALU:
    """
    Word ALU: ADD, SUB, MUL on signed machine words.

    Operands are (b, a) in stack order: ``b`` was below ``a``.
    """

    def __call__(self, op: str, b, a) -> int:
        if not isinstance(a, int) or not isinstance(b, int):
            raise MalformedProgram(f"{op} applied to a non-integer operand")
        if op == "ADD":
            return to_word(b + a)
        if op == "SUB":
            return to_word(b - a)  # order matters
        if op == "MUL":
            return to_word(a * b)
        raise MalformedProgram(f"unknown ALU operation {op}")
