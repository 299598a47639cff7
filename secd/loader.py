"""
Bytecode loader: whitespace-separated decimal integers into a word list.

No structural validation happens here; a malformed instruction stream is
only caught by the machine at run time.
"""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Iterable, Iterator, TextIO

from .faults import MalformedProgram


def iter_words(lines: Iterable[str]) -> Iterator[int]:
    for lineno, line in enumerate(lines, 1):
        for tok in line.split():
            try:
                yield int(tok, 10)
            except ValueError:
                raise MalformedProgram(
                    f"line {lineno}: expected an integer, got {tok!r}") from None


def read_code(stream: TextIO, capacity: int) -> list[int]:
    """Read up to ``capacity`` integers from ``stream``. Anything after is not parsed."""
    return list(itertools.islice(iter_words(stream), max(capacity, 0)))


def load_code_file(path: str | Path, capacity: int) -> list[int]:
    with open(path, encoding="utf-8") as f:
        return read_code(f, capacity)
