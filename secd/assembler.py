"""
Assembler and disassembler for SECD listings.

Listing syntax:
  ; comment                     ignored to end of line
  fact:                         label (resolves to the next instruction's address)
  LDC 10                        mnemonic followed by its inline operands
  SEL then else                 labels can stand in for any operand
  .word 42                      raw word, emitted as-is

Mnemonics are case-insensitive; labels are case-sensitive.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

from .opcodes import ARITY, NAME_TO_OPCODE, OPCODE_NAMES, instruction_size


class AssemblyError(ValueError):
    pass


# ============================================================
# Grammar
# ============================================================

GRAMMAR = r"""
    start: _NL* (line _NL+)* line?

    line: label instr?
        | instr

    label: NAME ":"
    instr: NAME operand*

    ?operand: SIGNED_INT -> number
            | NAME       -> ref

    NAME: /[A-Za-z_.][A-Za-z0-9_.]*/
    COMMENT: /;[^\n]*/
    _NL: /\r?\n/

    %import common.SIGNED_INT
    %import common.WS_INLINE
    %ignore WS_INLINE
    %ignore COMMENT
"""

parser = Lark(GRAMMAR, parser="earley", lexer="basic", ambiguity="resolve")


# ============================================================
# Listing items
# ============================================================

@dataclass(frozen=True)
class Label:
    name: str
    line: int

@dataclass(frozen=True)
class LabelRef:
    name: str
    line: int

@dataclass(frozen=True)
class Instr:
    mnemonic: str
    operands: tuple
    line: int


@v_args(inline=True)
class ListingBuilder(Transformer):
    def number(self, tok):
        return int(tok)

    def ref(self, tok):
        return LabelRef(str(tok), tok.line)

    def label(self, tok):
        return Label(str(tok), tok.line)

    def instr(self, tok, *operands):
        return Instr(str(tok).upper(), operands, tok.line)

    def line(self, *items):
        return list(items)

    def start(self, *lines):
        return [item for line in lines for item in line]


listing_builder = ListingBuilder()


def parse_listing(text: str) -> list:
    try:
        tree = parser.parse(text)
    except LarkError as e:
        raise AssemblyError(f"cannot parse listing: {e}") from None
    return listing_builder.transform(tree)


# ============================================================
# Assembly
# ============================================================

def _size(instr: Instr) -> int:
    if instr.mnemonic == ".WORD":
        if len(instr.operands) != 1:
            raise AssemblyError(f"line {instr.line}: .word takes exactly one operand")
        return 1
    op = NAME_TO_OPCODE.get(instr.mnemonic)
    if op is None:
        raise AssemblyError(f"line {instr.line}: unknown mnemonic {instr.mnemonic!r}")
    if len(instr.operands) != ARITY[op]:
        raise AssemblyError(
            f"line {instr.line}: {instr.mnemonic} takes {ARITY[op]} operand(s), "
            f"got {len(instr.operands)}")
    return instruction_size(op)


def assemble(text: str) -> list[int]:
    """Assemble a listing into a flat word list (two passes)."""
    items = parse_listing(text)

    labels: dict[str, int] = {}
    addr = 0
    for item in items:
        if isinstance(item, Label):
            if item.name in labels:
                raise AssemblyError(f"line {item.line}: duplicate label {item.name!r}")
            labels[item.name] = addr
        else:
            addr += _size(item)

    words: list[int] = []
    for item in items:
        if isinstance(item, Label):
            continue
        if item.mnemonic != ".WORD":
            words.append(NAME_TO_OPCODE[item.mnemonic])
        for operand in item.operands:
            if isinstance(operand, LabelRef):
                if operand.name not in labels:
                    raise AssemblyError(
                        f"line {operand.line}: undefined label {operand.name!r}")
                operand = labels[operand.name]
            words.append(operand)
    return words


# ============================================================
# Disassembly
# ============================================================

def decode_at(code: Sequence[int], addr: int) -> tuple[str, int]:
    """Decode the instruction at ``addr``. Returns (text, size)."""
    op = code[addr]
    name = OPCODE_NAMES.get(op)
    if name is None:
        return f".word {op}", 1
    n = ARITY[op]
    operands = list(code[addr + 1:addr + 1 + n])
    if len(operands) < n:
        return f".word {op}", 1
    return " ".join([name, *(str(x) for x in operands)]), 1 + n


def disassemble(code: Sequence[int], start: int = 0,
                end: int | None = None) -> Iterator[tuple[int, str]]:
    """Yield (address, instruction text) from ``start`` up to ``end``."""
    end = len(code) if end is None else min(end, len(code))
    addr = start
    while addr < end:
        text, size = decode_at(code, addr)
        yield addr, text
        addr += size


def format_listing(code: Sequence[int]) -> str:
    """Disassemble to a listing that assembles back to the same words."""
    return "\n".join(f"{text:<16} ; {addr}" for addr, text in disassemble(code))
