"""
SECD instruction set: opcode numbers, mnemonics and inline operand counts.
"""

from __future__ import annotations


HALT = 0
LDC  = 1
LD   = 2
ADD  = 3
SUB  = 4
MUL  = 5
SEL  = 6
JOIN = 7
LDF  = 8
LDRF = 9
AP   = 10
RTN  = 11

OPCODE_NAMES = {
    HALT: "HALT", LDC: "LDC", LD: "LD", ADD: "ADD", SUB: "SUB", MUL: "MUL",
    SEL: "SEL", JOIN: "JOIN", LDF: "LDF", LDRF: "LDRF", AP: "AP", RTN: "RTN",
}
NAME_TO_OPCODE = {name: op for op, name in OPCODE_NAMES.items()}

# Number of inline operands following each opcode in the code segment.
ARITY = {
    HALT: 0, LDC: 1, LD: 1, ADD: 0, SUB: 0, MUL: 0,
    SEL: 2, JOIN: 0, LDF: 1, LDRF: 1, AP: 0, RTN: 0,
}


def instruction_size(opcode: int) -> int:
    return 1 + ARITY[opcode]
