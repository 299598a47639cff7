"""
Tests for the listing assembler, the bytecode loader and the CLI.
"""

from __future__ import annotations

import io
import sys

import pytest

from secd import examples
from secd.__main__ import main as cli_main
from secd.assembler import AssemblyError, assemble, disassemble, format_listing
from secd.faults import MalformedProgram
from secd.loader import read_code
from secd.opcodes import HALT, LDC, ADD, SEL, JOIN, LDRF, AP


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------

def test_assemble_straight_line():
    assert assemble("LDC 2\nLDC 3\nADD\nHALT\n") == [LDC, 2, LDC, 3, ADD, HALT]


def test_assemble_labels_comments_and_case():
    text = """
        ; leading comment

    start:  ldc 0           ; condition
            SEL yes no
            halt
    yes:    LDC -1
            JOIN
    no:     LDC +1
            JOIN"""
    assert assemble(text) == [LDC, 0, SEL, 6, 9, HALT, LDC, -1, JOIN, LDC, 1, JOIN]


def test_label_on_own_line_and_forward_reference():
    words = assemble(examples.factorial(3))
    assert words[:2] == [LDRF, 6]
    assert words[2:6] == [LDC, 3, AP, HALT]


def test_word_directive():
    assert assemble(".word 99\n.word -4") == [99, -4]


def test_empty_listing():
    assert assemble("") == []
    assert assemble("; nothing here\n\n") == []


@pytest.mark.parametrize("text, message", [
    ("FOO 1", "unknown mnemonic"),
    ("LDC", "takes 1 operand"),
    ("ADD 3", "takes 0 operand"),
    ("SEL a b", "undefined label"),
    ("x: ADD\nx: ADD", "duplicate label"),
    ("LDC 1 :", "cannot parse"),
])
def test_assembly_errors(text, message):
    with pytest.raises(AssemblyError, match=message):
        assemble(text)


def test_disassemble():
    words = assemble(examples.ARITH)
    assert list(disassemble(words)) == [
        (0, "LDC 5"), (2, "LDC 42"), (4, "LDC 23"), (6, "ADD"), (7, "MUL"), (8, "HALT"),
    ]
    # Unknown opcode and a truncated instruction render as raw words
    assert list(disassemble([77, LDC])) == [(0, ".word 77"), (1, f".word {LDC}")]


def test_format_listing_reassembles():
    for text in examples.EXAMPLES.values():
        words = assemble(text)
        assert assemble(format_listing(words)) == words


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def test_read_code_whitespace_and_newlines():
    stream = io.StringIO("1 2\n1\t3\n\n3\n0\n")
    assert read_code(stream, 100) == [1, 2, 1, 3, 3, 0]


def test_read_code_stops_at_capacity():
    stream = io.StringIO("1 2 3 4 5 6")
    assert read_code(stream, 4) == [1, 2, 3, 4]


def test_read_code_ignores_junk_past_capacity():
    assert read_code(io.StringIO("1 2 junk"), 2) == [1, 2]
    assert read_code(io.StringIO("1 2\nnot a program\n"), 2) == [1, 2]


def test_read_code_rejects_garbage():
    with pytest.raises(MalformedProgram, match="line 2"):
        read_code(io.StringIO("1 2\n3 x\n"), 100)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def test_cli_stdin(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("1 2 1 3 3 0\n"))
    assert cli_main([]) == 0
    assert capsys.readouterr().out == "5\n"


def test_cli_file(tmp_path, capsys):
    path = tmp_path / "arith.txt"
    path.write_text(" ".join(str(w) for w in assemble(examples.ARITH)) + "\n")
    assert cli_main([str(path)]) == 0
    assert capsys.readouterr().out == "325\n"


def test_cli_listing_and_stats(tmp_path, capsys):
    path = tmp_path / "closure.secd"
    path.write_text(examples.CLOSURE)
    assert cli_main(["--listing", "--stats", str(path)]) == 0
    captured = capsys.readouterr()
    assert captured.out == "65\n"
    assert "Cycles" in captured.err


def test_cli_example_trace(capsys):
    assert cli_main(["-x", "add", "--trace"]) == 0
    captured = capsys.readouterr()
    assert captured.out == "5\n"
    assert "LDC" in captured.err
    assert "HALT" in captured.err


def test_cli_factorial(capsys):
    assert cli_main(["-x", "factorial"]) == 0
    assert capsys.readouterr().out == "3628800\n"


def test_cli_bad_opcode(tmp_path, capsys):
    path = tmp_path / "bad.txt"
    path.write_text("1 1 42 0\n")
    assert cli_main([str(path)]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "invalid opcode 42" in captured.err
    assert "program counter 2" in captured.err


def test_cli_divergence_is_fatal(capsys):
    assert cli_main(["-x", "diverge", "--dump-size", "128", "--heap-size", "4096"]) == 1
    assert "resource exhausted" in capsys.readouterr().err


def test_cli_bad_capacity(capsys):
    assert cli_main(["-x", "add", "--heap-size", "0"]) == 1
    assert "allocation failure" in capsys.readouterr().err


def test_cli_missing_file(tmp_path, capsys):
    assert cli_main([str(tmp_path / "missing.txt")]) == 1
    assert "Error" in capsys.readouterr().err
