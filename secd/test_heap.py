"""
Tests for the cell arena, environments and closure construction.
"""

from __future__ import annotations

import sys

import pytest

from secd.chips import Arena, Segment, ALU, to_word
from secd.faults import AllocationFailure, MalformedProgram, ResourceExhausted
from secd.heap import Heap
from secd.values import EMPTY_ENV, ClosureCell, ClosureRef, EnvCell


def test_arena_allocates_in_order():
    arena = Arena(4)
    addrs = [arena.alloc(EnvCell(i, None)) for i in range(4)]
    assert addrs == [0, 1, 2, 3]
    assert len(arena) == 4
    assert arena.read(2).head == 2


def test_arena_exhaustion_is_fatal():
    arena = Arena(2)
    arena.alloc(EnvCell(1, None))
    arena.alloc(EnvCell(2, None))
    with pytest.raises(ResourceExhausted):
        arena.alloc(EnvCell(3, None))
    # Cursor never moves past capacity
    assert arena.hp == 2


def test_arena_rejects_bad_capacity():
    with pytest.raises(AllocationFailure):
        Arena(0)


def test_arena_release():
    arena = Arena(4)
    arena.alloc(EnvCell(1, None))
    arena.release()
    with pytest.raises(AllocationFailure):
        arena.alloc(EnvCell(2, None))


def test_segment_bounds():
    seg = Segment("operand stack", 2)
    seg.push(1)
    seg.push(2)
    assert seg.peak == 2
    with pytest.raises(ResourceExhausted):
        seg.push(3)
    assert seg.pop() == 2
    assert seg.pop() == 1
    with pytest.raises(MalformedProgram):
        seg.pop()


def test_alu_operand_order_and_wrap():
    alu = ALU()
    # Stack [.., 10, 3]: b=10 was below a=3
    assert alu("SUB", 10, 3) == 7
    assert alu("ADD", 10, 3) == 13
    assert alu("MUL", 10, 3) == 30
    assert to_word(2 ** 63) == -(2 ** 63)
    assert alu("ADD", 2 ** 63 - 1, 1) == -(2 ** 63)
    with pytest.raises(MalformedProgram):
        alu("ADD", ClosureRef(0), 1)


def test_lookup_correctness():
    """lookup(i, env) = v_i for env built innermost-last by extend."""
    heap = Heap(64)
    values = [10, 20, 30, 40, 50]
    env = EMPTY_ENV
    for v in reversed(values):
        env = heap.extend(v, env)
    # values[0] is innermost
    for i, v in enumerate(values):
        assert heap.lookup(i, env) == v
    assert heap.env_values(env) == values
    assert heap.depth(env) == len(values)


def test_lookup_out_of_range_is_fatal():
    heap = Heap(8)
    env = heap.extend(1, EMPTY_ENV)
    with pytest.raises(MalformedProgram):
        heap.lookup(1, env)
    with pytest.raises(MalformedProgram):
        heap.lookup(0, EMPTY_ENV)
    with pytest.raises(MalformedProgram):
        heap.lookup(-1, env)


def test_extend_never_mutates_shared_tail():
    heap = Heap(16)
    base = heap.extend(1, heap.extend(2, EMPTY_ENV))
    before = [(heap.arena.read(a).head, heap.arena.read(a).tail)
              for a in range(heap.used)]

    left = heap.extend(100, base)
    right = heap.extend(200, base)

    after = [(heap.arena.read(a).head, heap.arena.read(a).tail)
             for a in range(len(before))]
    assert before == after
    assert heap.env_values(left) == [100, 1, 2]
    assert heap.env_values(right) == [200, 1, 2]
    assert heap.env_values(base) == [1, 2]


def test_plain_closure_captures_env():
    heap = Heap(8)
    env = heap.extend(42, EMPTY_ENV)
    ref = heap.make_closure(17, env)
    cell = heap.closure(ref)
    assert isinstance(cell, ClosureCell)
    assert cell.entry == 17
    assert cell.env == env


def test_recursive_closure_finds_itself():
    heap = Heap(8)
    outer = heap.extend(7, EMPTY_ENV)
    ref = heap.make_recursive_closure(5, outer)
    cell = heap.closure(ref)
    assert cell.entry == 5
    # Index 0 of its own environment is the closure itself
    assert heap.lookup(0, cell.env) == ref
    # The rest is the environment it was defined in
    assert heap.lookup(1, cell.env) == 7


def test_placeholder_ties_once():
    heap = Heap(8)
    slot = heap.reserve(EMPTY_ENV)
    with pytest.raises(MalformedProgram):
        heap.lookup(0, slot.env)
    slot.tie(3)
    assert heap.lookup(0, slot.env) == 3
    with pytest.raises(RuntimeError):
        slot.tie(4)
    with pytest.raises(RuntimeError):
        heap.arena.read(slot.env)._tie(4)
    assert heap.lookup(0, slot.env) == 3


def test_closure_of_non_closure_is_fatal():
    heap = Heap(8)
    env = heap.extend(1, EMPTY_ENV)
    with pytest.raises(MalformedProgram):
        heap.closure(5)
    with pytest.raises(MalformedProgram):
        heap.closure(ClosureRef(env))


def main():
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_")]
    failed = 0
    for test in tests:
        try:
            test()
            print(f"  ok    {test.__name__}")
        except (Exception, pytest.fail.Exception) as e:
            print(f"  FAIL  {test.__name__}: {e}")
            failed += 1
    print(f"{len(tests) - failed}/{len(tests)} passed")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
