"""
SECD machine: code ROM, operand stack, dump and a cell-arena heap driven
by a fetch-decode-execute loop, one instruction per tick.
"""

from __future__ import annotations

from dataclasses import dataclass

from .chips import ALU, ROM, Segment, to_word
from .faults import MachineFault, MalformedProgram, ResourceExhausted
from .heap import Heap
from .opcodes import (
    HALT, LDC, LD, ADD, SUB, MUL, SEL, JOIN, LDF, LDRF, AP, RTN,
    OPCODE_NAMES,
)
from .values import EMPTY_ENV, BranchFrame, CallFrame, Env, Value


# State register values
S_FETCH = 0
S_DONE  = 1
S_FAULT = 2

STATE_NAMES = {S_FETCH: "S_FETCH", S_DONE: "S_DONE", S_FAULT: "S_FAULT"}

# Default capacities
CODE_SIZE  = 4096
STACK_SIZE = 1024
DUMP_SIZE  = 1024
HEAP_SIZE  = 1 << 20


@dataclass(frozen=True)
class MachineConfig:
    """Segment and arena capacities, fixed before any code is loaded."""
    code_size: int = CODE_SIZE
    stack_size: int = STACK_SIZE
    dump_size: int = DUMP_SIZE
    heap_size: int = HEAP_SIZE


class SECDMachine:
    """Fetch-decode-execute loop over the SECD segments."""

    def __init__(self, config: MachineConfig | None = None):
        self.config = config or MachineConfig()

        # --- Segments ---
        self.code = ROM(self.config.code_size)
        self.stack = Segment("operand stack", self.config.stack_size)
        self.dump = Segment("dump", self.config.dump_size)
        self.heap = Heap(self.config.heap_size)
        self.alu = ALU()

        # --- Registers ---
        self.pc = 0
        self.env: Env = EMPTY_ENV
        self.state = S_FETCH
        self.result: Value | None = None
        self.fault: MachineFault | None = None
        self.fetch_pc = 0

        # --- Counters ---
        self.cycles = 0
        self.alu_ops = 0

    @property
    def sp(self) -> int:
        return self.stack.height

    @property
    def dp(self) -> int:
        return self.dump.height

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------

    def load(self, words) -> int:
        """Burn words into the code segment and reset. Returns count loaded."""
        n = self.code.burn(words)
        self.reset()
        return n

    def reset(self):
        """Initial register state. The heap is left as it is."""
        self.pc = 0
        self.env = EMPTY_ENV
        self.stack.clear()
        self.dump.clear()
        self.state = S_FETCH
        self.result = None
        self.fault = None
        self.fetch_pc = 0

    def restart(self):
        """Fresh arena plus initial registers, for a new run of the loaded code."""
        self.heap.release()
        self.heap = Heap(self.config.heap_size)
        self.reset()

    # -------------------------------------------------------------------
    # Fetch-decode-execute
    # -------------------------------------------------------------------

    def tick(self) -> bool:
        """Execute one instruction. Returns True if still running."""
        if self.state != S_FETCH:
            return False
        self.cycles += 1
        self.fetch_pc = self.pc
        try:
            self._execute()
            if self.state == S_FETCH:
                self._check_registers()
        except MachineFault as fault:
            if fault.pc is None:
                fault.pc = self.fetch_pc
            self.fault = fault
            self.state = S_FAULT
            raise
        return self.state == S_FETCH

    def _execute(self):
        code = self.code
        stack = self.stack
        pc = self.pc

        opcode = code.read(pc)
        pc += 1

        if opcode == LDC:
            stack.push(to_word(code.read(pc)))
            pc += 1

        elif opcode == LD:
            index = code.read(pc)
            pc += 1
            stack.push(self.heap.lookup(index, self.env))

        elif opcode in (ADD, SUB, MUL):
            a = stack.pop()
            b = stack.pop()
            stack.push(self.alu(OPCODE_NAMES[opcode], b, a))
            self.alu_ops += 1

        elif opcode == SEL:
            cond = stack.pop()
            # Resume past both inline targets, whichever branch is taken.
            self.dump.push(BranchFrame(pc + 2))
            pc = code.read(pc) if cond == 0 else code.read(pc + 1)

        elif opcode == LDF:
            entry = code.read(pc)
            pc += 1
            stack.push(self.heap.make_closure(entry, self.env))

        elif opcode == LDRF:
            entry = code.read(pc)
            pc += 1
            stack.push(self.heap.make_recursive_closure(entry, self.env))

        elif opcode == AP:
            arg = stack.pop()
            closure = self.heap.closure(stack.pop())
            self.dump.push(CallFrame(pc, self.env))
            self.env = self.heap.extend(arg, closure.env)
            pc = closure.entry

        elif opcode == RTN:
            frame = self.dump.pop()
            if not isinstance(frame, CallFrame):
                raise MalformedProgram("RTN popped a branch frame")
            pc = frame.resume_pc
            self.env = frame.env

        elif opcode == JOIN:
            frame = self.dump.pop()
            if not isinstance(frame, BranchFrame):
                raise MalformedProgram("JOIN popped a call frame")
            pc = frame.resume_pc

        elif opcode == HALT:
            self.result = stack.pop()
            self.state = S_DONE

        else:
            raise MalformedProgram(f"invalid opcode {opcode}")

        self.pc = pc

    def _check_registers(self):
        if not self.stack.height < self.stack.capacity:
            raise ResourceExhausted(f"operand stack full ({self.stack.capacity} entries)")
        if not self.dump.height < self.dump.capacity:
            raise ResourceExhausted(f"dump full ({self.dump.capacity} frames)")
        if not 0 <= self.pc < self.code.capacity:
            raise MalformedProgram(f"program counter {self.pc} outside code segment")

    def run(self) -> Value:
        """Run until HALT. Returns the value left on top of the stack."""
        while self.tick():
            pass
        return self.result

    # -------------------------------------------------------------------
    # Teardown and stats
    # -------------------------------------------------------------------

    def release(self):
        """Drop the arena and segments in one go."""
        self.heap.release()
        self.stack.clear()
        self.dump.clear()

    def reset_counters(self):
        self.cycles = 0
        self.alu_ops = 0
        self.heap.allocs = 0
        self.heap.reads = 0
        self.stack.peak = self.stack.height
        self.dump.peak = self.dump.height

    def stats(self) -> dict:
        return {
            "cycles": self.cycles,
            "alu_ops": self.alu_ops,
            "heap_allocs": self.heap.allocs,
            "heap_reads": self.heap.reads,
            "heap_used": self.heap.used,
            "stack_peak": self.stack.peak,
            "dump_peak": self.dump.peak,
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"Cycles: {s['cycles']}, ALU ops: {s['alu_ops']}, "
            f"Heap: {s['heap_allocs']} allocs/{s['heap_reads']} reads "
            f"({s['heap_used']}/{self.heap.capacity} cells), "
            f"Stack peak: {s['stack_peak']}, Dump peak: {s['dump_peak']}"
        )
