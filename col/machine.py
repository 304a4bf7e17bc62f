"""
col machine: step engine for the column-stack language.

Every line of the program is a column with its own stack. One column is
local (the one executing), one stack is remote (the transfer target, which
may sit beyond the program's columns). The machine fetches one instruction
per step from the local column's line, wrapping the ip around the line.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Mapping, TextIO

from .chips import Stack, WORD_MASK
from .errors import ConfigurationError, DivisionByZeroError, InvalidCodepointError
from .instructions import Instruction, Op, STRING_TOGGLE, decode
from .memory import Memory
from .program import Program

logger = logging.getLogger(__name__)

# Run states
S_RUNNING    = 0
S_TERMINATED = 1
S_HALTED     = 2   # caller's step limit reached
S_FAULTED    = 3

STATE_NAMES = {
    S_RUNNING: "RUNNING",
    S_TERMINATED: "TERMINATED",
    S_HALTED: "HALTED",
    S_FAULTED: "FAULTED",
}

# Steps between garbage-collection sweeps of extended stacks
GC_INTERVAL = 8192

MAX_CODEPOINT = 0x10FFFF

StepCallback = Callable[[Mapping[int, tuple[int, ...]]], None]


def is_scalar(value: int) -> bool:
    """True if value maps to a Unicode scalar value."""
    return value <= MAX_CODEPOINT and not 0xD800 <= value <= 0xDFFF


# b is the value pushed first, a the top of the stack
_BINARY_OPS: dict[Op, Callable[[int, int], int]] = {
    Op.ADD:          lambda b, a: b + a,
    Op.SUBTRACT:     lambda b, a: b - a,
    Op.MULTIPLY:     lambda b, a: b * a,
    Op.EQUALS:       lambda b, a: int(b == a),
    Op.GREATER_THAN: lambda b, a: int(b > a),
    Op.AND:          lambda b, a: int(b != 0 and a != 0),
    Op.OR:           lambda b, a: int(b != 0 or a != 0),
    Op.NAND:         lambda b, a: ~(b & a),
}


class ColMachine:
    """Step engine. One instance runs one program once."""

    def __init__(self, program: Program,
                 reader=None,
                 writer: TextIO | None = None,
                 *,
                 gc_interval: int = GC_INTERVAL,
                 on_step: StepCallback | None = None,
                 rng: random.Random | None = None):
        if gc_interval < 1:
            raise ConfigurationError(f"gc_interval must be positive, got {gc_interval}")

        self.program = program
        self.memory = Memory(len(program))
        self.reader = reader
        self.writer = writer
        self.gc_interval = gc_interval
        self.on_step = on_step
        self.rng = rng or random.Random()

        # --- Cursor ---
        self.local_column = 0
        self.remote_column = 0
        self.ip = 0
        self.string_mode = False
        self.state = S_RUNNING

        # --- Per-step latches ---
        self._pending_remote = False
        self.last_instruction: Instruction | None = None
        self.last_position: int | None = None

        # --- Counters ---
        self.steps = 0
        self.instructions = 0
        self.skipped = 0
        self.gc_sweeps = 0
        self.stacks_collected = 0
        self.io_ops = 0
        self.extended_peak = 0

    # -------------------------------------------------------------------
    # Cursor helpers
    # -------------------------------------------------------------------

    @property
    def columns(self) -> int:
        """Number of program-defined columns."""
        return len(self.program)

    @property
    def running(self) -> bool:
        return self.state == S_RUNNING

    def current_line(self) -> str:
        return self.program.line(self.local_column)

    def local_stack(self) -> Stack:
        return self.memory.stacks[self.local_column]

    def remote_stack(self) -> Stack | None:
        """The remote stack, or None when it is the local one."""
        if self.remote_column == self.local_column:
            return None
        return self.memory.get(self.remote_column)

    def _advance_ip(self):
        width = len(self.current_line())
        self.ip = (self.ip + 1) % width if width else 0

    # -------------------------------------------------------------------
    # Step loop
    # -------------------------------------------------------------------

    def tick(self) -> bool:
        """One step plus collection and observation. Returns True if still running."""
        if self.state != S_RUNNING:
            return False

        try:
            self._step()
        except Exception:
            self.state = S_FAULTED
            logger.debug("fault at column %d, ip %d", self.local_column, self.ip)
            raise

        self.steps += 1

        if self.steps % self.gc_interval == 0:
            self.collect_garbage()

        if self._pending_remote:
            self.memory.ensure(self.remote_column)
            self._pending_remote = False
            self.extended_peak = max(self.extended_peak, self.memory.extended_count())

        if self.on_step is not None:
            self.on_step(self.memory.snapshot())

        return self.state == S_RUNNING

    def run(self, max_steps: int | None = None, delay_ms: int = 0) -> int:
        """Step until terminated, or until max_steps steps (S_HALTED).

        delay_ms pauses between steps for pacing. Returns the final state.
        """
        taken = 0
        while self.state == S_RUNNING:
            if max_steps is not None and taken >= max_steps:
                self.state = S_HALTED
                break
            if not self.tick():
                break
            taken += 1
            if delay_ms:
                time.sleep(delay_ms / 1000)
        return self.state

    def collect_garbage(self) -> int:
        removed = self.memory.collect(self.columns, self.remote_column)
        self.gc_sweeps += 1
        self.stacks_collected += removed
        return removed

    def _step(self):
        line = self.current_line()
        width = len(line)
        if not width:
            # Empty column: control stays here
            return

        if self.string_mode:
            ch = line[self.ip]
            if ch == STRING_TOGGLE:
                self.string_mode = False
            else:
                self.local_stack().push(ord(ch))
            self._advance_ip()
            return

        # Skip characters outside the instruction table. A full lap with
        # nothing decodable leaves the ip where it was.
        for _ in range(width):
            pos = self.ip
            instr = decode(line[pos])
            self._advance_ip()
            if instr is not None:
                break
            self.skipped += 1
        else:
            return

        self.instructions += 1
        self.last_instruction = instr
        self.last_position = pos
        self._execute(instr, pos)

    # -------------------------------------------------------------------
    # Bracket matching
    # -------------------------------------------------------------------

    def _match_forward(self, pos: int) -> int | None:
        """Index of the ] matching the [ at pos, scanning right."""
        line = self.current_line()
        depth = 0
        for i in range(pos + 1, len(line)):
            instr = decode(line[i])
            if instr is None:
                continue
            if instr.op is Op.LEFT_BRACKET:
                depth += 1
            elif instr.op is Op.RIGHT_BRACKET:
                if depth == 0:
                    return i
                depth -= 1
        return None

    def _match_backward(self, pos: int) -> int | None:
        """Index of the [ matching the ] at pos, scanning left."""
        line = self.current_line()
        depth = 0
        for i in range(pos - 1, -1, -1):
            instr = decode(line[i])
            if instr is None:
                continue
            if instr.op is Op.RIGHT_BRACKET:
                depth += 1
            elif instr.op is Op.LEFT_BRACKET:
                if depth == 0:
                    return i
                depth -= 1
        return None

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------

    def _execute(self, instr: Instruction, pos: int):
        """Run one decoded instruction. self.ip already points past pos."""
        op = instr.op
        local = self.local_stack()

        # --- Literals ---
        if op is Op.VALUE:
            local.push(instr.value)

        # --- Arithmetic & logic ---
        elif op in _BINARY_OPS:
            a, b = local.pop2()
            local.push(_BINARY_OPS[op](b, a))

        elif op is Op.DIVIDE or op is Op.MODULO:
            a, b = local.pop2()
            if a == 0:
                raise DivisionByZeroError(self.local_column, pos)
            local.push(b // a if op is Op.DIVIDE else b % a)

        elif op is Op.INVERT:
            local.push(int(local.pop() == 0))

        elif op is Op.RANDOM:
            local.push(self.rng.getrandbits(32))

        # --- Stack manipulation ---
        elif op is Op.SWAP_TOP:
            a, b = local.pop2()
            local.push(a)
            local.push(b)

        elif op is Op.DUPLICATE_TOP:
            local.push(local.peek())

        elif op is Op.DISCARD:
            local.pop()

        elif op is Op.CLEAR:
            local.clear()

        elif op is Op.REVERSE:
            local.reverse()

        # --- Column addressing ---
        elif op is Op.PUSH_LEFT_INDEX:
            local.push((self.local_column - 1) % self.columns)

        elif op is Op.PUSH_RIGHT_INDEX:
            local.push((self.local_column + 1) % self.columns)

        elif op is Op.PUSH_CURRENT_INDEX:
            local.push(self.local_column)

        elif op is Op.SET_LOCAL_COLUMN:
            self.local_column = local.pop() % self.columns
            self.ip = 0
            logger.debug("switched to column %d", self.local_column)

        elif op is Op.SET_REMOTE_STACK:
            self.remote_column = local.pop()
            if self.remote_column >= self.columns and self.remote_column not in self.memory:
                self._pending_remote = True

        # --- Cross-column transfer ---
        elif op is Op.MOVE_TO_REMOTE:
            remote = self.remote_stack()
            if remote is not None:
                remote.push(local.pop())

        elif op is Op.MOVE_TO_LOCAL:
            remote = self.remote_stack()
            if remote is not None:
                local.push(remote.pop())

        elif op is Op.SWAP_STACKS:
            if self.remote_stack() is not None:
                self.memory.swap(self.local_column, self.remote_column)

        # --- Control flow ---
        elif op is Op.LEFT_BRACKET:
            if local.peek() == 0:
                match = self._match_forward(pos)
                if match is None:
                    self.ip = 0
                else:
                    self.ip = (match + 1) % len(self.current_line())

        elif op is Op.RIGHT_BRACKET:
            if local.peek() != 0:
                match = self._match_backward(pos)
                self.ip = 0 if match is None else match

        elif op is Op.STRING_MODE:
            self.string_mode = True

        # --- I/O ---
        elif op is Op.INPUT:
            local.push(self._read_byte())
            self.io_ops += 1

        elif op is Op.PRINT_CHAR:
            value = local.pop()
            if not is_scalar(value):
                raise InvalidCodepointError(value, self.local_column, pos)
            self._write(chr(value))

        elif op is Op.PRINT_NUMBER:
            self._write(str(local.pop()))

        elif op is Op.PRINT_ALL:
            text = "".join(chr(v) for v in reversed(local.snapshot()) if is_scalar(v))
            local.clear()
            self._write(text)

        elif op is Op.TERMINATE:
            self.state = S_TERMINATED
            logger.debug("terminated after %d steps", self.steps + 1)

    # -------------------------------------------------------------------
    # I/O
    # -------------------------------------------------------------------

    def _read_byte(self) -> int:
        if self.reader is None:
            return 0
        data = self.reader.read(1)
        if not data:
            return 0
        if isinstance(data, str):
            return ord(data[0]) & WORD_MASK
        return data[0]

    def _write(self, text: str):
        self.io_ops += 1
        if self.writer is not None and text:
            self.writer.write(text)

    # -------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------

    def reset_counters(self):
        self.steps = 0
        self.instructions = 0
        self.skipped = 0
        self.gc_sweeps = 0
        self.stacks_collected = 0
        self.io_ops = 0
        self.extended_peak = 0

    def stats(self) -> dict:
        return {
            "steps": self.steps,
            "instructions": self.instructions,
            "skipped": self.skipped,
            "gc_sweeps": self.gc_sweeps,
            "stacks_collected": self.stacks_collected,
            "io_ops": self.io_ops,
            "live_stacks": len(self.memory),
            "extended_peak": self.extended_peak,
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"Steps: {s['steps']} ({s['instructions']} instructions, "
            f"{s['skipped']} skipped chars)\n"
            f"GC: {s['gc_sweeps']} sweeps, {s['stacks_collected']} stacks collected\n"
            f"Stacks: {s['live_stacks']} live, extended peak {s['extended_peak']}\n"
            f"IO: {s['io_ops']} operations"
        )
