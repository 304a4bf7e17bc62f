"""
ColHost: high-level interface to the col machine.

Owns the machine together with an in-memory input FIFO and output buffer:
load a program, queue input, run, then drain what the program printed.
"""

from __future__ import annotations

import io
import random
from pathlib import Path

from .chips import FIFO
from .errors import ColError
from .machine import ColMachine, GC_INTERVAL, STATE_NAMES, S_TERMINATED, StepCallback
from .program import Program


class ColHost:
    """High-level interface to the col machine.

    Args:
        gc_interval: Steps between collection sweeps of extended stacks.
        rng: Random source for the random instruction. Seed it for
            reproducible runs.
        on_step: Observation callback, called with a read-only snapshot of
            every live stack after each step.
    """

    def __init__(self, gc_interval: int = GC_INTERVAL,
                 rng: random.Random | None = None,
                 on_step: StepCallback | None = None):
        self.gc_interval = gc_interval
        self.rng = rng
        self.on_step = on_step
        self.input = FIFO()
        self.output = io.StringIO()
        self.machine: ColMachine | None = None

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------

    def load_program(self, program: Program) -> ColMachine:
        self.machine = ColMachine(
            program, self.input, self.output,
            gc_interval=self.gc_interval, on_step=self.on_step, rng=self.rng,
        )
        return self.machine

    def load_source(self, text: str) -> ColMachine:
        return self.load_program(Program.from_text(text))

    def load_file(self, path: str | Path) -> ColMachine:
        return self.load_program(Program.load_file(path))

    # -------------------------------------------------------------------
    # IO
    # -------------------------------------------------------------------

    def send(self, data: bytes | str):
        """Queue bytes for the program's input instruction."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        for b in data:
            self.input.push(b)

    def recv(self) -> str:
        """Drain everything the program has printed so far."""
        text = self.output.getvalue()
        self.output.seek(0)
        self.output.truncate()
        return text

    # -------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------

    def run(self, max_steps: int | None = None) -> dict:
        """Run the loaded program.

        Returns dict with ok flag, final state, output, error text and stats.
        Runtime faults are reported in the dict rather than raised.
        """
        if self.machine is None:
            raise ValueError("No program loaded")

        error = None
        try:
            self.machine.run(max_steps=max_steps)
        except ColError as e:
            error = str(e)

        return {
            "ok": self.machine.state == S_TERMINATED,
            "state": STATE_NAMES[self.machine.state],
            "output": self.recv(),
            "error": error,
            "stats": self.machine.stats(),
        }

    def run_source(self, text: str, input: bytes | str = b"",
                   max_steps: int | None = None) -> dict:
        """Load, feed input, and run in one call."""
        self.load_source(text)
        self.send(input)
        return self.run(max_steps=max_steps)
