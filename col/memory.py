"""
Memory model for the col machine.

One stack per column index. Indices below the program-defined count are
always present; anything above is an extended stack, created on demand when
the remote pointer reaches it and reclaimed by the collector once it is empty
and no longer addressed.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping

from .chips import Stack

logger = logging.getLogger(__name__)


class Memory:
    """Column index -> Stack."""

    def __init__(self, program_defined: int):
        self.program_defined = program_defined
        self.stacks: dict[int, Stack] = {i: Stack() for i in range(program_defined)}

    def get(self, index: int) -> Stack | None:
        return self.stacks.get(index)

    def ensure(self, index: int) -> Stack:
        """Return the stack at index, creating an empty one if absent."""
        stack = self.stacks.get(index)
        if stack is None:
            stack = Stack()
            self.stacks[index] = stack
            logger.debug("created extended stack %d", index)
        return stack

    def is_extended(self, index: int) -> bool:
        return index >= self.program_defined

    def collect(self, program_defined: int, active_remote: int) -> int:
        """Drop empty extended stacks other than the active remote.

        Returns the number of stacks removed.
        """
        floor = max(program_defined, self.program_defined)
        doomed = [
            i for i, stack in self.stacks.items()
            if i >= floor and i != active_remote and stack.is_empty()
        ]
        for i in doomed:
            del self.stacks[i]
        if doomed:
            logger.debug("collected %d extended stacks: %s", len(doomed), doomed)
        return len(doomed)

    def swap(self, i: int, j: int):
        """Exchange the contents of two present stacks."""
        a = self.stacks[i]
        b = self.stacks[j]
        a_values = a.snapshot()
        a.replace_all(b.snapshot())
        b.replace_all(a_values)

    def extended_count(self) -> int:
        return sum(1 for i in self.stacks if i >= self.program_defined)

    def indices(self) -> list[int]:
        return sorted(self.stacks)

    def snapshot(self) -> Mapping[int, tuple[int, ...]]:
        """Read-only view of every live stack, ordered by index."""
        return MappingProxyType(
            {i: self.stacks[i].snapshot() for i in self.indices()}
        )

    def __contains__(self, index: int) -> bool:
        return index in self.stacks

    def __len__(self) -> int:
        return len(self.stacks)
