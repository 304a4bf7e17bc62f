"""
Storage primitives for the col machine.

Models the two buffers every column program touches: the per-column value
stack and the input FIFO the machine reads bytes from.
"""

from __future__ import annotations

import collections
from typing import Iterable

WORD_BITS = 32
WORD_MASK = (1 << WORD_BITS) - 1


class Stack:
    """LIFO of unsigned 32-bit words. Pops and peeks default to zero."""

    def __init__(self, values: Iterable[int] = ()):
        self._values: list[int] = [v & WORD_MASK for v in values]

    def push(self, val: int):
        self._values.append(val & WORD_MASK)

    def pop(self) -> int:
        return self._values.pop() if self._values else 0

    def pop2(self) -> tuple[int, int]:
        """Pop twice. Returns (a, b) with a the most recently pushed."""
        a = self.pop()
        b = self.pop()
        return (a, b)

    def peek(self) -> int:
        return self._values[-1] if self._values else 0

    def clear(self):
        self._values.clear()

    def reverse(self):
        self._values.reverse()

    def replace_all(self, values: Iterable[int]):
        self._values = [v & WORD_MASK for v in values]

    def is_empty(self) -> bool:
        return not self._values

    def snapshot(self) -> tuple[int, ...]:
        """Values bottom-to-top."""
        return tuple(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Stack({self._values!r})"


class FIFO:
    """Input byte buffer. Quacks like a binary stream for the machine."""

    def __init__(self, data: bytes = b""):
        self.buffer: collections.deque[int] = collections.deque(data)

    def push(self, byte: int):
        self.buffer.append(byte & 0xFF)

    def pop(self) -> int | None:
        return self.buffer.popleft() if self.buffer else None

    def read(self, size: int = 1) -> bytes:
        out = bytearray()
        while len(out) < size:
            byte = self.pop()
            if byte is None:
                break
            out.append(byte)
        return bytes(out)

    def ready(self) -> bool:
        return len(self.buffer) > 0

    def __len__(self) -> int:
        return len(self.buffer)
