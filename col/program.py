"""
Source layout: program text split into columns.

Each line of the source is one column. The split happens once at load and
the result never changes for the rest of the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError


@dataclass(frozen=True)
class Program:
    lines: tuple[str, ...]

    def __post_init__(self):
        if not self.lines:
            raise ConfigurationError("a program needs at least one column")

    @classmethod
    def from_text(cls, text: str) -> Program:
        """Split on newlines. A trailing newline does not open a new column.

        Empty text yields one empty column so there is always a column 0.
        """
        lines = text.split("\n")
        if text.endswith("\n"):
            lines.pop()
        lines = [line[:-1] if line.endswith("\r") else line for line in lines]
        return cls(tuple(lines) or ("",))

    @classmethod
    def load_file(cls, path: str | Path) -> Program:
        return cls.from_text(Path(path).read_text(encoding="utf-8"))

    def line(self, column: int) -> str:
        return self.lines[column]

    def __len__(self) -> int:
        return len(self.lines)
