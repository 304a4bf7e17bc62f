"""
Error classes for the col machine.
"""

from __future__ import annotations


class ColError(Exception):
    """Base error. Carries the column and ip where it happened, when known."""

    def __init__(self, message: str, column: int | None = None,
                 ip: int | None = None):
        self.message = message
        self.column = column
        self.ip = ip
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.column is None:
            return self.message
        return f"column {self.column}, ip {self.ip}: {self.message}"


class ConfigurationError(ColError):
    """Invalid machine configuration."""


class ColRuntimeError(ColError):
    """Fault raised while executing a step. Aborts the run."""


class DivisionByZeroError(ColRuntimeError):

    def __init__(self, column: int | None = None, ip: int | None = None):
        super().__init__("Division by zero", column, ip)


class InvalidCodepointError(ColRuntimeError):
    """A value printed as a character has no Unicode scalar mapping."""

    def __init__(self, value: int, column: int | None = None,
                 ip: int | None = None):
        self.value = value
        super().__init__(f"Invalid code point: {value}", column, ip)
