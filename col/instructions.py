"""
Instruction set for col.

Every source character either decodes to one instruction or is ignored.
The table is fixed; there is no escape mechanism.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class Op(Enum):
    # Column addressing
    PUSH_LEFT_INDEX = auto()
    PUSH_RIGHT_INDEX = auto()
    PUSH_CURRENT_INDEX = auto()
    SET_LOCAL_COLUMN = auto()
    SET_REMOTE_STACK = auto()
    # Cross-column transfer
    MOVE_TO_REMOTE = auto()
    MOVE_TO_LOCAL = auto()
    SWAP_STACKS = auto()
    # Stack manipulation
    SWAP_TOP = auto()
    DUPLICATE_TOP = auto()
    DISCARD = auto()
    CLEAR = auto()
    REVERSE = auto()
    # Literals & control
    VALUE = auto()
    LEFT_BRACKET = auto()
    RIGHT_BRACKET = auto()
    STRING_MODE = auto()
    # Arithmetic & logic
    ADD = auto()
    SUBTRACT = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULO = auto()
    EQUALS = auto()
    GREATER_THAN = auto()
    AND = auto()
    OR = auto()
    NAND = auto()
    INVERT = auto()
    RANDOM = auto()
    # I/O
    INPUT = auto()
    PRINT_CHAR = auto()
    PRINT_NUMBER = auto()
    PRINT_ALL = auto()
    TERMINATE = auto()


@dataclass(frozen=True)
class Instruction:
    op: Op
    value: int = 0

    def __str__(self) -> str:
        if self.op is Op.VALUE:
            return f"VALUE({self.value})"
        return self.op.name


# ---------------------------------------------------------------------------
# Character table
# ---------------------------------------------------------------------------

STRING_TOGGLE = '"'

_GLYPHS: dict[str, Op] = {
    "<": Op.PUSH_LEFT_INDEX,
    ">": Op.PUSH_RIGHT_INDEX,
    ".": Op.PUSH_CURRENT_INDEX,
    ";": Op.SET_LOCAL_COLUMN,
    "~": Op.SET_REMOTE_STACK,
    "^": Op.MOVE_TO_REMOTE,
    "v": Op.MOVE_TO_LOCAL,
    "s": Op.SWAP_STACKS,
    "\\": Op.SWAP_TOP,
    ":": Op.DUPLICATE_TOP,
    "x": Op.DISCARD,
    "c": Op.CLEAR,
    "r": Op.REVERSE,
    "[": Op.LEFT_BRACKET,
    "]": Op.RIGHT_BRACKET,
    STRING_TOGGLE: Op.STRING_MODE,
    "+": Op.ADD,
    "-": Op.SUBTRACT,
    "*": Op.MULTIPLY,
    "/": Op.DIVIDE,
    "%": Op.MODULO,
    "=": Op.EQUALS,
    "`": Op.GREATER_THAN,
    "&": Op.AND,
    "|": Op.OR,
    "n": Op.NAND,
    "!": Op.INVERT,
    "?": Op.RANDOM,
    "_": Op.INPUT,
    "$": Op.PRINT_CHAR,
    "#": Op.PRINT_NUMBER,
    "p": Op.PRINT_ALL,
    "@": Op.TERMINATE,
}

TABLE: dict[str, Instruction] = {ch: Instruction(op) for ch, op in _GLYPHS.items()}
# Hex digit literals: 0-9 and A-F (uppercase only)
for _i, _ch in enumerate("0123456789ABCDEF"):
    TABLE[_ch] = Instruction(Op.VALUE, _i)

OP_TO_GLYPH: dict[Op, str] = {op: ch for ch, op in _GLYPHS.items()}


def decode(ch: str) -> Instruction | None:
    """Decode one source character. None for anything outside the table."""
    return TABLE.get(ch)


def glyph(instr: Instruction) -> str:
    """Source character for an instruction."""
    if instr.op is Op.VALUE:
        return "0123456789ABCDEF"[instr.value]
    return OP_TO_GLYPH[instr.op]
