"""
Tests for source layout and the instruction table.
"""

from __future__ import annotations

import pytest

from col.instructions import Instruction, Op, decode, glyph
from col.errors import ConfigurationError
from col.program import Program


def test_lines_become_columns():
    program = Program.from_text("12#\n\nabc\n")
    assert program.lines == ("12#", "", "abc")
    assert len(program) == 3
    assert program.line(2) == "abc"


def test_crlf_is_stripped():
    assert Program.from_text("1#\r\n@\r\n").lines == ("1#", "@")


def test_empty_text_has_one_column():
    assert Program.from_text("").lines == ("",)
    assert Program.from_text("\n").lines == ("",)


def test_program_is_immutable():
    program = Program.from_text("@")
    with pytest.raises(AttributeError):
        program.lines = ("1",)


def test_load_file(tmp_path):
    path = tmp_path / "prog.col"
    path.write_text("1#@\n2#@\n", encoding="utf-8")
    assert Program.load_file(path).lines == ("1#@", "2#@")


def test_hex_digits_decode_to_values():
    assert decode("0") == Instruction(Op.VALUE, 0)
    assert decode("9") == Instruction(Op.VALUE, 9)
    assert decode("A") == Instruction(Op.VALUE, 10)
    assert decode("F") == Instruction(Op.VALUE, 15)
    # lowercase hex is not a literal
    assert decode("a") is None


def test_unknown_characters_decode_to_none():
    for ch in " \tazGé":
        assert decode(ch) is None


def test_glyph_round_trips_every_table_entry():
    for ch in "<>.;~^vs\\:xcr[]\"+-*/%=`&|n!?_$#p@0123456789ABCDEF":
        instr = decode(ch)
        assert instr is not None, ch
        assert glyph(instr) == ch


def test_instruction_str():
    assert str(decode("C")) == "VALUE(12)"
    assert str(decode("@")) == "TERMINATE"


def test_program_without_columns_is_rejected():
    with pytest.raises(ConfigurationError):
        Program(())
