"""
Verification suite for the col machine.

Runs small programs through ColHost and checks output, stack contents and
the collector against hand-traced expectations.
"""

from __future__ import annotations

import random

import pytest

from col.errors import ConfigurationError, DivisionByZeroError, InvalidCodepointError
from col.host import ColHost
from col.machine import (
    ColMachine, S_FAULTED, S_HALTED, S_RUNNING, S_TERMINATED,
)
from col.program import Program


def output(source: str, input: bytes | str = b"") -> str:
    r = ColHost().run_source(source, input=input)
    assert r["ok"], r
    return r["output"]


# ---------------------------------------------------------------------------
# Literals & arithmetic
# ---------------------------------------------------------------------------

def test_hello_world():
    assert output('"Hello world!"rp@') == "Hello world!"


def test_literals():
    assert output("0123456789ABCDEFr#[#]@") == "0123456789101112131415"


def test_pushed_literals_print_in_order():
    """Programs of literal pushes and print-number echo the digits."""
    rng = random.Random(1234)
    for _ in range(25):
        digits = [rng.randrange(16) for _ in range(rng.randrange(1, 12))]
        source = "".join("0123456789ABCDEF"[d] + "#" for d in digits) + "@"
        assert output(source) == "".join(str(d) for d in digits)


def test_math():
    assert output("092++#@") == "11"
    assert output("F1+F1+*#@") == "256"
    assert output("15/4#@") == "4"
    assert output("FF-# FE-# @") == "01"
    assert output("73%#@") == "1"
    assert output("F4/#@") == "3"


def test_wraparound():
    assert output("1-#@") == "4294967295"
    assert output("1-  5+#@") == "4"
    assert output("FF*FF**FF**FF**#@") == str((15 ** 8) & 0xFFFFFFFF)


def test_logic():
    assert output("55=# FA=# @") == "10"
    assert output("55`# 54`# 45`# @") == "010"
    assert output("FA`#@") == "1"
    assert output("5!# 0!# FF+!# 1!# @") == "0100"
    assert output("30&# 32&# @") == "01"
    assert output("00|# 03|# @") == "01"


def test_nand_is_bitwise():
    assert output("35n#@") == str(0xFFFFFFFF ^ (3 & 5))
    assert output("00n#@") == "4294967295"


def test_random_uses_injected_rng():
    expected = random.Random(7).getrandbits(32)
    host = ColHost(rng=random.Random(7))
    assert host.run_source("?#@")["output"] == str(expected)


def test_division_by_zero_faults():
    host = ColHost()
    r = host.run_source("3#50/#@")
    assert not r["ok"]
    assert r["state"] == "FAULTED"
    assert r["output"] == "3"
    assert "Division by zero" in r["error"]

    machine = ColMachine(Program.from_text("50%@"))
    with pytest.raises(DivisionByZeroError) as info:
        machine.run()
    assert info.value.column == 0
    assert info.value.ip == 2
    assert machine.state == S_FAULTED
    assert not machine.tick()


# ---------------------------------------------------------------------------
# Stack manipulation
# ---------------------------------------------------------------------------

def test_stack_ops():
    assert output("12\\##@") == "12"
    assert output("7:##@") == "77"
    assert output("12x#@") == "1"
    assert output("123c#@") == "0"
    assert output("123r###@") == "123"


def test_ignored_characters_are_skipped():
    assert output("1 2 yz +#@") == "3"
    assert output("  \t4#  @  ") == "4"


# ---------------------------------------------------------------------------
# Control flow
# ---------------------------------------------------------------------------

def test_countdown_loop():
    assert output("5[:#1-]@") == "54321"


def test_loop_skipped_when_top_is_zero():
    assert output("0[#]1#@") == "1"


def test_nested_loops():
    # outer counts 2..1, inner prints the outer value's countdown
    assert output("2[:[:#1-]x1-]@") == "211"


def test_unmatched_bracket_falls_back_to_line_start():
    host = ColHost()
    r = host.run_source("[1#@", max_steps=5)
    assert r["state"] == "HALTED"
    assert r["output"] == ""
    assert host.machine.ip == 0


def test_ip_wraps_around_the_line():
    r = ColHost().run_source("1#", max_steps=6)
    assert r["state"] == "HALTED"
    assert r["output"] == "111"


def test_column_without_instructions_spins():
    host = ColHost()
    r = host.run_source("1;\n   ", max_steps=10)
    assert r["state"] == "HALTED"
    assert r["stats"]["steps"] == 10
    assert host.machine.local_column == 1
    assert host.machine.ip == 0


def test_string_mode_pushes_code_points():
    host = ColHost()
    host.run_source('"a1@"@')
    assert host.machine.memory.get(0).snapshot() == (97, 49, 64)


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------

def test_neighbour_indices_wrap_within_program():
    assert output("<#@\nx\nx") == "2"
    assert output("2;\nx\n>#@") == "0"
    assert output(">;\n.#@") == "1"


def test_set_local_column_is_modulo_and_restarts_line():
    assert output("7;\n\n\n3#@") == "3"


def test_move_between_columns():
    assert output("1~7^>;\n#@") == "7"


def test_same_column_transfer_is_noop():
    host = ColHost()
    host.run_source("0~5^v@")
    assert host.machine.memory.get(0).snapshot() == (5,)
    assert output("0~12s##@") == "21"


def test_swap_stacks():
    host = ColHost()
    assert host.run_source(">~12s>;\n##@")["output"] == "21"
    assert host.machine.memory.get(0).snapshot() == ()


def test_remote_beyond_program_is_created_on_demand():
    host = ColHost()
    assert host.run_source("F~5^F~v#@")["output"] == "5"
    assert 15 in host.machine.memory
    assert host.machine.memory.is_extended(15)


def test_move_to_local_from_empty_remote_pushes_zero():
    assert output("F~v#@") == "0"


# ---------------------------------------------------------------------------
# Garbage collection
# ---------------------------------------------------------------------------

def test_collector_reclaims_abandoned_extended_stack():
    program = Program(("8~0~1[]", "", ""))
    machine = ColMachine(program, gc_interval=4)
    machine.tick()
    machine.tick()
    assert 8 in machine.memory
    machine.tick()
    machine.tick()
    assert machine.gc_sweeps == 1
    assert 8 not in machine.memory
    assert machine.memory.get(2) is not None
    assert machine.memory.get(2).is_empty()


def test_collector_keeps_nonempty_and_active_stacks():
    program = Program(("8~5^0~1[]", "", ""))
    machine = ColMachine(program, gc_interval=1)
    machine.run(max_steps=12)
    assert machine.memory.get(8).snapshot() == (5,)
    assert machine.stacks_collected == 0


def test_gc_interval_must_be_positive():
    with pytest.raises(ConfigurationError):
        ColMachine(Program.from_text("@"), gc_interval=0)


# ---------------------------------------------------------------------------
# I/O
# ---------------------------------------------------------------------------

def test_input_reads_bytes_then_zero():
    assert output("__##@", input=b"A") == "065"


def test_input_without_source_pushes_zero():
    machine = ColMachine(Program.from_text("_@"))
    machine.run()
    assert machine.memory.get(0).snapshot() == (0,)


def test_print_char():
    assert output('"A"$A$@') == "A\n"
    assert output("F5*4-7*:+$@") == chr(((15 * 5 - 4) * 7) * 2)


def test_print_char_rejects_invalid_code_point():
    host = ColHost()
    r = host.run_source('"x"$01-$@')
    assert r["state"] == "FAULTED"
    assert r["output"] == "x"
    assert "Invalid code point: 4294967295" in r["error"]

    machine = ColMachine(Program.from_text("01-$@"))
    with pytest.raises(InvalidCodepointError) as info:
        machine.run()
    assert info.value.value == 4294967295


def test_print_all_skips_invalid_and_clears():
    host = ColHost()
    assert host.run_source('"a"01-"b"p@')["output"] == "ba"
    assert host.machine.memory.get(0).is_empty()


def test_prints_without_writer_still_pop():
    machine = ColMachine(Program.from_text("12#@"))
    assert machine.run() == S_TERMINATED
    assert machine.memory.get(0).snapshot() == (1,)


# ---------------------------------------------------------------------------
# Run loop, observation
# ---------------------------------------------------------------------------

def test_terminate_stops_run():
    machine = ColMachine(Program.from_text("@1#"))
    assert machine.run() == S_TERMINATED
    assert machine.steps == 1
    assert not machine.tick()


def test_max_steps_halts():
    machine = ColMachine(Program.from_text("1"))
    assert machine.state == S_RUNNING
    assert machine.run(max_steps=3) == S_HALTED
    assert machine.memory.get(0).snapshot() == (1, 1, 1)


def test_step_callback_sees_read_only_snapshots():
    seen = []
    host = ColHost(on_step=seen.append)
    host.run_source("12@")
    assert len(seen) == 3
    assert dict(seen[0]) == {0: (1,)}
    assert dict(seen[-1]) == {0: (1, 2)}
    with pytest.raises(TypeError):
        seen[-1][0] = ()
    assert host.machine.memory.get(0).snapshot() == (1, 2)


def test_stats():
    host = ColHost()
    r = host.run_source("1 2+#@")
    assert r["stats"]["instructions"] == 5
    assert r["stats"]["skipped"] == 1
    assert r["stats"]["io_ops"] == 1
    assert "Steps: 5" in host.machine.stats_summary()
