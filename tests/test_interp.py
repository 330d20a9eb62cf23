import pytest

from tapec import cfg
from tapec.compiler import CompileOptions, compile_machine
from tapec.interp import Runtime, ScriptedRuntime, run_graph
from tapec.parser import parse_machine


def _run(machine, inputs, **options):
    compilation = compile_machine(machine, CompileOptions(targets=[], **options))
    runtime = ScriptedRuntime(inputs)
    result = run_graph(compilation.graph, machine, runtime, record_blocks=True)
    return result, runtime


def test_scenario_b_trace(scenario_a) -> None:
    result, runtime = _run(scenario_a, [2, 4])
    assert runtime.events == [
        "All Symbols: 0:a, 1:b\n",
        "All States: 0:q0, 1:q1\n",
        "Enter number of steps: ",
        "Enter tape size: ",
        "Unmatched: q1, b\n",
        "Halted after 2 steps in state q1 at cursor 1\n",
        "Tape:",
        " a",
        " b",
        " a",
        " a",
        "\n",
    ]
    assert result.exit_code == 0
    assert result.tape_symbols(scenario_a) == ["a", "b", "a", "a"]
    assert result.registers[cfg.STEP] == 2
    assert result.registers[cfg.STATE] == 1
    assert result.registers[cfg.SYMBOL] == 1
    assert result.registers[cfg.CURSOR] == 1
    assert result.trace == [
        "entry",
        "loop_header",
        "loop_body",
        "state_q0_sym_a",
        "continuation",
        "loop_header",
        "loop_body",
        "unmatched",
        "continuation",
        "loop_header",
        "loop_exit",
    ]


def test_zero_budget_exits_immediately(scenario_a) -> None:
    result, runtime = _run(scenario_a, [0, 4])
    assert "Halted after 0 steps in state q0 at cursor 0\n" in runtime.events
    assert runtime.output.endswith("Tape: a a a a\n")
    assert result.tape_symbols(scenario_a) == ["a"] * 4


def test_cursor_is_clamped_at_both_ends() -> None:
    machine = parse_machine("SYMBOLS: a\nSTATES: left, right\nleft, *, L, right\nright, *, R R R, left\n")
    result, _ = _run(machine, [1, 3])
    assert result.registers[cfg.CURSOR] == 0
    result, _ = _run(machine, [2, 3])
    assert result.registers[cfg.CURSOR] == 2


def test_tape_capacity_is_at_least_one(scenario_a) -> None:
    result, runtime = _run(scenario_a, [3, 0])
    assert result.registers[cfg.CAPACITY] == 1
    assert len(result.tape) == 1
    # q0 reads a, moves right (clamped), writes b over the same cell
    assert result.tape_symbols(scenario_a) == ["b"]
    assert runtime.output.endswith("Tape: b\n")


def test_machine_rereads_written_symbol() -> None:
    machine = parse_machine(
        "SYMBOLS: 0, 1\nSTATES: w, r\n"
        "w, 0, P(1), r\n"
        "r, 1, P(0) R, w\n"
    )
    result, runtime = _run(machine, [4, 8])
    assert "Unmatched" not in runtime.output
    assert result.tape_symbols(machine)[:3] == ["0", "0", "0"]
    assert result.registers[cfg.CURSOR] == 2


def test_trace_mode_prints_steps_and_cases(scenario_a) -> None:
    _, runtime = _run(scenario_a, [1, 2], trace=True)
    assert "Current step: 0\n" in runtime.events
    assert "Symbol: a State: q0\n" in runtime.events


def test_scripted_runtime_runs_out_of_input(scenario_a) -> None:
    with pytest.raises(EOFError):
        _run(scenario_a, [5])


def test_runtime_reads_preset_inputs(scenario_a, capsys) -> None:
    compilation = compile_machine(scenario_a, CompileOptions(targets=[]))
    result = run_graph(compilation.graph, scenario_a, Runtime([1, 2]))
    assert result.exit_code == 0
    out = capsys.readouterr().out
    assert out.endswith("Halted after 1 steps in state q1 at cursor 1\nTape: a b\n")
