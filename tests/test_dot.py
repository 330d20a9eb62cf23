from tapec.dot import machine_to_dot
from tapec.parser import parse_machine


def test_one_node_per_state_and_one_edge_per_transition(scenario_a) -> None:
    dot = machine_to_dot(scenario_a)
    assert dot.startswith('digraph "state_machine" {')
    assert '"q0" [shape=doublecircle];' in dot
    assert '"q1" [shape=circle];' in dot
    assert dot.count("->") == len(scenario_a.transitions)
    assert '"q0" -> "q1" [label="a / R P(b)"];' in dot
    assert '"q0" -> "q0" [label="* / L"];' in dot


def test_initial_state_and_empty_steps() -> None:
    machine = parse_machine("SYMBOLS: a, b\nSTATES: p, q\nINITIAL: q\nq, a | b, , p\n")
    dot = machine_to_dot(machine, name="demo")
    assert dot.startswith('digraph "demo" {')
    assert '"q" [shape=doublecircle];' in dot
    assert '"q" -> "p" [label="a | b / -"];' in dot
