"""
Shared fixtures for tapec tests.
"""
import textwrap

import pytest

from tapec.model import MOVE_LEFT, MOVE_RIGHT, Explicit, Machine, Remainder, Transition, write

SCENARIO_A_SOURCE = textwrap.dedent(
    """
    # two symbols, two states; q1 has no transitions
    SYMBOLS: a, b
    STATES: q0, q1
    TRANSITIONS:
    q0, a, R P(b), q1
    q0, *, L, q0
    """
)


@pytest.fixture
def scenario_a() -> Machine:
    return Machine(
        symbols=["a", "b"],
        states=["q0", "q1"],
        transitions=[
            Transition("q0", Explicit(("a",)), (MOVE_RIGHT, write("b")), "q1"),
            Transition("q0", Remainder(), (MOVE_LEFT,), "q0"),
        ],
    )


@pytest.fixture
def scenario_a_source() -> str:
    return SCENARIO_A_SOURCE
