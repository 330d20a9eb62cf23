"""Entity model for parsed tape machines.

A :class:`Machine` is built once (normally by :mod:`tapec.parser`) and treated
as read-only afterwards.  Every later stage works from symbol/state *indices*,
which are simply positions in the declared sequences.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .errors import DuplicateRemainderError, MachineDefinitionError, UndeclaredNameError

MAX_SYMBOLS = 256  # tape cells are single bytes


class StepKind(enum.Enum):
    MOVE_LEFT = "L"
    MOVE_RIGHT = "R"
    WRITE = "P"
    NOOP = "X"


@dataclass(frozen=True)
class Step:
    kind: StepKind
    symbol: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.kind is StepKind.WRITE) != (self.symbol is not None):
            raise ValueError("only Write steps carry a symbol")

    def __str__(self) -> str:
        if self.kind is StepKind.WRITE:
            return f"P({self.symbol})"
        return self.kind.value


MOVE_LEFT = Step(StepKind.MOVE_LEFT)
MOVE_RIGHT = Step(StepKind.MOVE_RIGHT)
NOOP = Step(StepKind.NOOP)


def write(symbol: str) -> Step:
    return Step(StepKind.WRITE, symbol)


@dataclass(frozen=True)
class Explicit:
    """Matches exactly the listed symbols."""

    symbols: Tuple[str, ...]

    def __str__(self) -> str:
        return " | ".join(self.symbols)


@dataclass(frozen=True)
class Remainder:
    """Matches every symbol no explicit condition on the same state claims."""

    def __str__(self) -> str:
        return "*"


Condition = Union[Explicit, Remainder]


@dataclass(frozen=True)
class Transition:
    source: str
    condition: Condition
    steps: Tuple[Step, ...]
    target: str
    line: int = 0

    def describe(self) -> str:
        steps = " ".join(str(step) for step in self.steps) or "-"
        return f"{self.source}, {self.condition}, {steps}, {self.target}"


@dataclass
class Machine:
    symbols: List[str]
    states: List[str]
    transitions: List[Transition] = field(default_factory=list)
    initial_state: Optional[str] = None
    blank_symbol: Optional[str] = None

    @property
    def start_state(self) -> str:
        return self.initial_state if self.initial_state is not None else self.states[0]

    @property
    def blank(self) -> str:
        return self.blank_symbol if self.blank_symbol is not None else self.symbols[0]

    def symbol_index(self, name: str) -> int:
        try:
            return self.symbols.index(name)
        except ValueError:
            raise UndeclaredNameError(f"undeclared symbol '{name}'") from None

    def state_index(self, name: str) -> int:
        try:
            return self.states.index(name)
        except ValueError:
            raise UndeclaredNameError(f"undeclared state '{name}'") from None


def _check_declarations(kind: str, names: Iterable[str]) -> None:
    seen: Dict[str, int] = {}
    for idx, name in enumerate(names):
        if name in seen:
            raise UndeclaredNameError(f"{kind} '{name}' declared twice (positions {seen[name]} and {idx})")
        seen[name] = idx


def validate_machine(machine: Machine) -> None:
    """Raise a :class:`~tapec.errors.TapeCompileError` if *machine* is malformed."""
    if not machine.symbols:
        raise MachineDefinitionError("machine declares no symbols")
    if not machine.states:
        raise MachineDefinitionError("machine declares no states")
    if len(machine.symbols) > MAX_SYMBOLS:
        raise MachineDefinitionError(f"at most {MAX_SYMBOLS} symbols are supported (got {len(machine.symbols)})")
    _check_declarations("symbol", machine.symbols)
    _check_declarations("state", machine.states)

    symbols = set(machine.symbols)
    states = set(machine.states)
    if machine.initial_state is not None and machine.initial_state not in states:
        raise UndeclaredNameError(f"initial state '{machine.initial_state}' is not declared")
    if machine.blank_symbol is not None and machine.blank_symbol not in symbols:
        raise UndeclaredNameError(f"blank symbol '{machine.blank_symbol}' is not declared")

    remainder_lines: Dict[str, int] = {}
    for transition in machine.transitions:
        line = transition.line or None
        for role, name in (("source", transition.source), ("target", transition.target)):
            if name not in states:
                raise UndeclaredNameError(f"transition {role} state '{name}' is not declared", line=line)
        if isinstance(transition.condition, Explicit):
            if not transition.condition.symbols:
                raise MachineDefinitionError("explicit condition lists no symbols", line=line)
            for sym in transition.condition.symbols:
                if sym not in symbols:
                    raise UndeclaredNameError(f"condition symbol '{sym}' is not declared", line=line)
        elif transition.source in remainder_lines:
            first = remainder_lines[transition.source]
            where = f" (first at line {first})" if first else ""
            raise DuplicateRemainderError(
                f"state '{transition.source}' has more than one '*' transition{where}",
                line=line,
            )
        else:
            remainder_lines[transition.source] = transition.line
        for step in transition.steps:
            if step.kind is StepKind.WRITE and step.symbol not in symbols:
                raise UndeclaredNameError(f"write of undeclared symbol '{step.symbol}'", line=line)
