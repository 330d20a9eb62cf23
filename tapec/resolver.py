"""Condition resolution: per-state transition lists -> total dispatch table.

Explicit conditions claim their symbols first; a state's ``*`` transition then
claims whatever its explicit transitions left over.  Pairs claimed by nothing
are recorded as unmatched, which is a valid outcome rather than an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import AmbiguousConditionError
from .model import Explicit, Machine, Remainder, Step, Transition, validate_machine

LOG = logging.getLogger("tapec.resolver")

Pair = Tuple[str, str]  # (state, symbol)


@dataclass(frozen=True)
class Resolved:
    steps: Tuple[Step, ...]
    target: str
    transition: Transition


class DispatchTable:
    """Immutable mapping from every (state, symbol) pair to Resolved or None."""

    def __init__(self, machine: Machine, entries: Dict[Pair, Optional[Resolved]]) -> None:
        self.machine = machine
        self._entries = dict(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pair: Pair) -> bool:
        return pair in self._entries

    def lookup(self, state: str, symbol: str) -> Optional[Resolved]:
        try:
            return self._entries[(state, symbol)]
        except KeyError:
            raise KeyError(f"({state}, {symbol}) is not a declared pair") from None

    def items(self) -> Iterator[Tuple[Pair, Optional[Resolved]]]:
        """Iterate symbol-major, state-minor: the same order as dispatch addresses."""
        for symbol in self.machine.symbols:
            for state in self.machine.states:
                yield (state, symbol), self._entries[(state, symbol)]

    def matched(self) -> List[Tuple[Pair, Resolved]]:
        return [(pair, entry) for pair, entry in self.items() if entry is not None]

    def unmatched(self) -> List[Pair]:
        return [pair for pair, entry in self.items() if entry is None]

    def rows(self) -> List[List[str]]:
        rows = []
        for (state, symbol), entry in self.items():
            if entry is None:
                rows.append([state, symbol, "(unmatched)", "", ""])
            else:
                steps = " ".join(str(step) for step in entry.steps) or "-"
                origin = f"line {entry.transition.line}" if entry.transition.line else ""
                rows.append([state, symbol, steps, entry.target, origin])
        return rows


def resolve(machine: Machine) -> DispatchTable:
    validate_machine(machine)

    groups: Dict[str, List[Transition]] = {state: [] for state in machine.states}
    for transition in machine.transitions:
        groups[transition.source].append(transition)

    entries: Dict[Pair, Optional[Resolved]] = {}
    for state in machine.states:
        group = groups[state]
        claimed: Dict[str, Transition] = {}
        for transition in group:
            if not isinstance(transition.condition, Explicit):
                continue
            for symbol in transition.condition.symbols:
                previous = claimed.get(symbol)
                if previous is not None:
                    if previous is transition:
                        raise AmbiguousConditionError(
                            f"state '{state}' lists symbol '{symbol}' twice in one condition",
                            line=transition.line or None,
                        )
                    where = f" (also claimed at line {previous.line})" if previous.line else ""
                    raise AmbiguousConditionError(
                        f"state '{state}' has overlapping conditions on symbol '{symbol}'{where}",
                        line=transition.line or None,
                    )
                claimed[symbol] = transition

        remainder = next((t for t in group if isinstance(t.condition, Remainder)), None)
        for symbol in machine.symbols:
            winner = claimed.get(symbol, remainder)
            if winner is None:
                entries[(state, symbol)] = None
                LOG.warning("no transition matches (%s, %s)", state, symbol)
            else:
                entries[(state, symbol)] = Resolved(winner.steps, winner.target, winner)

    table = DispatchTable(machine, entries)
    LOG.debug("resolved %d pairs, %d unmatched", len(table), len(table.unmatched()))
    return table
