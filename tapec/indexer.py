"""Dense dispatch addressing.

``address = symbol_index * n_states + state_index``.  The lowerer uses the
same :class:`DispatchIndexer` both to label case blocks and to emit the
run-time address computation, so the two can never disagree.  Emitters
decode each switch case back to its pair to check the case block it reaches.
"""

from __future__ import annotations

from typing import Tuple

from .model import Machine


class DispatchIndexer:
    def __init__(self, n_states: int, n_symbols: int) -> None:
        if n_states <= 0 or n_symbols <= 0:
            raise ValueError(f"dispatch space must be non-empty (states={n_states}, symbols={n_symbols})")
        self.n_states = n_states
        self.n_symbols = n_symbols

    @classmethod
    def for_machine(cls, machine: Machine) -> "DispatchIndexer":
        return cls(len(machine.states), len(machine.symbols))

    @property
    def size(self) -> int:
        return self.n_states * self.n_symbols

    def encode(self, state_index: int, symbol_index: int) -> int:
        if not 0 <= state_index < self.n_states:
            raise IndexError(f"state index {state_index} outside 0..{self.n_states - 1}")
        if not 0 <= symbol_index < self.n_symbols:
            raise IndexError(f"symbol index {symbol_index} outside 0..{self.n_symbols - 1}")
        return symbol_index * self.n_states + state_index

    def decode(self, address: int) -> Tuple[int, int]:
        """Return ``(state_index, symbol_index)`` for *address*."""
        if not 0 <= address < self.size:
            raise IndexError(f"dispatch address {address} outside 0..{self.size - 1}")
        symbol_index, state_index = divmod(address, self.n_states)
        return state_index, symbol_index
