"""Target-independent control-flow graph produced by the lowerer.

Blocks hold straight-line operations over a fixed set of named live
registers plus one tape, and end in exactly one terminator.  Emitters and the
interpreter only read these structures.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

from .errors import GraphError

# Live registers.
BUDGET = "budget"
CAPACITY = "capacity"
CURSOR = "cursor"
STEP = "step"
SYMBOL = "symbol"
STATE = "state"
ADDRESS = "address"

REGISTERS = (BUDGET, CAPACITY, CURSOR, STEP, SYMBOL, STATE, ADDRESS)


class BlockRole(enum.Enum):
    ENTRY = "entry"
    LOOP_HEADER = "loop_header"
    LOOP_BODY = "loop_body"
    CASE = "case"
    UNMATCHED = "unmatched"
    CONTINUATION = "continuation"
    LOOP_EXIT = "loop_exit"


# -- print operands ----------------------------------------------------------


@dataclass(frozen=True)
class Reg:
    """Integer value of a live register (``%d``)."""

    name: str


@dataclass(frozen=True)
class StateName:
    """Label of the state whose index is held in ``reg`` (``%s``)."""

    reg: str = STATE


@dataclass(frozen=True)
class SymbolName:
    """Label of the symbol whose index is held in ``reg`` (``%s``)."""

    reg: str = SYMBOL


@dataclass(frozen=True)
class Text:
    """Compile-time constant string (``%s``)."""

    value: str


Operand = Union[Reg, StateName, SymbolName, Text]


# -- operations --------------------------------------------------------------


@dataclass(frozen=True)
class Print:
    fmt: str
    args: Tuple[Operand, ...] = ()


@dataclass(frozen=True)
class ReadInt:
    """Print ``prompt`` and read one decimal integer into ``dest``."""

    dest: str
    prompt: str


@dataclass(frozen=True)
class AllocTape:
    """Raise ``size`` to at least one, then allocate that many cells set to ``fill``."""

    size: str
    fill: int


@dataclass(frozen=True)
class SetReg:
    dest: str
    value: int


@dataclass(frozen=True)
class ComputeAddress:
    """``dest = symbol * n_states + state``."""

    dest: str
    symbol: str
    state: str
    n_states: int


@dataclass(frozen=True)
class MoveCursor:
    """Move the cursor by ``delta``, clamped to ``0 .. capacity - 1``."""

    delta: int


@dataclass(frozen=True)
class WriteCell:
    symbol_index: int


@dataclass(frozen=True)
class ReadCell:
    dest: str


@dataclass(frozen=True)
class Increment:
    reg: str


@dataclass(frozen=True)
class PrintTape:
    """Print ``prefix``, then ``item`` once per tape cell with the cell's symbol label, then ``suffix``.

    The cell count is the value of the ``size`` register.
    """

    prefix: str
    item: str
    suffix: str
    size: str = CAPACITY


Op = Union[
    Print,
    ReadInt,
    AllocTape,
    SetReg,
    ComputeAddress,
    MoveCursor,
    WriteCell,
    ReadCell,
    Increment,
    PrintTape,
]


# -- terminators -------------------------------------------------------------


@dataclass(frozen=True)
class Jump:
    target: str


@dataclass(frozen=True)
class BranchLess:
    """Go to ``if_true`` when ``lhs < rhs`` (signed), else ``if_false``."""

    lhs: str
    rhs: str
    if_true: str
    if_false: str


@dataclass(frozen=True)
class Switch:
    value: str
    default: str
    cases: Tuple[Tuple[int, str], ...]


@dataclass(frozen=True)
class Return:
    code: int = 0


Terminator = Union[Jump, BranchLess, Switch, Return]


def successors(term: Terminator) -> List[str]:
    if isinstance(term, Jump):
        return [term.target]
    if isinstance(term, BranchLess):
        return [term.if_true, term.if_false]
    if isinstance(term, Switch):
        targets = [term.default]
        for _, target in term.cases:
            if target not in targets:
                targets.append(target)
        return targets
    return []


@dataclass
class BasicBlock:
    name: str
    role: BlockRole
    ops: List[Op] = field(default_factory=list)
    terminator: Optional[Terminator] = None
    # (state_index, symbol_index) for case blocks
    pair: Optional[Tuple[int, int]] = None

    def append(self, op: Op) -> None:
        if self.terminator is not None:
            raise GraphError(f"block '{self.name}' is already terminated")
        self.ops.append(op)

    def terminate(self, term: Terminator) -> None:
        if self.terminator is not None:
            raise GraphError(f"block '{self.name}' is already terminated")
        self.terminator = term

    def successors(self) -> List[str]:
        if self.terminator is None:
            return []
        return successors(self.terminator)


class ControlFlowGraph:
    def __init__(self) -> None:
        self._blocks: Dict[str, BasicBlock] = {}
        self.entry: Optional[str] = None

    def __iter__(self) -> Iterator[BasicBlock]:
        return iter(self._blocks.values())

    def __len__(self) -> int:
        return len(self._blocks)

    def __contains__(self, name: str) -> bool:
        return name in self._blocks

    def add_block(self, name: str, role: BlockRole, *, pair: Optional[Tuple[int, int]] = None) -> BasicBlock:
        if name in self._blocks:
            raise GraphError(f"duplicate block name '{name}'")
        block = BasicBlock(name=name, role=role, pair=pair)
        self._blocks[name] = block
        if role is BlockRole.ENTRY:
            if self.entry is not None:
                raise GraphError("graph already has an entry block")
            self.entry = name
        return block

    def block(self, name: str) -> BasicBlock:
        try:
            return self._blocks[name]
        except KeyError:
            raise GraphError(f"no block named '{name}'") from None

    def by_role(self, role: BlockRole) -> List[BasicBlock]:
        return [block for block in self._blocks.values() if block.role is role]

    def only(self, role: BlockRole) -> BasicBlock:
        blocks = self.by_role(role)
        if len(blocks) != 1:
            raise GraphError(f"expected exactly one {role.value} block, found {len(blocks)}")
        return blocks[0]

    def predecessors(self, name: str) -> List[str]:
        return [block.name for block in self._blocks.values() if name in block.successors()]

    def reachable(self) -> Set[str]:
        if self.entry is None:
            return set()
        seen: Set[str] = set()
        work = [self.entry]
        while work:
            name = work.pop()
            if name in seen:
                continue
            seen.add(name)
            work.extend(self.block(name).successors())
        return seen

    def validate(self) -> None:
        if self.entry is None:
            raise GraphError("graph has no entry block")
        exits = []
        for block in self._blocks.values():
            if block.terminator is None:
                raise GraphError(f"block '{block.name}' has no terminator")
            for target in block.successors():
                if target not in self._blocks:
                    raise GraphError(f"block '{block.name}' branches to unknown block '{target}'")
            if isinstance(block.terminator, Return):
                exits.append(block.name)
        if len(exits) != 1:
            raise GraphError(f"graph must have exactly one exit block, found {len(exits)}")
        reachable = self.reachable()
        unreachable = [name for name in self._blocks if name not in reachable]
        if unreachable:
            raise GraphError(f"unreachable blocks: {', '.join(unreachable)}")
