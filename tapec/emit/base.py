"""Shared emitter interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, List, Tuple

from .. import cfg
from ..cfg import BlockRole, ControlFlowGraph
from ..errors import EmitError, GraphError
from ..indexer import DispatchIndexer
from ..model import Machine


@dataclass(frozen=True)
class Capabilities:
    """Names of the external functions a compiled program calls."""

    print_fn: str = "printf"
    read_fn: str = "scanf"
    alloc_fn: str = "malloc"


DEFAULT_CAPABILITIES = Capabilities()
READ_INT_FMT = "%d"


class Emitter:
    """Renders a :class:`~tapec.cfg.ControlFlowGraph` as target text.

    Emitters never mutate the graph or the machine they are given.
    """

    name: ClassVar[str] = ""
    extension: ClassVar[str] = ""

    def __init__(self, capabilities: Capabilities = DEFAULT_CAPABILITIES) -> None:
        self.capabilities = capabilities

    def emit(self, graph: ControlFlowGraph, machine: Machine) -> str:
        raise NotImplementedError("Emitter must implement emit()")


@dataclass
class LoopShape:
    """The canonical loop the lowerer produces, located by block role."""

    entry: cfg.BasicBlock
    header: cfg.BasicBlock
    body: cfg.BasicBlock
    cases: List[Tuple[int, cfg.BasicBlock]]
    default: cfg.BasicBlock
    continuation: cfg.BasicBlock
    exit: cfg.BasicBlock
    condition: cfg.BranchLess
    switch: cfg.Switch


def _expect(condition: bool, message: str) -> None:
    if not condition:
        raise EmitError(message)


def loop_shape(graph: ControlFlowGraph, machine: Machine) -> LoopShape:
    """Match *graph* against the dispatch-loop topology or raise EmitError.

    Every switch case must lead to the case block of the pair its address
    decodes to.
    """
    try:
        entry = graph.only(BlockRole.ENTRY)
        header = graph.only(BlockRole.LOOP_HEADER)
        body = graph.only(BlockRole.LOOP_BODY)
        continuation = graph.only(BlockRole.CONTINUATION)
        exit_block = graph.only(BlockRole.LOOP_EXIT)
    except GraphError as exc:
        raise EmitError(f"graph is not a dispatch loop: {exc.message}") from exc

    _expect(entry.terminator == cfg.Jump(header.name), "entry must jump to the loop header")
    condition = header.terminator
    _expect(
        isinstance(condition, cfg.BranchLess)
        and condition.if_true == body.name
        and condition.if_false == exit_block.name,
        "loop header must branch to the loop body or the loop exit",
    )
    switch = body.terminator
    _expect(isinstance(switch, cfg.Switch), "loop body must end in a switch")
    cases = [(value, graph.block(target)) for value, target in switch.cases]
    indexer = DispatchIndexer.for_machine(machine)
    for value, block in cases:
        try:
            pair = indexer.decode(value)
        except IndexError as exc:
            raise EmitError(f"switch case {value} is outside the dispatch space: {exc}") from exc
        _expect(
            block.role is BlockRole.CASE and block.pair == pair,
            f"switch case {value} leads to '{block.name}', which does not handle {pair}",
        )
    default = graph.block(switch.default)
    for block in [default] + [block for _, block in cases]:
        _expect(
            block.terminator == cfg.Jump(continuation.name),
            f"case block '{block.name}' must jump to the continuation",
        )
    _expect(continuation.terminator == cfg.Jump(header.name), "continuation must jump to the loop header")
    _expect(isinstance(exit_block.terminator, cfg.Return), "loop exit must return")
    return LoopShape(
        entry=entry,
        header=header,
        body=body,
        cases=cases,
        default=default,
        continuation=continuation,
        exit=exit_block,
        condition=condition,
        switch=switch,
    )
