r"""Lower a resolved dispatch table into the read-execute loop graph.

Control order::

    entry -> loop_header -> loop_body -switch-> state_<q>_sym_<s> ... -> continuation -> loop_header
                        \                  \-default-> unmatched ----------^
                         \-> loop_exit (print summary and tape, return 0)

Case blocks and ``unmatched`` only ever jump to ``continuation`` so the step
increment and the tape re-read happen exactly once per iteration.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from . import cfg
from .cfg import BlockRole, ControlFlowGraph
from .indexer import DispatchIndexer
from .model import Machine, Step, StepKind
from .resolver import DispatchTable

LOG = logging.getLogger("tapec.lowering")

ENTRY = "entry"
LOOP_HEADER = "loop_header"
LOOP_BODY = "loop_body"
UNMATCHED = "unmatched"
CONTINUATION = "continuation"
LOOP_EXIT = "loop_exit"

STEPS_PROMPT = "Enter number of steps: "
TAPE_PROMPT = "Enter tape size: "
SYMBOLS_FMT = "All Symbols: %s\n"
STATES_FMT = "All States: %s\n"
STEP_TRACE_FMT = "Current step: %d\n"
CASE_TRACE_FMT = "Symbol: %s State: %s\n"
UNMATCHED_FMT = "Unmatched: %s, %s\n"
HALT_FMT = "Halted after %d steps in state %s at cursor %d\n"
TAPE_PREFIX = "Tape:"
TAPE_ITEM_FMT = " %s"
TAPE_SUFFIX = "\n"


def _legend(names: List[str]) -> str:
    return ", ".join(f"{idx}:{name}" for idx, name in enumerate(names))


def case_block_name(graph: ControlFlowGraph, state: str, symbol: str, address: int) -> str:
    name = f"state_{state}_sym_{symbol}"
    if name in graph:
        # underscores in labels can make two pairs spell the same name
        name = f"{name}.{address}"
    return name


def _lower_step(step: Step, machine: Machine) -> List[cfg.Op]:
    if step.kind is StepKind.MOVE_LEFT:
        return [cfg.MoveCursor(-1)]
    if step.kind is StepKind.MOVE_RIGHT:
        return [cfg.MoveCursor(1)]
    if step.kind is StepKind.WRITE:
        return [cfg.WriteCell(machine.symbol_index(step.symbol))]
    return []


def lower(machine: Machine, table: DispatchTable, indexer: DispatchIndexer, *, trace: bool = False) -> ControlFlowGraph:
    graph = ControlFlowGraph()

    entry = graph.add_block(ENTRY, BlockRole.ENTRY)
    header = graph.add_block(LOOP_HEADER, BlockRole.LOOP_HEADER)
    body = graph.add_block(LOOP_BODY, BlockRole.LOOP_BODY)

    blank = machine.symbol_index(machine.blank)
    entry.append(cfg.Print(SYMBOLS_FMT, (cfg.Text(_legend(machine.symbols)),)))
    entry.append(cfg.Print(STATES_FMT, (cfg.Text(_legend(machine.states)),)))
    entry.append(cfg.ReadInt(cfg.BUDGET, STEPS_PROMPT))
    entry.append(cfg.ReadInt(cfg.CAPACITY, TAPE_PROMPT))
    entry.append(cfg.AllocTape(cfg.CAPACITY, blank))
    entry.append(cfg.SetReg(cfg.CURSOR, 0))
    entry.append(cfg.SetReg(cfg.STEP, 0))
    entry.append(cfg.SetReg(cfg.SYMBOL, blank))
    entry.append(cfg.SetReg(cfg.STATE, machine.state_index(machine.start_state)))
    entry.terminate(cfg.Jump(LOOP_HEADER))

    header.append(cfg.ComputeAddress(cfg.ADDRESS, cfg.SYMBOL, cfg.STATE, indexer.n_states))
    header.terminate(cfg.BranchLess(cfg.STEP, cfg.BUDGET, LOOP_BODY, LOOP_EXIT))

    if trace:
        body.append(cfg.Print(STEP_TRACE_FMT, (cfg.Reg(cfg.STEP),)))

    cases: List[Tuple[int, str]] = []
    for (state, symbol), entry_ in table.matched():
        state_idx = machine.state_index(state)
        symbol_idx = machine.symbol_index(symbol)
        address = indexer.encode(state_idx, symbol_idx)
        block = graph.add_block(
            case_block_name(graph, state, symbol, address),
            BlockRole.CASE,
            pair=(state_idx, symbol_idx),
        )
        if trace:
            block.append(cfg.Print(CASE_TRACE_FMT, (cfg.SymbolName(), cfg.StateName())))
        for step in entry_.steps:
            for op in _lower_step(step, machine):
                block.append(op)
        block.append(cfg.SetReg(cfg.STATE, machine.state_index(entry_.target)))
        block.terminate(cfg.Jump(CONTINUATION))
        cases.append((address, block.name))

    unmatched = graph.add_block(UNMATCHED, BlockRole.UNMATCHED)
    unmatched.append(cfg.Print(UNMATCHED_FMT, (cfg.StateName(), cfg.SymbolName())))
    unmatched.terminate(cfg.Jump(CONTINUATION))

    body.terminate(cfg.Switch(cfg.ADDRESS, UNMATCHED, tuple(sorted(cases))))

    continuation = graph.add_block(CONTINUATION, BlockRole.CONTINUATION)
    continuation.append(cfg.Increment(cfg.STEP))
    continuation.append(cfg.ReadCell(cfg.SYMBOL))
    continuation.terminate(cfg.Jump(LOOP_HEADER))

    loop_exit = graph.add_block(LOOP_EXIT, BlockRole.LOOP_EXIT)
    loop_exit.append(cfg.Print(HALT_FMT, (cfg.Reg(cfg.STEP), cfg.StateName(), cfg.Reg(cfg.CURSOR))))
    loop_exit.append(cfg.PrintTape(TAPE_PREFIX, TAPE_ITEM_FMT, TAPE_SUFFIX))
    loop_exit.terminate(cfg.Return(0))

    graph.validate()
    LOG.debug("lowered %d case blocks (%d blocks total)", len(cases), len(graph))
    return graph
