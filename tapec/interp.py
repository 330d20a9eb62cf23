"""In-process execution of a lowered control-flow graph.

The three external capabilities a compiled program needs (text output,
integer input, allocation) come from a :class:`Runtime`, so tests and the
CLI ``--run`` option can execute a machine without a C or LLVM toolchain.
The printed event sequence matches what the emitted programs print.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from . import cfg
from .cfg import ControlFlowGraph
from .errors import GraphError
from .model import Machine

LOG = logging.getLogger("tapec.interp")


class Runtime:
    """Capabilities backed by stdout, reading integers from *inputs* or stdin."""

    def __init__(self, inputs: Optional[Iterable[int]] = None) -> None:
        self._inputs = None if inputs is None else [int(value) for value in inputs]

    def print(self, text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def read_int(self) -> int:
        if self._inputs is not None:
            if not self._inputs:
                raise EOFError("runtime has no more scripted input")
            return self._inputs.pop(0)
        line = sys.stdin.readline()
        if not line:
            raise EOFError("end of input while reading an integer")
        return int(line.strip(), 10)

    def allocate(self, size: int) -> bytearray:
        return bytearray(size)


class ScriptedRuntime(Runtime):
    """Feeds integers from a list and records everything printed."""

    def __init__(self, inputs: Iterable[int]) -> None:
        super().__init__(inputs)
        self.events: List[str] = []

    def print(self, text: str) -> None:
        self.events.append(text)

    @property
    def output(self) -> str:
        return "".join(self.events)


@dataclass
class ExecutionResult:
    exit_code: int
    registers: Dict[str, int]
    tape: bytearray
    trace: List[str] = field(default_factory=list)

    def tape_symbols(self, machine: Machine) -> List[str]:
        return [machine.symbols[cell] for cell in self.tape]


class Interpreter:
    def __init__(self, graph: ControlFlowGraph, machine: Machine, runtime: Runtime) -> None:
        self.graph = graph
        self.machine = machine
        self.runtime = runtime
        self.regs: Dict[str, int] = {name: 0 for name in cfg.REGISTERS}
        self.tape = bytearray()
        self.visited: List[str] = []

    def _operand(self, operand: cfg.Operand) -> object:
        if isinstance(operand, cfg.Reg):
            return self.regs[operand.name]
        if isinstance(operand, cfg.StateName):
            return self.machine.states[self.regs[operand.reg]]
        if isinstance(operand, cfg.SymbolName):
            return self.machine.symbols[self.regs[operand.reg]]
        return operand.value

    def execute(self, op: cfg.Op) -> None:
        regs = self.regs
        if isinstance(op, cfg.Print):
            values = tuple(self._operand(arg) for arg in op.args)
            self.runtime.print(op.fmt % values if values else op.fmt)
        elif isinstance(op, cfg.ReadInt):
            self.runtime.print(op.prompt)
            regs[op.dest] = self.runtime.read_int()
        elif isinstance(op, cfg.AllocTape):
            regs[op.size] = max(regs[op.size], 1)
            self.tape = self.runtime.allocate(regs[op.size])
            for idx in range(len(self.tape)):
                self.tape[idx] = op.fill
        elif isinstance(op, cfg.SetReg):
            regs[op.dest] = op.value
        elif isinstance(op, cfg.ComputeAddress):
            regs[op.dest] = regs[op.symbol] * op.n_states + regs[op.state]
        elif isinstance(op, cfg.MoveCursor):
            regs[cfg.CURSOR] = min(max(regs[cfg.CURSOR] + op.delta, 0), regs[cfg.CAPACITY] - 1)
        elif isinstance(op, cfg.WriteCell):
            self.tape[regs[cfg.CURSOR]] = op.symbol_index
        elif isinstance(op, cfg.ReadCell):
            regs[op.dest] = self.tape[regs[cfg.CURSOR]]
        elif isinstance(op, cfg.Increment):
            regs[op.reg] += 1
        elif isinstance(op, cfg.PrintTape):
            self.runtime.print(op.prefix)
            for cell in self.tape[: regs[op.size]]:
                self.runtime.print(op.item % self.machine.symbols[cell])
            self.runtime.print(op.suffix)
        else:
            raise GraphError(f"interpreter cannot execute {op!r}")

    def _next(self, term: cfg.Terminator) -> Optional[str]:
        if isinstance(term, cfg.Jump):
            return term.target
        if isinstance(term, cfg.BranchLess):
            return term.if_true if self.regs[term.lhs] < self.regs[term.rhs] else term.if_false
        if isinstance(term, cfg.Switch):
            value = self.regs[term.value]
            for case, target in term.cases:
                if case == value:
                    return target
            return term.default
        return None

    def run(self, *, record_blocks: bool = False) -> ExecutionResult:
        self.graph.validate()
        name: Optional[str] = self.graph.entry
        exit_code = 0
        while name is not None:
            block = self.graph.block(name)
            if record_blocks:
                self.visited.append(name)
            for op in block.ops:
                self.execute(op)
            if isinstance(block.terminator, cfg.Return):
                exit_code = block.terminator.code
            name = self._next(block.terminator)
        LOG.debug("machine halted after %d steps", self.regs[cfg.STEP])
        return ExecutionResult(
            exit_code=exit_code,
            registers=dict(self.regs),
            tape=self.tape,
            trace=list(self.visited),
        )


def run_graph(
    graph: ControlFlowGraph,
    machine: Machine,
    runtime: Runtime,
    *,
    record_blocks: bool = False,
) -> ExecutionResult:
    return Interpreter(graph, machine, runtime).run(record_blocks=record_blocks)
