"""LLVM IR emitter built with :mod:`llvmlite.ir`.

One ``main`` function, one IR basic block per graph block.  A ``PrintTape``
operation adds a small counted loop (``<block>.tape_check``,
``<block>.tape_item``, ``<block>.tape_done``) and the rest of its block
continues in ``<block>.tape_done``.  Live registers live in ``alloca`` slots
and are loaded/stored around every operation; no SSA construction or
optimisation is attempted.  The finished module is parsed back and checked by
the LLVM verifier through :mod:`llvmlite.binding`.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from llvmlite import binding, ir

from .. import cfg
from ..cfg import ControlFlowGraph
from ..errors import EmitError
from ..model import Machine
from .base import DEFAULT_CAPABILITIES, READ_INT_FMT, Capabilities, Emitter

LOG = logging.getLogger("tapec.emit.llvm")

MODULE_NAME = "tape_machine"

i1 = ir.IntType(1)
i8 = ir.IntType(8)
i32 = ir.IntType(32)
i64 = ir.IntType(64)
i8ptr = i8.as_pointer()

ZERO = ir.Constant(i32, 0)
ONE = ir.Constant(i32, 1)


def c_bytes(text: str) -> bytearray:
    """NUL-terminated UTF-8 bytes for a ``[N x i8]`` initializer."""
    return bytearray(text.encode("utf-8") + b"\x00")


def _i8(value: int) -> ir.Constant:
    # symbol indices above 127 are spelled as their signed byte
    return ir.Constant(i8, value - 256 if value > 127 else value)


def verify_module(text: str) -> binding.ModuleRef:
    """Parse *text* as LLVM assembly and run the verifier on it."""
    try:
        module = binding.parse_assembly(text)
        module.verify()
    except RuntimeError as exc:
        raise EmitError(f"generated IR failed verification: {exc}") from exc
    return module


class _ModuleBuilder:
    def __init__(self, capabilities: Capabilities, machine: Machine, triple: Optional[str]) -> None:
        self.machine = machine
        self.module = ir.Module(name=MODULE_NAME)
        self.module.triple = triple or ""

        fmt_fn = ir.FunctionType(i32, (i8ptr,), var_arg=True)
        self.print_fn = ir.Function(self.module, fmt_fn, name=capabilities.print_fn)
        self.read_fn = ir.Function(self.module, fmt_fn, name=capabilities.read_fn)
        self.alloc_fn = ir.Function(self.module, ir.FunctionType(i8ptr, (i64,)), name=capabilities.alloc_fn)
        self.memset = self.module.declare_intrinsic("llvm.memset", (i8ptr, i64))

        self.state_labels = self._label_table("state", machine.states)
        self.symbol_labels = self._label_table("symbol", machine.symbols)
        self.strings: Dict[str, ir.GlobalVariable] = {}

        self.main = ir.Function(self.module, ir.FunctionType(i32, ()), name="main")
        self.blocks: Dict[str, ir.Block] = {}
        self.slots: Dict[str, ir.AllocaInstr] = {}
        self.tape: Optional[ir.AllocaInstr] = None
        self.index: Optional[ir.AllocaInstr] = None
        self.builder = ir.IRBuilder()

    # -- globals ---------------------------------------------------------

    def _constant(self, name: str, text: str) -> ir.GlobalVariable:
        data = c_bytes(text)
        ty = ir.ArrayType(i8, len(data))
        var = ir.GlobalVariable(self.module, ty, name=name)
        var.linkage = "private"
        var.unnamed_addr = True
        var.global_constant = True
        var.initializer = ir.Constant(ty, data)
        return var

    def _label_table(self, prefix: str, names: Sequence[str]) -> ir.GlobalVariable:
        refs = [self._constant(f".{prefix}.{idx}", name).gep([ZERO, ZERO]) for idx, name in enumerate(names)]
        ty = ir.ArrayType(i8ptr, len(refs))
        table = ir.GlobalVariable(self.module, ty, name=f"{prefix}_labels")
        table.linkage = "private"
        table.unnamed_addr = True
        table.global_constant = True
        table.initializer = ir.Constant(ty, refs)
        return table

    def string(self, text: str) -> ir.Value:
        var = self.strings.get(text)
        if var is None:
            var = self._constant(f".str.{len(self.strings)}", text)
            self.strings[text] = var
        return var.gep([ZERO, ZERO])

    # -- helpers ---------------------------------------------------------

    def load(self, reg: str) -> ir.Value:
        return self.builder.load(self.slots[reg], name=reg)

    def store(self, value: ir.Value, reg: str) -> None:
        self.builder.store(value, self.slots[reg])

    def cell_ptr(self, index: ir.Value) -> ir.Value:
        base = self.builder.load(self.tape, name="tape")
        wide = self.builder.sext(index, i64, name="offset")
        return self.builder.gep(base, [wide], inbounds=True, name="cell")

    def label(self, table: ir.GlobalVariable, index: ir.Value) -> ir.Value:
        slot = self.builder.gep(table, [ZERO, index], inbounds=True, name="label.slot")
        return self.builder.load(slot, name="label")

    def print(self, fmt: str, args: Sequence[ir.Value] = ()) -> None:
        self.builder.call(self.print_fn, [self.string(fmt), *args])

    def operand(self, operand: cfg.Operand) -> ir.Value:
        if isinstance(operand, cfg.Reg):
            return self.load(operand.name)
        if isinstance(operand, cfg.StateName):
            return self.label(self.state_labels, self.load(operand.reg))
        if isinstance(operand, cfg.SymbolName):
            return self.label(self.symbol_labels, self.load(operand.reg))
        return self.string(operand.value)

    # -- operations ------------------------------------------------------

    def op(self, op: cfg.Op, owner: str) -> None:
        b = self.builder
        if isinstance(op, cfg.Print):
            self.print(op.fmt, [self.operand(arg) for arg in op.args])
        elif isinstance(op, cfg.ReadInt):
            self.print(op.prompt)
            b.call(self.read_fn, [self.string(READ_INT_FMT), self.slots[op.dest]])
        elif isinstance(op, cfg.AllocTape):
            size = self.load(op.size)
            small = b.icmp_signed("<", size, ONE, name="too_small")
            fixed = b.select(small, ONE, size, name="cells")
            self.store(fixed, op.size)
            wide = b.sext(fixed, i64, name="bytes")
            mem = b.call(self.alloc_fn, [wide], name="mem")
            b.store(mem, self.tape)
            b.call(self.memset, [mem, _i8(op.fill), wide, ir.Constant(i1, 0)])
        elif isinstance(op, cfg.SetReg):
            self.store(ir.Constant(i32, op.value), op.dest)
        elif isinstance(op, cfg.ComputeAddress):
            symbol = self.load(op.symbol)
            state = self.load(op.state)
            row = b.mul(symbol, ir.Constant(i32, op.n_states), name="row")
            self.store(b.add(row, state, name=op.dest), op.dest)
        elif isinstance(op, cfg.MoveCursor):
            moved = b.add(self.load(cfg.CURSOR), ir.Constant(i32, op.delta), name="moved")
            below = b.icmp_signed("<", moved, ZERO, name="below")
            low = b.select(below, ZERO, moved, name="low")
            last = b.sub(self.load(cfg.CAPACITY), ONE, name="last")
            above = b.icmp_signed(">", low, last, name="above")
            self.store(b.select(above, last, low, name="clamped"), cfg.CURSOR)
        elif isinstance(op, cfg.WriteCell):
            b.store(_i8(op.symbol_index), self.cell_ptr(self.load(cfg.CURSOR)))
        elif isinstance(op, cfg.ReadCell):
            cell = b.load(self.cell_ptr(self.load(cfg.CURSOR)), name="byte")
            self.store(b.zext(cell, i32, name=op.dest), op.dest)
        elif isinstance(op, cfg.Increment):
            self.store(b.add(self.load(op.reg), ONE, name=op.reg), op.reg)
        elif isinstance(op, cfg.PrintTape):
            self.print_tape(op, owner)
        else:  # pragma: no cover - exhaustive over cfg.Op
            raise TypeError(f"unsupported operation {op!r}")

    def print_tape(self, op: cfg.PrintTape, owner: str) -> None:
        b = self.builder
        check = self.main.append_basic_block(name=f"{owner}.tape_check")
        item = self.main.append_basic_block(name=f"{owner}.tape_item")
        done = self.main.append_basic_block(name=f"{owner}.tape_done")

        self.print(op.prefix)
        b.store(ZERO, self.index)
        b.branch(check)

        b.position_at_end(check)
        index = b.load(self.index, name="index")
        more = b.icmp_signed("<", index, self.load(op.size), name="more")
        b.cbranch(more, item, done)

        b.position_at_end(item)
        cell = b.load(self.cell_ptr(index), name="byte")
        self.print(op.item, [self.label(self.symbol_labels, b.zext(cell, i32, name="symbol"))])
        b.store(b.add(index, ONE, name="next"), self.index)
        b.branch(check)

        b.position_at_end(done)
        self.print(op.suffix)

    def terminator(self, term: cfg.Terminator) -> None:
        b = self.builder
        if isinstance(term, cfg.Jump):
            b.branch(self.blocks[term.target])
        elif isinstance(term, cfg.BranchLess):
            cond = b.icmp_signed("<", self.load(term.lhs), self.load(term.rhs), name="less")
            b.cbranch(cond, self.blocks[term.if_true], self.blocks[term.if_false])
        elif isinstance(term, cfg.Switch):
            switch = b.switch(self.load(term.value), self.blocks[term.default])
            for case, target in term.cases:
                switch.add_case(ir.Constant(i32, case), self.blocks[target])
        elif isinstance(term, cfg.Return):
            b.ret(ir.Constant(i32, term.code))
        else:  # pragma: no cover
            raise TypeError(f"unsupported terminator {term!r}")

    # -- function --------------------------------------------------------

    def build(self, graph: ControlFlowGraph) -> None:
        entry = graph.block(graph.entry)
        order: List[cfg.BasicBlock] = [entry] + [block for block in graph if block is not entry]
        for block in order:
            self.blocks[block.name] = self.main.append_basic_block(name=block.name)

        b = self.builder
        b.position_at_end(self.blocks[entry.name])
        for reg in cfg.REGISTERS:
            self.slots[reg] = b.alloca(i32, name=f"{reg}.addr")
        self.tape = b.alloca(i8ptr, name="tape.addr")
        self.index = b.alloca(i32, name="index.addr")
        for reg in cfg.REGISTERS:
            self.store(ZERO, reg)
        b.store(ir.Constant(i8ptr, None), self.tape)

        for block in order:
            b.position_at_end(self.blocks[block.name])
            for op in block.ops:
                self.op(op, block.name)
            self.terminator(block.terminator)


class LlvmEmitter(Emitter):
    name = "llvm"
    extension = ".ll"

    def __init__(
        self,
        capabilities: Capabilities = DEFAULT_CAPABILITIES,
        *,
        triple: Optional[str] = None,
        verify: bool = True,
    ) -> None:
        super().__init__(capabilities)
        self.triple = triple
        self.verify = verify

    def build_module(self, graph: ControlFlowGraph, machine: Machine) -> ir.Module:
        graph.validate()
        builder = _ModuleBuilder(self.capabilities, machine, self.triple)
        builder.build(graph)
        return builder.module

    def emit(self, graph: ControlFlowGraph, machine: Machine) -> str:
        module = self.build_module(graph, machine)
        text = str(module)
        if self.verify:
            verify_module(text)
        LOG.debug("emitted IR for %d graph blocks (%d IR blocks)", len(graph), len(module.get_global("main").blocks))
        return text
