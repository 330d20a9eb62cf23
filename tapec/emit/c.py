"""C source emitter.

The dispatch loop becomes ``for (;;)`` with a ``break`` on the exit edge and
the multiway branch becomes a ``switch``.  Every block's operations are
rendered in order under a comment naming the block, and every format string
is passed through unchanged, so the program prints exactly what the LLVM IR
build prints.
"""

from __future__ import annotations

import logging
from typing import List

from .. import cfg
from ..cfg import ControlFlowGraph
from ..model import Machine
from .base import DEFAULT_CAPABILITIES, READ_INT_FMT, Emitter, loop_shape

LOG = logging.getLogger("tapec.emit.c")

INDENT = "    "

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
}


def c_string(text: str) -> str:
    out = []
    for byte in text.encode("utf-8"):
        ch = chr(byte)
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif 0x20 <= byte < 0x7F:
            out.append(ch)
        else:
            out.append(f"\\{byte:03o}")
    return '"' + "".join(out) + '"'


class CEmitter(Emitter):
    name = "c"
    extension = ".c"

    def _operand(self, operand: cfg.Operand) -> str:
        if isinstance(operand, cfg.Reg):
            return operand.name
        if isinstance(operand, cfg.StateName):
            return f"state_labels[{operand.reg}]"
        if isinstance(operand, cfg.SymbolName):
            return f"symbol_labels[{operand.reg}]"
        return c_string(operand.value)

    def _op(self, op: cfg.Op) -> List[str]:
        caps = self.capabilities
        if isinstance(op, cfg.Print):
            args = "".join(f", {self._operand(arg)}" for arg in op.args)
            return [f"{caps.print_fn}({c_string(op.fmt)}{args});"]
        if isinstance(op, cfg.ReadInt):
            return [
                f"{caps.print_fn}({c_string(op.prompt)});",
                f"{caps.read_fn}({c_string(READ_INT_FMT)}, &{op.dest});",
            ]
        if isinstance(op, cfg.AllocTape):
            return [
                f"if ({op.size} < 1) {{",
                f"{INDENT}{op.size} = 1;",
                "}",
                f"tape = (unsigned char *){caps.alloc_fn}((size_t){op.size});",
                f"memset(tape, {op.fill}, (size_t){op.size});",
            ]
        if isinstance(op, cfg.SetReg):
            return [f"{op.dest} = {op.value};"]
        if isinstance(op, cfg.ComputeAddress):
            return [f"{op.dest} = {op.symbol} * {op.n_states} + {op.state};"]
        if isinstance(op, cfg.MoveCursor):
            return [
                f"{cfg.CURSOR} = {cfg.CURSOR} + ({op.delta});",
                f"if ({cfg.CURSOR} < 0) {{",
                f"{INDENT}{cfg.CURSOR} = 0;",
                "}",
                f"if ({cfg.CURSOR} > {cfg.CAPACITY} - 1) {{",
                f"{INDENT}{cfg.CURSOR} = {cfg.CAPACITY} - 1;",
                "}",
            ]
        if isinstance(op, cfg.WriteCell):
            return [f"tape[{cfg.CURSOR}] = {op.symbol_index};"]
        if isinstance(op, cfg.ReadCell):
            return [f"{op.dest} = tape[{cfg.CURSOR}];"]
        if isinstance(op, cfg.Increment):
            return [f"{op.reg} = {op.reg} + 1;"]
        if isinstance(op, cfg.PrintTape):
            return [
                f"{caps.print_fn}({c_string(op.prefix)});",
                f"for (int cell = 0; cell < {op.size}; cell++) {{",
                f"{INDENT}{caps.print_fn}({c_string(op.item)}, symbol_labels[tape[cell]]);",
                "}",
                f"{caps.print_fn}({c_string(op.suffix)});",
            ]
        raise TypeError(f"unsupported operation {op!r}")  # pragma: no cover

    def _prototypes(self) -> List[str]:
        """Declarations for capabilities that are not the libc functions the headers declare."""
        caps = self.capabilities
        lines = []
        if caps.print_fn != DEFAULT_CAPABILITIES.print_fn:
            lines.append(f"int {caps.print_fn}(const char *fmt, ...);")
        if caps.read_fn != DEFAULT_CAPABILITIES.read_fn:
            lines.append(f"int {caps.read_fn}(const char *fmt, ...);")
        if caps.alloc_fn != DEFAULT_CAPABILITIES.alloc_fn:
            lines.append(f"void *{caps.alloc_fn}(size_t size);")
        if lines:
            lines.append("")
        return lines

    def _block(self, block: cfg.BasicBlock, depth: int) -> List[str]:
        pad = INDENT * depth
        lines = [f"{pad}/* {block.name} */"]
        for op in block.ops:
            lines.extend(pad + line for line in self._op(op))
        return lines

    def emit(self, graph: ControlFlowGraph, machine: Machine) -> str:
        graph.validate()
        shape = loop_shape(graph, machine)
        states = ", ".join(c_string(name) for name in machine.states)
        symbols = ", ".join(c_string(name) for name in machine.symbols)

        out: List[str] = [
            "/* Tape machine generated by tapec. */",
            "#include <stdio.h>",
            "#include <stdlib.h>",
            "#include <string.h>",
            "",
            *self._prototypes(),
            f"static const char *const state_labels[{len(machine.states)}] = {{{states}}};",
            f"static const char *const symbol_labels[{len(machine.symbols)}] = {{{symbols}}};",
            "",
            "int main(void)",
            "{",
        ]
        for reg in cfg.REGISTERS:
            out.append(f"{INDENT}int {reg} = 0;")
        out.append(f"{INDENT}unsigned char *tape = NULL;")
        out.append("")
        out.extend(self._block(shape.entry, 1))
        out.append(f"{INDENT}for (;;) {{")
        out.extend(self._block(shape.header, 2))
        cond = shape.condition
        out.append(f"{INDENT * 2}if (!({cond.lhs} < {cond.rhs})) {{")
        out.append(f"{INDENT * 3}break;")
        out.append(f"{INDENT * 2}}}")
        out.extend(self._block(shape.body, 2))
        out.append(f"{INDENT * 2}switch ({shape.switch.value}) {{")
        for value, block in shape.cases:
            out.append(f"{INDENT * 2}case {value}:")
            out.extend(self._block(block, 3))
            out.append(f"{INDENT * 3}break;")
        out.append(f"{INDENT * 2}default:")
        out.extend(self._block(shape.default, 3))
        out.append(f"{INDENT * 3}break;")
        out.append(f"{INDENT * 2}}}")
        out.extend(self._block(shape.continuation, 2))
        out.append(f"{INDENT}}}")
        out.extend(self._block(shape.exit, 1))
        out.append(f"{INDENT}return {shape.exit.terminator.code};")
        out.append("}")
        LOG.debug("emitted C program with %d switch cases", len(shape.cases))
        return "\n".join(out) + "\n"
