"""Graphviz export of a machine's state graph (for human inspection only)."""

from __future__ import annotations

from typing import List

from .model import Machine


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def machine_to_dot(machine: Machine, *, name: str = "state_machine") -> str:
    lines: List[str] = [f"digraph {_quote(name)} {{", "    rankdir=LR;"]
    for state in machine.states:
        shape = "doublecircle" if state == machine.start_state else "circle"
        lines.append(f"    {_quote(state)} [shape={shape}];")
    for transition in machine.transitions:
        steps = " ".join(str(step) for step in transition.steps) or "-"
        label = f"{transition.condition} / {steps}"
        lines.append(f"    {_quote(transition.source)} -> {_quote(transition.target)} [label={_quote(label)}];")
    lines.append("}")
    return "\n".join(lines) + "\n"
