"""Compilation pipeline: parse -> resolve -> index -> lower -> emit.

Each stage consumes the complete output of the previous one.  All artifacts
are rendered in memory before anything is written, so a failing compile
never leaves partial output behind.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .cfg import ControlFlowGraph
from .dot import machine_to_dot
from .emit import DEFAULT_CAPABILITIES, Capabilities, get_emitter
from .errors import EmitError
from .indexer import DispatchIndexer
from .lowering import lower
from .model import Machine
from .parser import parse_machine
from .resolver import DispatchTable, resolve

LOG = logging.getLogger("tapec.compiler")

DOT_TARGET = "dot"
TARGET_EXTENSIONS = {
    "llvm": ".ll",
    "c": ".c",
    DOT_TARGET: ".dot",
}
DEFAULT_TARGETS: Tuple[str, ...] = ("llvm", "c", DOT_TARGET)
TRIPLE_ENV = "TAPEC_TARGET_TRIPLE"


@dataclass
class CompileOptions:
    targets: Sequence[str] = DEFAULT_TARGETS
    trace: bool = False
    triple: Optional[str] = field(default_factory=lambda: os.environ.get(TRIPLE_ENV) or None)
    capabilities: Capabilities = DEFAULT_CAPABILITIES


@dataclass
class Compilation:
    machine: Machine
    table: DispatchTable
    indexer: DispatchIndexer
    graph: ControlFlowGraph
    artifacts: Dict[str, str] = field(default_factory=dict)


def compile_machine(machine: Machine, options: Optional[CompileOptions] = None) -> Compilation:
    options = options or CompileOptions()
    for target in options.targets:
        if target not in TARGET_EXTENSIONS:
            raise EmitError(f"unknown target '{target}' (known: {', '.join(sorted(TARGET_EXTENSIONS))})")

    table = resolve(machine)
    indexer = DispatchIndexer.for_machine(machine)
    graph = lower(machine, table, indexer, trace=options.trace)
    result = Compilation(machine=machine, table=table, indexer=indexer, graph=graph)

    for target in options.targets:
        if target == DOT_TARGET:
            result.artifacts[target] = machine_to_dot(machine)
            continue
        kwargs = {"triple": options.triple} if target == "llvm" else {}
        emitter = get_emitter(target, options.capabilities, **kwargs)
        result.artifacts[target] = emitter.emit(graph, machine)
        LOG.debug("rendered %s artifact", target)
    return result


def compile_source(source: str, options: Optional[CompileOptions] = None) -> Compilation:
    return compile_machine(parse_machine(source), options)


def _staging_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.tmp")


def write_artifacts(compilation: Compilation, out_dir: Path, stem: str) -> List[Path]:
    """Write every artifact or none of them.

    Artifacts are first written to hidden staging files next to their
    destination; only when all of them are on disk are they renamed into
    place.  A failed write removes the staging files and re-raises.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    staged: List[Tuple[str, Path, Path]] = []
    try:
        for target, text in compilation.artifacts.items():
            path = out_dir / f"{stem}{TARGET_EXTENSIONS[target]}"
            staging = _staging_path(path)
            staged.append((target, staging, path))
            staging.write_text(text, encoding="utf-8")
    except OSError:
        for _, staging, _ in staged:
            if staging.is_file():
                staging.unlink()
        raise

    written: List[Path] = []
    for target, staging, path in staged:
        os.replace(staging, path)
        LOG.info("Written %s output to %s", target, path)
        written.append(path)
    return written
