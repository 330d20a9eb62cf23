"""tapec command-line entry point.

Usage:
  tapec machine.tm -o build --emit llvm,c,dot
  tapec machine.tm --table
  tapec machine.tm --run --steps 10 --tape-size 32
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Sequence

from tabulate import tabulate

from . import __version__
from .compiler import DEFAULT_TARGETS, TARGET_EXTENSIONS, TRIPLE_ENV, CompileOptions, compile_source, write_artifacts
from .errors import TapeCompileError
from .interp import Runtime, run_graph
from .resolver import DispatchTable

LOG = logging.getLogger("tapec.cli")
LOG_ENV = "TAPEC_LOG"
TABLE_HEADERS = ["state", "symbol", "steps", "target", "source"]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_targets(value: str) -> List[str]:
    targets = [item.strip().lower() for item in value.split(",") if item.strip()]
    unknown = [item for item in targets if item not in TARGET_EXTENSIONS]
    if unknown:
        raise argparse.ArgumentTypeError(
            f"unknown target(s) {', '.join(unknown)}; choose from {', '.join(TARGET_EXTENSIONS)}"
        )
    return targets


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tapec", description="Compile a tape machine description to LLVM IR and C")
    parser.add_argument("input", type=Path, help="Tape machine source (.tm)")
    parser.add_argument("-o", "--output-dir", type=Path, default=Path("."), help="Directory for generated files")
    parser.add_argument(
        "--emit",
        type=_parse_targets,
        default=list(DEFAULT_TARGETS),
        help="Comma separated targets to write (default: llvm,c,dot)",
    )
    parser.add_argument("--trace", action="store_true", help="Generated programs print every step and case")
    parser.add_argument(
        "--triple",
        default=os.environ.get(TRIPLE_ENV) or None,
        help=f"LLVM target triple (default ${TRIPLE_ENV}, else none)",
    )
    parser.add_argument("--table", action="store_true", help="Print the resolved dispatch table")
    parser.add_argument("--run", action="store_true", help="Interpret the compiled machine instead of writing files")
    parser.add_argument("--steps", type=int, help="Step budget for --run (prompted when omitted)")
    parser.add_argument("--tape-size", type=int, help="Tape capacity for --run (prompted when omitted)")
    parser.add_argument("--log-level", default=os.environ.get(LOG_ENV, "INFO"), help="Logging level (default INFO)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def render_table(table: DispatchTable) -> str:
    return tabulate(table.rows(), headers=TABLE_HEADERS, tablefmt="github")


def _runtime_inputs(steps, tape_size) -> Sequence[int] | None:
    if steps is None and tape_size is None:
        return None
    if steps is None or tape_size is None:
        raise ValueError("--steps and --tape-size must be given together")
    return [steps, tape_size]


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    LOG.debug("arguments: %s", args)

    options = CompileOptions(
        targets=[] if args.run else args.emit,
        trace=args.trace,
        triple=args.triple,
    )
    try:
        LOG.info("Compiling %s", args.input)
        source = args.input.read_text(encoding="utf-8")
        compilation = compile_source(source, options)
    except TapeCompileError as exc:
        LOG.error("%s: %s", args.input, exc)
        return 1
    except OSError as exc:
        LOG.error("Failed to read input file: %s", exc)
        return 1

    if args.table:
        print(render_table(compilation.table))

    if args.run:
        try:
            runtime = Runtime(_runtime_inputs(args.steps, args.tape_size))
            result = run_graph(compilation.graph, compilation.machine, runtime)
        except (ValueError, EOFError) as exc:
            LOG.error("run failed: %s", exc)
            return 1
        return result.exit_code

    try:
        write_artifacts(compilation, args.output_dir, args.input.stem)
    except OSError as exc:
        LOG.error("Failed to write output: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
