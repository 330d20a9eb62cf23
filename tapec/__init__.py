"""
tapec: compile tape-machine descriptions into LLVM IR and C programs.

The pipeline lives in :mod:`tapec.compiler`; ``python -m tapec`` or the
``tapec`` console script runs :func:`tapec.cli.main`.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .compiler import CompileOptions, Compilation, compile_machine, compile_source
from .errors import TapeCompileError
from .model import Machine
from .parser import parse_machine

__all__ = [
    "CompileOptions",
    "Compilation",
    "Machine",
    "TapeCompileError",
    "compile_machine",
    "compile_source",
    "parse_machine",
]
