"""Exception hierarchy shared by every tapec compilation stage."""

from __future__ import annotations

from typing import Optional


class TapeCompileError(Exception):
    """Base class for errors that abort a compilation."""

    def __init__(self, message: str, *, line: Optional[int] = None, column: Optional[int] = None) -> None:
        self.message = message
        self.line = line
        self.column = column
        super().__init__(self._render())

    def _render(self) -> str:
        if self.line is None:
            return self.message
        if self.column is None:
            return f"line {self.line}: {self.message}"
        return f"line {self.line}:{self.column}: {self.message}"


class TapeSyntaxError(TapeCompileError):
    pass


class UndeclaredNameError(TapeCompileError):
    """Unknown (or duplicated) state or symbol name."""


class MachineDefinitionError(TapeCompileError):
    """Declarations that are well formed but cannot describe a machine (for example an empty alphabet)."""


class AmbiguousConditionError(TapeCompileError):
    pass


class DuplicateRemainderError(TapeCompileError):
    pass


class GraphError(TapeCompileError):
    pass


class EmitError(TapeCompileError):
    pass
