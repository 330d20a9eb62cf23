"""Parser turning ``.tm`` tokens into a :class:`~tapec.model.Machine`.

Grammar (one construct per line)::

    SYMBOLS: a, b, X
    STATES: q0, q1
    INITIAL: q0
    BLANK: X
    TRANSITIONS:
    q0, a | b, R P(b), q1
    q0, *, L, q0
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from . import lexer
from .errors import TapeSyntaxError
from .lexer import Token
from .model import MOVE_LEFT, MOVE_RIGHT, NOOP, Condition, Explicit, Machine, Remainder, Step, Transition, validate_machine, write

LOG = logging.getLogger("tapec.parser")

_SIMPLE_STEPS: Dict[str, Step] = {
    "L": MOVE_LEFT,
    "R": MOVE_RIGHT,
    "X": NOOP,
}
_HEADERS = ("SYMBOLS", "STATES", "INITIAL", "BLANK", "TRANSITIONS")


class Parser:
    def __init__(self, tokens: List[Token]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.symbols: Optional[List[str]] = None
        self.states: Optional[List[str]] = None
        self.initial: Optional[str] = None
        self.blank: Optional[str] = None
        self.transitions: List[Transition] = []

    # -- token helpers -------------------------------------------------

    def peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.peek()
        if tok.kind != lexer.EOF:
            self.pos += 1
        return tok

    def expect(self, kind: str, what: str) -> Token:
        tok = self.peek()
        if tok.kind != kind:
            raise TapeSyntaxError(f"expected {what}, found {tok}", line=tok.line, column=tok.column)
        return self.advance()

    # -- grammar -------------------------------------------------------

    def program(self) -> Machine:
        while self.peek().kind != lexer.EOF:
            tok = self.peek()
            if tok.kind == lexer.NEWLINE:
                self.advance()
            elif tok.kind == lexer.NAME and self.peek(1).kind == lexer.COLON and tok.text.upper() in _HEADERS:
                self.header()
            elif tok.kind == lexer.NAME:
                self.transitions.append(self.transition())
            else:
                raise TapeSyntaxError(f"unexpected {tok} at start of line", line=tok.line, column=tok.column)

        if self.symbols is None:
            raise TapeSyntaxError("missing SYMBOLS declaration")
        if self.states is None:
            raise TapeSyntaxError("missing STATES declaration")
        machine = Machine(
            symbols=self.symbols,
            states=self.states,
            transitions=self.transitions,
            initial_state=self.initial,
            blank_symbol=self.blank,
        )
        LOG.debug(
            "parsed %d symbols, %d states, %d transitions",
            len(machine.symbols),
            len(machine.states),
            len(machine.transitions),
        )
        return machine

    def header(self) -> None:
        keyword = self.advance()
        self.expect(lexer.COLON, "':'")
        name = keyword.text.upper()
        if name == "TRANSITIONS":
            self.expect(lexer.NEWLINE, "end of line after TRANSITIONS:")
            return
        names = self.name_list()
        self.expect(lexer.NEWLINE, "end of line")
        if name in ("SYMBOLS", "STATES"):
            if getattr(self, name.lower()) is not None:
                raise TapeSyntaxError(f"{name} declared more than once", line=keyword.line)
            if not names:
                raise TapeSyntaxError(f"{name} needs at least one name", line=keyword.line)
            setattr(self, name.lower(), names)
            return
        attr = "initial" if name == "INITIAL" else "blank"
        if getattr(self, attr) is not None:
            raise TapeSyntaxError(f"{name} declared more than once", line=keyword.line)
        if len(names) != 1:
            raise TapeSyntaxError(f"{name} takes exactly one name", line=keyword.line)
        setattr(self, attr, names[0])

    def name_list(self) -> List[str]:
        names: List[str] = []
        if self.peek().kind != lexer.NAME:
            return names
        names.append(self.advance().text)
        while self.peek().kind == lexer.COMMA:
            self.advance()
            names.append(self.expect(lexer.NAME, "a name after ','").text)
        return names

    def transition(self) -> Transition:
        source = self.expect(lexer.NAME, "source state")
        self.expect(lexer.COMMA, "',' after source state")
        condition = self.condition()
        self.expect(lexer.COMMA, "',' after condition")
        steps = self.steps()
        self.expect(lexer.COMMA, "',' after steps")
        target = self.expect(lexer.NAME, "target state")
        self.expect(lexer.NEWLINE, "end of line after target state")
        return Transition(
            source=source.text,
            condition=condition,
            steps=tuple(steps),
            target=target.text,
            line=source.line,
        )

    def condition(self) -> Condition:
        if self.peek().kind == lexer.STAR:
            self.advance()
            return Remainder()
        symbols = [self.expect(lexer.NAME, "a symbol or '*'").text]
        while self.peek().kind == lexer.PIPE:
            self.advance()
            symbols.append(self.expect(lexer.NAME, "a symbol after '|'").text)
        return Explicit(tuple(symbols))

    def steps(self) -> List[Step]:
        steps: List[Step] = []
        while self.peek().kind == lexer.NAME:
            tok = self.advance()
            if tok.text == "P":
                self.expect(lexer.LPAREN, "'(' after P")
                sym = self.expect(lexer.NAME, "a symbol to print")
                self.expect(lexer.RPAREN, "')'")
                steps.append(write(sym.text))
            elif tok.text in _SIMPLE_STEPS:
                steps.append(_SIMPLE_STEPS[tok.text])
            else:
                raise TapeSyntaxError(f"unknown step {tok}; expected L, R, X or P(symbol)", line=tok.line, column=tok.column)
        return steps


def parse_machine(source: str) -> Machine:
    """Scan, parse and validate *source*."""
    machine = Parser(lexer.tokenize(source)).program()
    validate_machine(machine)
    return machine
