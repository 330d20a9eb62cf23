"""Scanner for ``.tm`` tape-machine sources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List

from .errors import TapeSyntaxError

NAME = "NAME"
COLON = "COLON"
COMMA = "COMMA"
PIPE = "PIPE"
STAR = "STAR"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
NEWLINE = "NEWLINE"
EOF = "EOF"

_PUNCT = {
    ":": COLON,
    ",": COMMA,
    "|": PIPE,
    "*": STAR,
    "(": LPAREN,
    ")": RPAREN,
}

TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r]+)
  | (?P<comment>\#[^\n]*)
  | (?P<newline>\n)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*|[0-9]+)
  | (?P<punct>[:,|*()])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    line: int
    column: int

    def __str__(self) -> str:
        if self.kind in (NEWLINE, EOF):
            return self.kind.lower()
        return repr(self.text)


def iter_tokens(source: str) -> Iterator[Token]:
    """Yield tokens for *source*; comments and blanks are dropped, newlines kept."""
    line = 1
    line_start = 0
    pos = 0
    end = len(source)
    while pos < end:
        match = TOKEN_RE.match(source, pos)
        column = pos - line_start + 1
        if match is None:
            raise TapeSyntaxError(f"unexpected character {source[pos]!r}", line=line, column=column)
        kind = match.lastgroup
        text = match.group()
        if kind == "newline":
            yield Token(NEWLINE, text, line, column)
            line += 1
            line_start = match.end()
        elif kind == "name":
            yield Token(NAME, text, line, column)
        elif kind == "punct":
            yield Token(_PUNCT[text], text, line, column)
        pos = match.end()
    yield Token(NEWLINE, "", line, pos - line_start + 1)
    yield Token(EOF, "", line, pos - line_start + 1)


def tokenize(source: str) -> List[Token]:
    return list(iter_tokens(source))
