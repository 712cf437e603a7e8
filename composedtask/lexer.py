"""Tokenizer for the composed task DSL.

Terminals are declared in ``grammar.lark`` and matched by Lark's basic lexer.
The token stream is lazy, ends with a single EOF token, and never raises: a
character that cannot start any token becomes an ERROR token and ends the
stream, leaving the parser to report it.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator

from lark import Lark
from lark.exceptions import UnexpectedCharacters

GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

_lark = None


class TokenKind(str, Enum):
    IDENTIFIER = "IDENTIFIER"
    STRING = "STRING"
    DOUBLE_AMP = "DOUBLE_AMP"
    PIPE = "PIPE"
    ARROW = "ARROW"
    COLON = "COLON"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LANGLE = "LANGLE"
    RANGLE = "RANGLE"
    STAR = "STAR"
    ERROR = "ERROR"
    EOF = "EOF"


# Display form used in diagnostics
TOKEN_DISPLAY = {
    TokenKind.IDENTIFIER: "identifier",
    TokenKind.STRING: "quoted string",
    TokenKind.DOUBLE_AMP: "'&&'",
    TokenKind.PIPE: "'||'",
    TokenKind.ARROW: "'->'",
    TokenKind.COLON: "':'",
    TokenKind.LPAREN: "'('",
    TokenKind.RPAREN: "')'",
    TokenKind.LANGLE: "'<'",
    TokenKind.RANGLE: "'>'",
    TokenKind.STAR: "'*'",
    TokenKind.ERROR: "invalid character",
    TokenKind.EOF: "end of input",
}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int

    @property
    def value(self) -> str:
        """Token text with the quotes of a STRING literal removed."""
        if self.kind is TokenKind.STRING:
            return self.text[1:-1]
        return self.text

    def describe(self) -> str:
        if self.kind in (TokenKind.IDENTIFIER, TokenKind.STRING):
            return f"{TOKEN_DISPLAY[self.kind]} '{self.value}'"
        if self.kind is TokenKind.ERROR:
            return f"invalid character {self.text!r}"
        return TOKEN_DISPLAY[self.kind]


def _load_lexer() -> Lark:
    global _lark
    if _lark is None:
        grammar = GRAMMAR_PATH.read_text(encoding="utf-8")
        _lark = Lark(grammar, start="start", parser="lalr", lexer="basic")
    return _lark


def tokenize(text: str) -> Iterator[Token]:
    stream = _load_lexer().lex(text)
    try:
        for tok in stream:
            yield Token(TokenKind(tok.type), str(tok), tok.start_pos, tok.end_pos)
    except UnexpectedCharacters as e:
        pos = e.pos_in_stream
        yield Token(TokenKind.ERROR, text[pos], pos, pos + 1)
        return
    yield Token(TokenKind.EOF, "", len(text), len(text))


def is_identifier(text: str) -> bool:
    """True if text lexes as exactly one identifier, e.g. a valid task name."""
    tokens = list(tokenize(text))
    return (len(tokens) == 2 and tokens[0].kind is TokenKind.IDENTIFIER
            and tokens[0].text == text)


def nesting_depth(text: str) -> int:
    """Deepest level of '(' and '<' nesting in text."""
    depth = deepest = 0
    for tok in tokenize(text):
        if tok.kind in (TokenKind.LPAREN, TokenKind.LANGLE):
            depth += 1
            deepest = max(deepest, depth)
        elif tok.kind in (TokenKind.RPAREN, TokenKind.RANGLE):
            depth -= 1
    return deepest
