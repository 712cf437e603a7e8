from __future__ import annotations
from typing import Dict, List, Optional

from loguru import logger

from .ast import AstNode, Condition, Sequence, Split, TaskRef, Transition, WILDCARD
from .config import DEFAULT_MAX_NESTING_DEPTH
from .errors import ParseError, ParseErrorKind
from .lexer import Token, TokenKind, tokenize

_CLOSERS = (TokenKind.RANGLE, TokenKind.RPAREN)
_STATUS_KINDS = (TokenKind.IDENTIFIER, TokenKind.STAR, TokenKind.STRING)


class _Parser:
    """Recursive-descent parser over a lazy token stream, one instance per parse."""

    def __init__(self, text: str, name: Optional[str], max_depth: int = DEFAULT_MAX_NESTING_DEPTH):
        self.text = text
        self.name = name
        self.max_depth = max_depth
        self._depth = 0
        self._tokens = tokenize(text)
        self._labels: Dict[str, Token] = {}
        self._current = self._next_token()

    # ─── Token handling ──────────────────────────────────────────

    def _next_token(self) -> Token:
        tok = next(self._tokens)
        if tok.kind is TokenKind.ERROR:
            raise self._error(ParseErrorKind.INVALID_CHARACTER,
                              f"unexpected character {tok.text!r}", tok.start)
        return tok

    def _advance(self) -> Token:
        tok = self._current
        if tok.kind is not TokenKind.EOF:
            self._current = self._next_token()
        return tok

    def _error(self, kind: ParseErrorKind, message: str, offset: int) -> ParseError:
        return ParseError(kind, message, offset, name=self.name, text=self.text)

    def _unexpected(self, expected: str) -> ParseError:
        tok = self._current
        return self._error(ParseErrorKind.UNEXPECTED_TOKEN,
                           f"expected {expected} but found {tok.describe()}", tok.start)

    def _open(self) -> Token:
        """Consume an opening '(' or '<' and enter one more level of nesting."""
        opening = self._current
        self._depth += 1
        if self._depth > self.max_depth:
            raise self._error(ParseErrorKind.NESTING_TOO_DEEP,
                              f"{opening.describe()} opens nesting level {self._depth}, "
                              f"the limit is {self.max_depth}", opening.start)
        return self._advance()

    # ─── Grammar ─────────────────────────────────────────────────

    def parse_definition(self) -> AstNode:
        node = self._sequence()
        tok = self._current
        if tok.kind is TokenKind.EOF:
            return node
        if tok.kind in _CLOSERS:
            raise self._error(ParseErrorKind.UNBALANCED_DELIMITER,
                              f"{tok.describe()} has no matching opening delimiter", tok.start)
        if tok.kind is TokenKind.PIPE:
            raise self._error(ParseErrorKind.UNEXPECTED_TOKEN,
                              "'||' is only allowed between the branches of a split", tok.start)
        raise self._unexpected("'&&' or end of input")

    def _sequence(self) -> AstNode:
        steps: List[AstNode] = [self._element()]
        while self._current.kind is TokenKind.DOUBLE_AMP:
            self._advance()
            steps.append(self._element())
        if len(steps) == 1:
            return steps[0]
        flat: List[AstNode] = []
        for step in steps:
            if isinstance(step, Sequence):
                flat.extend(step.steps)
            else:
                flat.append(step)
        return Sequence(tuple(flat))

    def _element(self) -> AstNode:
        kind = self._current.kind
        if kind is TokenKind.LANGLE:
            return self._split()
        if kind is TokenKind.LPAREN:
            return self._group()
        if kind is TokenKind.IDENTIFIER:
            return self._transition()
        raise self._unexpected("a task name, '<' or '('")

    def _split(self) -> Split:
        opening = self._open()
        branches: List[AstNode] = [self._sequence()]
        while self._current.kind is TokenKind.PIPE:
            self._advance()
            branches.append(self._sequence())
        self._close(opening, TokenKind.RANGLE, "'&&', '||' or '>'")
        return Split(tuple(branches))

    def _group(self) -> AstNode:
        opening = self._open()
        inner = self._sequence()
        self._close(opening, TokenKind.RPAREN, "'&&' or ')'")
        return inner

    def _close(self, opening: Token, closer: TokenKind, expected: str) -> None:
        tok = self._current
        if tok.kind is closer:
            self._advance()
            self._depth -= 1
            return
        if tok.kind is TokenKind.EOF or tok.kind in _CLOSERS:
            raise self._error(ParseErrorKind.UNBALANCED_DELIMITER,
                              f"{opening.describe()} at offset {opening.start} is not closed, "
                              f"found {tok.describe()}", tok.start)
        raise self._unexpected(expected)

    def _transition(self) -> AstNode:
        source = self._labeled_task()
        conditions: List[Condition] = []
        seen: Dict[str, Token] = {}
        catch_all: Optional[Token] = None
        while self._current.kind is TokenKind.ARROW:
            self._advance()
            status = self._current
            if status.kind not in _STATUS_KINDS:
                raise self._error(ParseErrorKind.MALFORMED_TRANSITION,
                                  f"expected a status pattern after '->' but found {status.describe()}",
                                  status.start)
            self._advance()
            pattern = WILDCARD if status.kind is TokenKind.STAR else status.value
            if not pattern:
                raise self._error(ParseErrorKind.MALFORMED_TRANSITION,
                                  "status pattern must not be empty", status.start)
            if catch_all is not None:
                raise self._error(ParseErrorKind.AMBIGUOUS_TRANSITION_ORDER,
                                  f"transition on '{pattern}' follows the catch-all '*' "
                                  f"at offset {catch_all.start}", status.start)
            if pattern in seen:
                raise self._error(ParseErrorKind.DUPLICATE_TRANSITION,
                                  f"task '{source.name}' already has a transition on '{pattern}'",
                                  status.start)
            seen[pattern] = status
            if pattern == WILDCARD:
                catch_all = status
            if self._current.kind is not TokenKind.COLON:
                raise self._error(ParseErrorKind.MALFORMED_TRANSITION,
                                  f"expected ':' after status pattern '{pattern}' "
                                  f"but found {self._current.describe()}", self._current.start)
            self._advance()
            conditions.append(Condition(pattern, self._target(pattern)))
        if not conditions:
            return source
        return Transition(source, tuple(conditions))

    def _target(self, pattern: str) -> AstNode:
        kind = self._current.kind
        if kind is TokenKind.LANGLE:
            return self._split()
        if kind is TokenKind.LPAREN:
            return self._group()
        if kind is TokenKind.IDENTIFIER:
            return self._labeled_task()
        raise self._error(ParseErrorKind.MALFORMED_TRANSITION,
                          f"expected a target after '{pattern}:' but found {self._current.describe()}",
                          self._current.start)

    def _labeled_task(self) -> TaskRef:
        first = self._current
        if first.kind is not TokenKind.IDENTIFIER:
            raise self._unexpected("a task name")
        self._advance()
        if self._current.kind is not TokenKind.COLON:
            return TaskRef(name=first.text, offset=first.start)
        self._advance()
        task = self._current
        if task.kind is not TokenKind.IDENTIFIER:
            raise self._unexpected(f"a task name after label '{first.text}:'")
        self._advance()
        if first.text in self._labels:
            raise self._error(ParseErrorKind.DUPLICATE_LABEL,
                              f"label '{first.text}' is already used at offset "
                              f"{self._labels[first.text].start}", first.start)
        self._labels[first.text] = first
        return TaskRef(name=task.text, label=first.text, offset=task.start)


def parse(dsl: str, name: Optional[str] = None,
          max_depth: int = DEFAULT_MAX_NESTING_DEPTH) -> AstNode:
    """Parse composed task DSL text into an AST.

    Raises ParseError with the offset of the offending token. Groups and
    splits may nest at most max_depth levels deep.
    """
    if dsl is None or not dsl.strip():
        raise ParseError(ParseErrorKind.EMPTY_DEFINITION,
                         "composed task definition is empty", 0, name=name, text=dsl)
    ast = _Parser(dsl, name, max_depth).parse_definition()
    logger.debug("Parsed composed task {!r}: {}", name, type(ast).__name__)
    return ast
