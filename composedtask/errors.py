from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Optional


class ParseErrorKind(str, Enum):
    EMPTY_DEFINITION = "empty-definition"
    UNEXPECTED_TOKEN = "unexpected-token"
    INVALID_CHARACTER = "invalid-character"
    UNBALANCED_DELIMITER = "unbalanced-delimiter"
    MALFORMED_TRANSITION = "malformed-transition"
    DUPLICATE_LABEL = "duplicate-label"
    AMBIGUOUS_TRANSITION_ORDER = "ambiguous-transition-order"
    DUPLICATE_TRANSITION = "duplicate-transition"
    DEFINITION_TOO_LONG = "definition-too-long"
    NESTING_TOO_DEEP = "nesting-too-deep"


class RenderErrorKind(str, Enum):
    MALFORMED_GRAPH = "malformed-graph"
    MISSING_ANCHOR = "missing-anchor"
    DANGLING_LINK = "dangling-link"
    DISCONNECTED_GRAPH = "disconnected-graph"
    UNREACHABLE_NODE = "unreachable-node"
    CONFLICTING_OUTGOING_LINKS = "conflicting-outgoing-links"
    UNRENDERABLE_STRUCTURE = "unrenderable-structure"


def format_caret(text: str, offset: int) -> str:
    """The source line containing offset, with a caret underneath it."""
    offset = max(0, min(offset, len(text)))
    line_start = text.rfind("\n", 0, offset) + 1
    line_end = text.find("\n", offset)
    if line_end == -1:
        line_end = len(text)
    return text[line_start:line_end] + "\n" + " " * (offset - line_start) + "^"


class ComposedTaskError(Exception):
    pass


class ParseError(ComposedTaskError):
    """Raised when DSL text cannot be turned into a composed task.

    ``offset`` is a character offset into the DSL text; ``name`` is the
    definition name given to the parser, if any.
    """

    def __init__(self, kind: ParseErrorKind, message: str, offset: int,
                 name: Optional[str] = None, text: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.offset = offset
        self.name = name
        self.text = text

    def __str__(self) -> str:
        where = f"{self.name}: " if self.name else ""
        return f"{where}{self.message} (offset {self.offset})"

    def describe(self) -> str:
        """Message followed by the offending source line and a caret under the offset."""
        if self.text is None:
            return str(self)
        return f"{self}\n{format_caret(self.text, self.offset)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "offset": self.offset,
            "name": self.name,
        }


class RenderError(ComposedTaskError):
    """Raised when a graph violates a structural invariant and has no DSL text."""

    def __init__(self, kind: RenderErrorKind, reason: str, node: Optional[str] = None):
        super().__init__(reason)
        self.kind = kind
        self.reason = reason
        self.node = node

    def __str__(self) -> str:
        if self.node is not None:
            return f"{self.reason} (node '{self.node}')"
        return self.reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.reason,
            "node": self.node,
        }
