"""Pydantic result envelopes for the boundary operations.

Each result holds either a value or an ErrorDescriptor, never both. The
transport layer decides how to serialize them.
"""

from __future__ import annotations
from typing import Any, Dict, Optional

from pydantic import BaseModel, model_validator

from .errors import ParseError, RenderError
from .graph import Graph


class ErrorDescriptor(BaseModel, frozen=True):
    """Structured error: what went wrong, where, and in which definition."""
    kind: str
    message: str
    offset: Optional[int] = None
    name: Optional[str] = None
    node: Optional[str] = None

    @classmethod
    def from_parse_error(cls, error: ParseError) -> "ErrorDescriptor":
        return cls(kind=error.kind.value, message=error.message, offset=error.offset, name=error.name)

    @classmethod
    def from_render_error(cls, error: RenderError) -> "ErrorDescriptor":
        return cls(kind=error.kind.value, message=error.reason, node=error.node)

    def __str__(self) -> str:
        where = f"{self.name}: " if self.name else ""
        at = f" (offset {self.offset})" if self.offset is not None else ""
        at += f" (node '{self.node}')" if self.node is not None else ""
        return f"{where}{self.message}{at}"


class _Result(BaseModel, frozen=True):
    error: Optional[ErrorDescriptor] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GraphResult(_Result):
    graph: Optional[Graph] = None

    @model_validator(mode="after")
    def exactly_one(self) -> "GraphResult":
        if (self.graph is None) == (self.error is None):
            raise ValueError("GraphResult needs exactly one of graph or error")
        return self

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error.model_dump(mode="json")}
        return {"graph": self.graph.to_dict()}


class TextResult(_Result):
    text: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one(self) -> "TextResult":
        if (self.text is None) == (self.error is None):
            raise ValueError("TextResult needs exactly one of text or error")
        return self

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error.model_dump(mode="json")}
        return {"text": self.text}
