# AST node types for composed task definitions
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple, Union

WILDCARD = "*"


@dataclass(frozen=True)
class TaskRef:
    name: str
    label: Optional[str] = None
    offset: int = 0


@dataclass(frozen=True)
class Sequence:
    steps: Tuple["AstNode", ...]


@dataclass(frozen=True)
class Split:
    branches: Tuple["AstNode", ...]


@dataclass(frozen=True)
class Condition:
    pattern: str  # exit status, or WILDCARD for the catch-all
    target: "AstNode"

    @property
    def is_wildcard(self) -> bool:
        return self.pattern == WILDCARD


@dataclass(frozen=True)
class Transition:
    source: TaskRef
    conditions: Tuple[Condition, ...]


AstNode = Union[TaskRef, Sequence, Split, Transition]
