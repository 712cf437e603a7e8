from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from loguru import logger

from .ast import AstNode, Sequence, Split, TaskRef, Transition
from .graph import Graph, LABEL_PROPERTY, Link, Node, NodeType

START_ID = "START"
END_ID = "END"
FORK_ID = "FORK"
JOIN_ID = "JOIN"


@dataclass
class _Fragment:
    """Sub-graph of one AST node: a single entry and one or more exits."""
    entry: str
    exits: List[str]


class GraphBuilder:
    """Lowers an AST into a Graph anchored by START and END.

    Node ids are allocated in depth-first, left-to-right order so that the
    same AST always yields the same ids.
    """

    def __init__(self, ast: AstNode):
        self.ast = ast
        self._nodes: List[Node] = []
        self._links: List[Link] = []
        self._ids: Set[str] = set()
        self._next_suffix: Dict[str, int] = {}

    def build(self) -> Graph:
        start = self._add_node(START_ID, NodeType.START)
        end = self._add_node(END_ID, NodeType.END)
        root = self._lower(self.ast)
        self._link(start, root.entry)
        for exit_id in root.exits:
            self._link(exit_id, end)
        graph = Graph(nodes=self._nodes, links=self._links)
        logger.debug("Built graph with {} nodes and {} links", len(graph.nodes), len(graph.links))
        return graph

    # ─── Allocation ──────────────────────────────────────────────

    def _allocate(self, base: str) -> str:
        """The base id, or base#2, base#3, ... once it is taken."""
        candidate = base
        if candidate in self._ids:
            suffix = self._next_suffix.get(base, 2)
            candidate = f"{base}#{suffix}"
            while candidate in self._ids:
                suffix += 1
                candidate = f"{base}#{suffix}"
            self._next_suffix[base] = suffix + 1
        self._ids.add(candidate)
        return candidate

    def _add_node(self, base: str, node_type: NodeType, name: Optional[str] = None,
                  properties: Optional[Dict[str, str]] = None) -> str:
        node_id = self._allocate(base)
        self._nodes.append(Node(id=node_id, type=node_type, name=name, properties=properties or {}))
        return node_id

    def _link(self, source: str, target: str, condition: Optional[str] = None) -> None:
        self._links.append(Link(from_=source, to=target, condition=condition))

    # ─── Lowering ────────────────────────────────────────────────

    def _lower(self, node: AstNode) -> _Fragment:
        if isinstance(node, TaskRef):
            return self._lower_task(node)
        if isinstance(node, Sequence):
            return self._lower_sequence(node)
        if isinstance(node, Split):
            return self._lower_split(node)
        if isinstance(node, Transition):
            return self._lower_transition(node)
        raise TypeError(f"Unsupported AST node: {type(node).__name__}")

    def _lower_task(self, task: TaskRef) -> _Fragment:
        props = {LABEL_PROPERTY: task.label} if task.label else {}
        node_id = self._add_node(task.name, NodeType.TASK, name=task.name, properties=props)
        return _Fragment(entry=node_id, exits=[node_id])

    def _lower_sequence(self, seq: Sequence) -> _Fragment:
        first = self._lower(seq.steps[0])
        previous = first
        for step in seq.steps[1:]:
            current = self._lower(step)
            for exit_id in previous.exits:
                self._link(exit_id, current.entry)
            previous = current
        return _Fragment(entry=first.entry, exits=previous.exits)

    def _lower_split(self, split: Split) -> _Fragment:
        fork = self._add_node(FORK_ID, NodeType.FORK)
        branches = [self._lower(branch) for branch in split.branches]
        join = self._add_node(JOIN_ID, NodeType.JOIN)
        for branch in branches:
            self._link(fork, branch.entry)
            for exit_id in branch.exits:
                self._link(exit_id, join)
        return _Fragment(entry=fork, exits=[join])

    def _lower_transition(self, transition: Transition) -> _Fragment:
        source = self._lower_task(transition.source)
        exits: List[str] = []
        for condition in transition.conditions:
            target = self._lower(condition.target)
            self._link(source.entry, target.entry, condition.pattern)
            exits.extend(target.exits)
        return _Fragment(entry=source.entry, exits=exits)


def to_graph(ast: AstNode) -> Graph:
    return GraphBuilder(ast).build()
