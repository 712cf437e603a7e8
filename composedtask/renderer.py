"""
DSL renderer: Graph -> canonical composed task text.

The graph is validated first; graphs received from outside are never trusted.
Rendering is a structural walk from START. Where control fans out (a FORK,
a node with several unconditional successors, or a task with several
conditional links) the region is closed at the immediate post-dominator of
the node, which is where the branches reconverge. A task with a single
conditional link takes the next element as its target and the walk carries on
in the same sequence.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

import networkx as nx
from loguru import logger

from .ast import WILDCARD
from .config import DEFAULT_MAX_NESTING_DEPTH
from .errors import RenderError, RenderErrorKind
from .graph import Graph, Link, Node, NodeType
from .lexer import is_identifier, nesting_depth

_TASK = "task"
_SPLIT = "split"
_TRANSITION = "transition"


@dataclass
class _Part:
    text: str
    kind: str


def _join(parts: List[_Part]) -> str:
    return " && ".join(p.text for p in parts)


def _pattern_text(pattern: str) -> str:
    if pattern == WILDCARD:
        return "'*'"
    if is_identifier(pattern):
        return pattern
    return f"'{pattern}'"


def _target_text(parts: List[_Part]) -> str:
    if len(parts) == 1 and parts[0].kind in (_TASK, _SPLIT):
        return parts[0].text
    return f"({_join(parts)})"


def _ordered_conditions(links: List[Link]) -> List[Link]:
    """Specific patterns first, in link order, then the catch-all."""
    specific = [l for l in links if l.condition != WILDCARD]
    catch_all = [l for l in links if l.condition == WILDCARD]
    return specific + catch_all


def _attach(pending: List[Tuple[str, str]], part: _Part) -> _Part:
    """Make part the target of the pending single-clause transitions, innermost first."""
    for prefix, _ in reversed(pending):
        part = _Part(prefix + _target_text([part]), _TRANSITION)
    pending.clear()
    return part


class DslRenderer:
    def __init__(self, graph: Graph, max_depth: int = DEFAULT_MAX_NESTING_DEPTH):
        self.graph = graph
        self.max_depth = max_depth
        self._nodes: Dict[str, Node] = {}
        self._outgoing: Dict[str, List[Link]] = {}
        self._ipdom: Dict[str, str] = {}
        self._visited: Set[str] = set()
        self._depth = 0

    def render(self) -> str:
        start, end = self._validate()
        self._ipdom = nx.immediate_dominators(self._simple_graph().reverse(copy=True), end.id)
        text = _join(self._region(start.id, end.id))
        unvisited = [n.id for n in self.graph.nodes if n.id not in self._visited and n.type is not NodeType.END]
        if unvisited:
            raise RenderError(RenderErrorKind.UNRENDERABLE_STRUCTURE,
                              "node is not part of any renderable region", unvisited[0])
        depth = nesting_depth(text)
        if depth > self.max_depth:
            raise RenderError(RenderErrorKind.UNRENDERABLE_STRUCTURE,
                              f"definition would nest {depth} levels deep, the limit is {self.max_depth}")
        logger.debug("Rendered graph with {} nodes: {}", len(self.graph.nodes), text)
        return text

    # ─── Validation ──────────────────────────────────────────────

    def _validate(self) -> Tuple[Node, Node]:
        g = self.graph
        for n in g.nodes:
            if n.id in self._nodes:
                raise RenderError(RenderErrorKind.MALFORMED_GRAPH, "duplicate node id", n.id)
            self._nodes[n.id] = n
            self._outgoing[n.id] = []

        start = self._anchor(NodeType.START)
        end = self._anchor(NodeType.END)

        for l in g.links:
            for endpoint in (l.from_, l.to):
                if endpoint not in self._nodes:
                    raise RenderError(RenderErrorKind.DANGLING_LINK,
                                      f"link {l.from_} -> {l.to} references an unknown node", endpoint)
            self._outgoing[l.from_].append(l)
        if g.incoming(start.id):
            raise RenderError(RenderErrorKind.MISSING_ANCHOR, "START node has incoming links", start.id)
        if self._outgoing[end.id]:
            raise RenderError(RenderErrorKind.MISSING_ANCHOR, "END node has outgoing links", end.id)

        tasks = g.nodes_of_type(NodeType.TASK)
        labels: Dict[str, str] = {}
        for t in tasks:
            if t.name is None or not is_identifier(t.name):
                raise RenderError(RenderErrorKind.MALFORMED_GRAPH,
                                  f"task name {t.name!r} is not a valid identifier", t.id)
            if t.label is None:
                continue
            if not is_identifier(t.label):
                raise RenderError(RenderErrorKind.MALFORMED_GRAPH,
                                  f"label {t.label!r} is not a valid identifier", t.id)
            if t.label in labels:
                raise RenderError(RenderErrorKind.MALFORMED_GRAPH,
                                  f"label '{t.label}' is already used by node '{labels[t.label]}'", t.id)
            labels[t.label] = t.id
        if not tasks:
            raise RenderError(RenderErrorKind.DISCONNECTED_GRAPH, "graph contains no tasks")
        if not g.links:
            raise RenderError(RenderErrorKind.DISCONNECTED_GRAPH, "graph has tasks but no links")

        self._validate_links()
        self._validate_connectivity(start, end)
        return start, end

    def _anchor(self, node_type: NodeType) -> Node:
        found = self.graph.nodes_of_type(node_type)
        if not found:
            raise RenderError(RenderErrorKind.MISSING_ANCHOR, f"graph has no {node_type.value} node")
        if len(found) > 1:
            raise RenderError(RenderErrorKind.MISSING_ANCHOR,
                              f"graph has {len(found)} {node_type.value} nodes", found[1].id)
        return found[0]

    def _validate_links(self) -> None:
        for node_id, links in self._outgoing.items():
            conditional = [l for l in links if l.is_conditional]
            if not conditional:
                continue
            if self._nodes[node_id].type is not NodeType.TASK:
                raise RenderError(RenderErrorKind.MALFORMED_GRAPH,
                                  "only tasks may have conditional links", node_id)
            if len(conditional) != len(links):
                raise RenderError(RenderErrorKind.CONFLICTING_OUTGOING_LINKS,
                                  "task has both conditional and unconditional links", node_id)
            seen: Set[str] = set()
            for l in conditional:
                if not l.condition or "'" in l.condition or "\n" in l.condition:
                    raise RenderError(RenderErrorKind.MALFORMED_GRAPH,
                                      f"invalid condition {l.condition!r}", node_id)
                if l.condition in seen:
                    raise RenderError(RenderErrorKind.CONFLICTING_OUTGOING_LINKS,
                                      f"more than one link for status '{l.condition}'", node_id)
                seen.add(l.condition)

    def _validate_connectivity(self, start: Node, end: Node) -> None:
        simple = self._simple_graph()
        reachable = nx.descendants(simple, start.id) | {start.id}
        for n in self.graph.nodes:
            if n.id not in reachable:
                raise RenderError(RenderErrorKind.UNREACHABLE_NODE, "node is not reachable from START", n.id)
        finishing = nx.ancestors(simple, end.id) | {end.id}
        for n in self.graph.nodes:
            if n.id not in finishing:
                raise RenderError(RenderErrorKind.DISCONNECTED_GRAPH, "node has no path to END", n.id)

    def _simple_graph(self) -> nx.DiGraph:
        g = nx.DiGraph()
        g.add_nodes_from(self._nodes)
        g.add_edges_from((l.from_, l.to) for l in self.graph.links)
        return g

    # ─── Structural walk ─────────────────────────────────────────

    def _unrenderable(self, reason: str, node_id: str) -> RenderError:
        return RenderError(RenderErrorKind.UNRENDERABLE_STRUCTURE, reason, node_id)

    def _visit(self, node_id: str) -> None:
        if node_id in self._visited:
            raise self._unrenderable("node is reached more than once (cycle or shared step)", node_id)
        self._visited.add(node_id)

    def _nested(self, node_id: str, stop: str) -> List[_Part]:
        # A split used as a clause target opens two regions for one level of brackets
        self._depth += 1
        if self._depth > 2 * self.max_depth:
            raise self._unrenderable(f"regions nest deeper than {self.max_depth} levels", node_id)
        parts = self._region(node_id, stop)
        self._depth -= 1
        return parts

    def _region(self, node_id: str, stop: str) -> List[_Part]:
        """Render the path from node_id up to, not including, stop."""
        parts: List[_Part] = []
        pending: List[Tuple[str, str]] = []
        current = node_id
        while current != stop:
            node = self._nodes[current]
            if node.type is NodeType.END:
                raise self._unrenderable("branch reaches END before its enclosing region closes", current)
            self._visit(current)
            links = self._outgoing[current]
            if len(links) == 1 and links[0].is_conditional:
                link = links[0]
                if link.to == stop:
                    raise self._unrenderable(f"transition on '{link.condition}' has no target task", current)
                pending.append((f"{self._task_text(node)} -> {_pattern_text(link.condition)}: ", current))
                if len(pending) > self.max_depth + 1:
                    raise self._unrenderable(f"transitions nest deeper than {self.max_depth} levels", current)
                current = link.to
                continue
            if any(l.is_conditional for l in links):
                part, current = self._transition(node, links)
                parts.append(_attach(pending, part))
                continue
            if node.type is NodeType.TASK:
                parts.append(_attach(pending, _Part(self._task_text(node), _TASK)))
            targets = [l.to for l in links]
            if len(targets) == 1 and node.type is not NodeType.FORK:
                current = targets[0]
                continue
            join = self._join_of(node)
            branches = []
            for target in targets:
                if target == join:
                    raise self._unrenderable("split has an empty branch", current)
                branches.append(_join(self._nested(target, join)))
            parts.append(_attach(pending, _Part("<" + " || ".join(branches) + ">", _SPLIT)))
            current = join
        if pending:
            raise self._unrenderable("transition has no target task", pending[-1][1])
        return parts

    def _join_of(self, node: Node) -> str:
        """Reconvergence point of a fan-out. A FORK closes at its matching JOIN
        on the post-dominator chain, which also covers single-branch splits."""
        if node.type is NodeType.FORK:
            depth = 0
            candidate = self._ipdom.get(node.id)
            while candidate is not None and candidate != self._ipdom.get(candidate):
                kind = self._nodes[candidate].type
                if kind is NodeType.FORK:
                    depth += 1
                elif kind is NodeType.JOIN:
                    if depth == 0:
                        return candidate
                    depth -= 1
                candidate = self._ipdom.get(candidate)
        return self._ipdom[node.id]

    def _transition(self, node: Node, links: List[Link]) -> Tuple[_Part, str]:
        join = self._ipdom[node.id]
        clauses = []
        for link in _ordered_conditions(links):
            if link.to == join:
                raise self._unrenderable(
                    f"transition on '{link.condition}' leads straight to where the branches reconverge", node.id)
            target = _target_text(self._nested(link.to, join))
            clauses.append(f" -> {_pattern_text(link.condition)}: {target}")
        return _Part(self._task_text(node) + "".join(clauses), _TRANSITION), join

    @staticmethod
    def _task_text(node: Node) -> str:
        if node.label:
            return f"{node.label}: {node.name}"
        return node.name


def to_dsl_text(graph: Graph, max_depth: int = DEFAULT_MAX_NESTING_DEPTH) -> str:
    """Render a graph as canonical DSL text. Raises RenderError for graphs with no DSL form."""
    return DslRenderer(graph, max_depth).render()
