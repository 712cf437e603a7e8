"""
Graph model for composed tasks.

A parsed composed task is a directed graph of named nodes joined by links.
Every graph has a single START anchor (no incoming links) and a single END
anchor (no outgoing links). Tasks are TASK nodes; a split is bracketed by a
synthetic FORK node and a synthetic JOIN node. A link may carry a condition,
the exit status pattern that selects it.

The models are frozen pydantic models so that graphs received from outside
are validated field by field. Structural analysis (reachability, dominators,
isomorphism) runs on a networkx projection of the graph.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional

import networkx as nx
from networkx.algorithms.isomorphism import categorical_multiedge_match
from pydantic import BaseModel, ConfigDict, Field

LABEL_PROPERTY = "label"


class NodeType(str, Enum):
    START = "START"
    END = "END"
    TASK = "TASK"
    FORK = "FORK"
    JOIN = "JOIN"


class Node(BaseModel, frozen=True):
    id: str = Field(min_length=1)
    type: NodeType
    name: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)

    @property
    def label(self) -> Optional[str]:
        return self.properties.get(LABEL_PROPERTY)


class Link(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: str = Field(alias="from")
    to: str
    condition: Optional[str] = None

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None


class Graph(BaseModel, frozen=True):
    nodes: List[Node] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)

    # ─── Lookup ──────────────────────────────────────────────────

    def node(self, node_id: str) -> Optional[Node]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def nodes_of_type(self, node_type: NodeType) -> List[Node]:
        return [n for n in self.nodes if n.type is node_type]

    def outgoing(self, node_id: str) -> List[Link]:
        """Links leaving a node, in graph order."""
        return [l for l in self.links if l.from_ == node_id]

    def incoming(self, node_id: str) -> List[Link]:
        return [l for l in self.links if l.to == node_id]

    # ─── Conversion ──────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form, links use the 'from' key."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Graph":
        return cls.model_validate(data)

    def to_networkx(self) -> nx.MultiDiGraph:
        """Project onto a MultiDiGraph; node and edge attributes mirror the model."""
        g = nx.MultiDiGraph()
        for n in self.nodes:
            g.add_node(n.id, type=n.type.value, name=n.name, label=n.label)
        for l in self.links:
            g.add_edge(l.from_, l.to, condition=l.condition)
        return g


def _node_match(a: Dict[str, Any], b: Dict[str, Any]) -> bool:
    return a["type"] == b["type"] and a["name"] == b["name"] and a["label"] == b["label"]


def graphs_equivalent(a: Graph, b: Graph) -> bool:
    """True if the graphs are isomorphic: same node types, names and labels,
    same link structure and conditions. Node ids are ignored."""
    return nx.is_isomorphic(
        a.to_networkx(),
        b.to_networkx(),
        node_match=_node_match,
        edge_match=categorical_multiedge_match("condition", None),
    )
