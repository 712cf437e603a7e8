"""
Test configuration and fixtures for the composed task test suite.
"""
import sys
import pytest
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from composedtask.builder import to_graph
from composedtask.config import Settings
from composedtask.graph import Graph, Link, Node, NodeType
from composedtask.parser import parse


# Definitions that must survive text -> graph -> text -> graph unchanged
WELL_FORMED = [
    "taskA",
    "taskA && taskB",
    "a && b && c && d",
    "<taskA || taskB> && taskC",
    "<a || b || c>",
    "<a>",
    "<a && b || c> && d",
    "<<a || b> || c>",
    "x: taskA && y: taskB",
    "taskA -> FAILED: taskB -> '*': taskC",
    "taskA -> FAILED: taskB -> '*': taskC && taskD",
    "a -> FAILED: b",
    "a -> FAILED: (b && c)",
    "a -> FAILED: b && c",
    "a -> FAILED: <b || c> -> '*': d && e",
    "<a -> FAILED: b -> '*': c || d> && e",
    "a -> 'exit 1': b -> COMPLETED: c",
    "a -> X: (b -> Y: c -> '*': d) -> '*': e",
    "timestamp && timestamp && timestamp",
    "build.v1 && deploy-prod && test_all",
    "lbl: a -> FAILED: other: a -> '*': b && c",
    "a -> X: (b -> Y: c) && d",
    "a -> X: b && c -> Y: d && e",
]


@pytest.fixture
def build():
    """Parse and lower DSL text in one step."""
    def _build(dsl: str, name: str = None) -> Graph:
        return to_graph(parse(dsl, name))
    return _build


@pytest.fixture
def settings() -> Settings:
    return Settings(max_dsl_length=200)


@pytest.fixture
def linear_graph() -> Graph:
    """Hand-built START -> a -> b -> END."""
    return Graph(
        nodes=[
            Node(id="START", type=NodeType.START),
            Node(id="a", type=NodeType.TASK, name="a"),
            Node(id="b", type=NodeType.TASK, name="b"),
            Node(id="END", type=NodeType.END),
        ],
        links=[
            Link(from_="START", to="a"),
            Link(from_="a", to="b"),
            Link(from_="b", to="END"),
        ],
    )
