"""Composed task DSL: parse definitions into graphs and render graphs back to text."""

from loguru import logger

from .ast import Condition, Sequence, Split, TaskRef, Transition, WILDCARD
from .builder import to_graph
from .errors import ComposedTaskError, ParseError, ParseErrorKind, RenderError, RenderErrorKind
from .graph import Graph, Link, Node, NodeType, graphs_equivalent
from .lexer import Token, TokenKind, tokenize
from .parser import parse
from .renderer import to_dsl_text
from .tools import graph_to_text, parse_to_graph

# Library default: silent until configure_logging() is called
logger.disable("composedtask")

__all__ = [
    "Condition", "Sequence", "Split", "TaskRef", "Transition", "WILDCARD",
    "to_graph", "parse", "to_dsl_text", "tokenize", "Token", "TokenKind",
    "ComposedTaskError", "ParseError", "ParseErrorKind", "RenderError", "RenderErrorKind",
    "Graph", "Link", "Node", "NodeType", "graphs_equivalent",
    "graph_to_text", "parse_to_graph",
]
