"""
Boundary operations for tools that integrate with composed task definitions.

These are the two calls a transport layer exposes: DSL text to graph, and
graph to DSL text. Neither raises for bad input; failures come back as an
ErrorDescriptor inside the result. Settings not passed in are read from the
environment, and an invalid COMPOSEDTASK_* value is a configuration error:
load_settings() raises pydantic ValidationError before any input is looked at.
Long-running callers load the settings once at startup and pass them in.

The dict variants take and return the plain mappings exchanged with the
transport layer ('name'/'dsl' in, 'graph'/'text'/'error' out).
"""

from __future__ import annotations
from typing import Any, Dict, Mapping, Optional, Union

from loguru import logger
from opentelemetry import trace
from pydantic import ValidationError

from .builder import to_graph
from .config import Settings, load_settings
from .errors import ParseError, ParseErrorKind, RenderError, RenderErrorKind
from .graph import Graph
from .parser import parse
from .renderer import to_dsl_text
from .schemas import ErrorDescriptor, GraphResult, TextResult

NAME_KEY = "name"
DSL_TEXT_KEY = "dsl"

_tracer = trace.get_tracer(__name__)


def parse_to_graph(name: Optional[str], dsl: Optional[str],
                   settings: Optional[Settings] = None) -> GraphResult:
    settings = settings or load_settings()
    with _tracer.start_as_current_span("composedtask.parse") as span:
        span.set_attribute("composedtask.name", name or "")
        span.set_attribute("composedtask.dsl_length", len(dsl or ""))
        try:
            if dsl is not None and len(dsl) > settings.max_dsl_length:
                raise ParseError(ParseErrorKind.DEFINITION_TOO_LONG,
                                 f"definition is {len(dsl)} characters, the limit is {settings.max_dsl_length}",
                                 settings.max_dsl_length, name=name, text=dsl)
            graph = to_graph(parse(dsl, name, settings.max_nesting_depth))
        except ParseError as e:
            logger.info("Rejected composed task {!r}: {}", name, e)
            span.set_attribute("composedtask.error", e.kind.value)
            return GraphResult(error=ErrorDescriptor.from_parse_error(e))
        span.set_attribute("composedtask.nodes", len(graph.nodes))
        return GraphResult(graph=graph)


def _validate_graph(payload: Any) -> Graph:
    try:
        return Graph.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first["loc"]) or "graph"
        raise RenderError(RenderErrorKind.MALFORMED_GRAPH,
                          f"invalid graph at {where}: {first['msg']}") from e


def graph_to_text(graph: Union[Graph, Mapping[str, Any]],
                  settings: Optional[Settings] = None) -> TextResult:
    settings = settings or load_settings()
    with _tracer.start_as_current_span("composedtask.render") as span:
        try:
            if not isinstance(graph, Graph):
                graph = _validate_graph(graph)
            text = to_dsl_text(graph, settings.max_nesting_depth)
        except RenderError as e:
            logger.info("Cannot render graph: {}", e)
            span.set_attribute("composedtask.error", e.kind.value)
            return TextResult(error=ErrorDescriptor.from_render_error(e))
        span.set_attribute("composedtask.text_length", len(text))
        return TextResult(text=text)


def parse_composed_task_text_to_graph(definition: Mapping[str, Any],
                                      settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Parse {'name': ..., 'dsl': ...} into {'graph': ...} or {'error': ...}."""
    name, dsl = definition.get(NAME_KEY), definition.get(DSL_TEXT_KEY)
    if name is not None and not isinstance(name, str):
        name = str(name)
    if dsl is not None and not isinstance(dsl, str):
        dsl = str(dsl)
    return parse_to_graph(name, dsl, settings).to_dict()


def convert_composed_task_graph_to_text(payload: Mapping[str, Any],
                                        settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Convert a graph mapping into {'text': ...} or {'error': ...}."""
    return graph_to_text(payload, settings).to_dict()
