import sys
import json
import argparse
from pathlib import Path
from typing import List, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from pydantic import ValidationError

from .config import Settings, load_settings
from .errors import format_caret
from .log import configure_logging
from .tools import graph_to_text, parse_to_graph


def _enable_console_tracing() -> None:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
    trace.set_tracer_provider(provider)


def _cmd_parse(args: argparse.Namespace, settings: Settings) -> int:
    if args.file is not None:
        if not args.file.is_file():
            print(f"Error: Could not find DSL file '{args.file}'", file=sys.stderr)
            return 1
        dsl = args.file.read_text(encoding="utf-8")
    elif args.dsl is not None:
        dsl = args.dsl
    else:
        dsl = sys.stdin.read()

    result = parse_to_graph(args.name, dsl, settings)
    print(json.dumps(result.to_dict(), indent=2))
    if not result.ok:
        print(f"[Error] {result.error}", file=sys.stderr)
        if result.error.offset is not None:
            print(format_caret(dsl, result.error.offset), file=sys.stderr)
        return 1
    return 0


def _cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    if args.graph != "-" and not Path(args.graph).is_file():
        print(f"Error: Could not find graph file '{args.graph}'", file=sys.stderr)
        return 1
    source = sys.stdin.read() if args.graph == "-" else Path(args.graph).read_text(encoding="utf-8")
    try:
        payload = json.loads(source)
    except json.JSONDecodeError as e:
        print(f"[Error] {args.graph} is not valid JSON: {e}", file=sys.stderr)
        return 1
    # Accept either a bare graph or a parse result {"graph": {...}}
    if isinstance(payload, dict) and "graph" in payload and "nodes" not in payload:
        payload = payload["graph"]

    result = graph_to_text(payload, settings)
    if not result.ok:
        print(f"[Error] {result.error}", file=sys.stderr)
        return 1
    print(result.text)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="composedtask",
                                     description="Composed task DSL tools - convert definitions to graphs and back")
    parser.add_argument("--log-level", help="Log level (default: COMPOSEDTASK_LOG_LEVEL or WARNING)")
    parser.add_argument("--trace", action="store_true", help="Print OpenTelemetry spans to stderr")
    subparsers = parser.add_subparsers(dest="command")

    # 'parse' command
    parse_parser = subparsers.add_parser("parse", help="Parse a composed task definition into a graph (JSON)")
    parse_parser.add_argument("dsl", nargs="?", help="DSL text, e.g. \"<a || b> && c\" (default: stdin)")
    parse_parser.add_argument("--name", help="Name of the composed task, used in error messages")
    parse_parser.add_argument("-f", "--file", type=Path, help="Read the DSL text from a file")

    # 'render' command
    render_parser = subparsers.add_parser("render", help="Render a graph (JSON) as DSL text")
    render_parser.add_argument("graph", nargs="?", default="-", help="Graph JSON file, '-' for stdin")

    args = parser.parse_args(argv)
    try:
        settings = load_settings()
    except ValidationError as e:
        print(f"[Error] Invalid COMPOSEDTASK_* configuration: {e}", file=sys.stderr)
        return 2
    configure_logging(args.log_level or settings.log_level)
    if args.trace or settings.trace:
        _enable_console_tracing()

    if args.command == "parse":
        return _cmd_parse(args, settings)
    if args.command == "render":
        return _cmd_render(args, settings)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
