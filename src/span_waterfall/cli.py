"""CLI entry point for span-waterfall."""

from __future__ import annotations

import argparse
import sys

from span_waterfall import __version__
from span_waterfall.errors import SpanError
from span_waterfall.options import ExpansionPolicy, MarkerMode, ViewerOptions
from span_waterfall.parser import load_spans
from span_waterfall.session import WaterfallRow, WaterfallSession
from span_waterfall.timeline import format_duration


def format_row(row: WaterfallRow) -> str:
    """Render one visible row as a line of the text outline."""
    node = row.node
    if node.children:
        marker = "-" if row.expanded else "+"
    else:
        marker = " "
    name = node.span.span_name or node.span_id
    service = f" [{node.span.service}]" if node.span.service else ""
    flag = "" if node.valid else " (!)"
    return (
        f"{'  ' * row.depth}{marker} {name}{service}{flag}  "
        f"{format_duration(node.duration_ms)}  "
        f"@{row.offset_percent:.1f}% +{row.width_percent:.1f}%"
    )


def main() -> int:
    """CLI entry point. Returns 0 on success, 1 on error."""
    parser = argparse.ArgumentParser(
        prog="span-waterfall",
        description="Print the waterfall outline of a span file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "input",
        help="Span file path (.json, .ndjson or .gz), or - for stdin",
    )
    parser.add_argument(
        "--expand",
        choices=[p.value for p in ExpansionPolicy],
        default=ExpansionPolicy.ALL.value,
        help="Which spans start expanded (default: all)",
    )
    parser.add_argument(
        "--markers",
        choices=[m.value for m in MarkerMode],
        default=MarkerMode.FIXED.value,
        help="Time axis marker spacing (default: fixed)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on the first invalid span instead of repairing it",
    )

    args = parser.parse_args()

    try:
        options = ViewerOptions(
            expansion=ExpansionPolicy(args.expand),
            marker_mode=MarkerMode(args.markers),
            strict=args.strict,
        )
        spans = load_spans(args.input)
        session = WaterfallSession(spans, options)
    except SpanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except UnicodeDecodeError as exc:
        print(f"Error: {args.input} is not UTF-8 text: {exc}", file=sys.stderr)
        return 1
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except PermissionError as exc:
        print(f"Error: Permission denied: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    rows = session.rows()
    if not rows:
        print("No spans to display")
        return 0

    print("  ".join(marker.label for marker in session.markers()))
    for row in rows:
        print(format_row(row))

    trace = session.trace
    print(
        f"{len(trace)} spans, {len(trace.roots)} roots, "
        f"{format_duration(trace.total_duration)} total"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
