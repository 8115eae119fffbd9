"""Span hierarchy and waterfall timeline engine."""

__version__ = "0.1.0"

from span_waterfall.options import ViewerOptions  # noqa: E402
from span_waterfall.parser import Span, load_spans, span_from_dict  # noqa: E402
from span_waterfall.session import WaterfallRow, WaterfallSession  # noqa: E402
from span_waterfall.tree import SpanNode, Trace, build_trace  # noqa: E402

__all__ = [
    "Span",
    "SpanNode",
    "Trace",
    "ViewerOptions",
    "WaterfallRow",
    "WaterfallSession",
    "build_trace",
    "load_spans",
    "span_from_dict",
]
