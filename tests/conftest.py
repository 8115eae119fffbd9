"""
Pytest configuration and Hypothesis strategies for property-based testing.

This module provides span factories and custom Hypothesis strategies for
generating span forests, expansion sets and key sequences.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import strategies as st

from span_waterfall.parser import Span

# Fixed reference time to avoid flaky tests
REFERENCE = datetime(2025, 1, 1, tzinfo=timezone.utc)
REFERENCE_MS = 1735689600000.0


def format_timestamp(offset_ms: int, iso: bool = False) -> str:
    """Format REFERENCE + offset as ``YYYY-MM-DD HH:MM:SS.mmm`` (or ISO with ``Z``)."""
    moment = REFERENCE + timedelta(milliseconds=offset_ms)
    text = moment.strftime("%Y-%m-%d %H:%M:%S") + f".{moment.microsecond // 1000:03d}"
    if iso:
        return text.replace(" ", "T") + "Z"
    return text


def make_span(
    span_id: str = "s1",
    parent_span_id: str = "",
    start_ms: int = 0,
    duration_ms: float = 100,
    **kwargs,
) -> Span:
    """Build a Span starting ``start_ms`` after REFERENCE."""
    return Span(
        span_id=span_id,
        parent_span_id=parent_span_id,
        span_name=kwargs.get("span_name", span_id),
        service=kwargs.get("service", "svc"),
        timestamp=kwargs.get("timestamp", format_timestamp(start_ms)),
        duration_ms=duration_ms,
        span_kind=kwargs.get("span_kind", "Internal"),
        method=kwargs.get("method", ""),
        url=kwargs.get("url", ""),
        status_code=kwargs.get("status_code", "Unset"),
    )


# ============================================================================
# Basic Building Blocks
# ============================================================================


@st.composite
def hex_id(draw, length: int = 16) -> str:
    """
    Generate a valid hexadecimal ID string.

    Args:
        length: Number of hex characters (default 16 for span_id)

    Returns:
        Hexadecimal string of specified length
    """
    hex_chars = "0123456789abcdef"
    return "".join(draw(st.lists(st.sampled_from(hex_chars), min_size=length, max_size=length)))


start_offsets = st.integers(min_value=0, max_value=60_000)
durations = st.integers(min_value=0, max_value=10_000)


# ============================================================================
# Span Forest Strategies
# ============================================================================


@st.composite
def span_forest(
    draw,
    max_roots: int = 3,
    max_depth: int = 3,
    max_children: int = 3,
    orphans: bool = True,
) -> list[Span]:
    """
    Generate a shuffled flat list of spans forming a forest.

    Span ids are unique. With ``orphans`` set, some roots reference a
    parent id that is not in the batch.

    Returns:
        List of Span objects in random order
    """
    spans: list[Span] = []
    counter = [0]

    def next_id() -> str:
        counter[0] += 1
        return f"{counter[0]:016x}"

    def generate_subtree(parent_id: str, depth: int) -> None:
        span = make_span(
            span_id=next_id(),
            parent_span_id=parent_id,
            start_ms=draw(start_offsets),
            duration_ms=draw(durations),
        )
        spans.append(span)
        if depth < max_depth:
            num_children = draw(st.integers(min_value=0, max_value=max_children))
            for _ in range(num_children):
                generate_subtree(span.span_id, depth + 1)

    num_roots = draw(st.integers(min_value=1, max_value=max_roots))
    for _ in range(num_roots):
        parent = ""
        if orphans and draw(st.booleans()):
            parent = "missing-" + draw(hex_id(length=8))
        generate_subtree(parent, 0)

    return draw(st.permutations(spans))


@st.composite
def forest_and_expansion(draw, **kwargs) -> tuple[list[Span], frozenset[str]]:
    """Generate a span forest plus a random subset of its ids as the expansion set."""
    spans = draw(span_forest(**kwargs))
    ids = [s.span_id for s in spans]
    expanded = draw(st.sets(st.sampled_from(ids)))
    return spans, frozenset(expanded)


key_presses = st.sampled_from(
    ["ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight", "Enter", " ", "Tab"]
)
