"""Span tree builder — reconstructs hierarchy from flat span list."""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from span_waterfall.errors import (
    DuplicateSpanId,
    InvalidDuration,
    ParentCycle,
    SpanError,
)
from span_waterfall.options import TimestampPolicy, ViewerOptions
from span_waterfall.parser import Span
from span_waterfall.timestamps import TimestampResolver


@dataclass(eq=False)
class SpanNode:
    """A node in the span tree wrapping a Span with timing and parent/child links."""

    span: Span
    start_time_ms: float = 0.0
    duration_ms: float = 0.0
    depth: int = 0
    children: List[SpanNode] = field(default_factory=list)
    parent: Optional[SpanNode] = field(default=None, repr=False)
    errors: List[SpanError] = field(default_factory=list, repr=False)

    @property
    def span_id(self) -> str:
        return self.span.span_id

    @property
    def end_time_ms(self) -> float:
        return self.start_time_ms + self.duration_ms

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    @property
    def valid(self) -> bool:
        """False if the span's timestamp or duration had to be repaired."""
        return all(isinstance(err, ParentCycle) for err in self.errors)


@dataclass(eq=False)
class Trace:
    """The forest built from one span batch plus its time window."""

    roots: List[SpanNode] = field(default_factory=list)
    min_start: float = 0.0
    max_end: float = 0.0
    nodes: Dict[str, SpanNode] = field(default_factory=dict, repr=False)

    @property
    def total_duration(self) -> float:
        # Floor of 1 keeps a single zero-duration span from dividing by zero
        return max(self.max_end - self.min_start, 1)

    def get(self, span_id: Optional[str]) -> Optional[SpanNode]:
        if span_id is None:
            return None
        return self.nodes.get(span_id)

    def __len__(self) -> int:
        return len(self.nodes)


def iter_nodes(roots: Iterable[SpanNode]) -> Iterator[SpanNode]:
    """Yield every node of the forest in pre-order."""
    stack = list(roots)
    stack.reverse()
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _start_key(node: SpanNode) -> float:
    return node.start_time_ms


def _resolve_duration(span: Span, strict: bool) -> Tuple[float, Optional[InvalidDuration]]:
    """Validate a span's duration, clamping bad values to 0."""
    raw = span.duration_ms
    try:
        if isinstance(raw, bool):
            raise TypeError(raw)
        value = float(raw)
    except (TypeError, ValueError):
        value = math.nan

    if math.isfinite(value) and value >= 0:
        return value, None

    error = InvalidDuration(span.span_id, raw)
    if strict:
        raise error
    warnings.warn(f"{error}, using 0", stacklevel=3)
    return 0.0, error


def _reachable(roots: Iterable[SpanNode]) -> Set[str]:
    return {node.span_id for node in iter_nodes(roots)}


def _cycle_link(node: SpanNode) -> Tuple[SpanNode, SpanNode]:
    """Walk parent links from an unreachable node until one repeats.

    Returns the repeated node and its parent; detaching the two breaks
    the cycle.
    """
    seen: Set[str] = set()
    current = node
    while current.span_id not in seen:
        seen.add(current.span_id)
        if current.parent is None:
            raise RuntimeError(f"span {current.span_id!r} is not part of a parent cycle")
        current = current.parent
    if current.parent is None:
        raise RuntimeError(f"span {current.span_id!r} lost its parent link")
    return current, current.parent


def _break_cycles(
    nodes: Dict[str, SpanNode], roots: List[SpanNode], strict: bool
) -> None:
    """Promote one node per parent cycle to a root until every node is reachable."""
    reached = _reachable(roots)
    if len(reached) == len(nodes):
        return

    for node in nodes.values():
        if node.span_id in reached:
            continue
        entry, parent = _cycle_link(node)
        error = ParentCycle(entry.span_id, parent.span_id)
        if strict:
            raise error
        warnings.warn(f"{error}, treating it as a root", stacklevel=3)

        parent.children.remove(entry)
        entry.parent = None
        entry.errors.append(error)
        reached |= _reachable([entry])


def build_trace(
    spans: Iterable[Span], options: Optional[ViewerOptions] = None
) -> Trace:
    """Build the span forest and time window from a flat span list.

    - Links parent-child relationships via parent_span_id → span_id
    - Orphan spans (parent_span_id not found) are treated as roots
    - Duplicate span_ids keep the first occurrence
    - Parent cycles are broken by promoting one span per cycle to a root
    - Children and roots are sorted by start time; ties keep input order
    - Bad timestamps and durations are repaired and recorded on the node,
      or raised when ``options.strict`` is set
    """
    if options is None:
        options = ViewerOptions()
    resolver = TimestampResolver(options.timestamp_policy, strict=options.strict)

    nodes: Dict[str, SpanNode] = {}
    unplaced: List[SpanNode] = []
    placed_starts: List[float] = []

    for span in spans:
        if span.span_id in nodes:
            if options.strict:
                raise DuplicateSpanId(span.span_id)
            warnings.warn(
                f"Duplicate span_id {span.span_id!r}, keeping first occurrence",
                stacklevel=2,
            )
            continue

        instant, ts_error = resolver.resolve(span.timestamp, span.span_id)
        if instant is None and resolver.policy is TimestampPolicy.SKIP:
            continue

        duration, dur_error = _resolve_duration(span, options.strict)
        node = SpanNode(span=span, duration_ms=duration)
        node.errors.extend(err for err in (ts_error, dur_error) if err is not None)
        if instant is None:
            unplaced.append(node)
        else:
            node.start_time_ms = instant
            placed_starts.append(instant)
        nodes[span.span_id] = node

    if not nodes:
        return Trace()

    min_start = min(placed_starts) if placed_starts else 0.0
    for node in unplaced:
        node.start_time_ms = min_start

    roots: List[SpanNode] = []
    for node in nodes.values():
        pid = node.span.parent_span_id
        if pid and pid in nodes:
            parent_node = nodes[pid]
            node.parent = parent_node
            parent_node.children.append(node)
        else:
            # No parent_span_id, or parent not in dataset → root
            roots.append(node)

    _break_cycles(nodes, roots, options.strict)

    # Collect roots in input order, spans promoted out of cycles included;
    # list.sort is stable, so equal start times keep that order
    roots = [node for node in nodes.values() if node.parent is None]
    roots.sort(key=_start_key)
    stack = list(roots)
    while stack:
        node = stack.pop()
        node.children.sort(key=_start_key)
        for child in node.children:
            child.depth = node.depth + 1
            stack.append(child)

    return Trace(
        roots=roots,
        min_start=min_start,
        max_end=max(node.end_time_ms for node in nodes.values()),
        nodes=nodes,
    )
