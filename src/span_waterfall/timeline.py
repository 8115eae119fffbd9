"""Waterfall layout — proportional bar positions and time-axis markers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import List

from span_waterfall.options import (
    DEFAULT_MARKER_COUNT,
    DEFAULT_MIN_WIDTH_PERCENT,
    MarkerMode,
)
from span_waterfall.tree import SpanNode, Trace


@dataclass(frozen=True)
class Bar:
    """Horizontal position of one span's bar, in percent of the trace window."""

    offset_percent: float
    width_percent: float


@dataclass(frozen=True)
class TimeMarker:
    """One labelled tick on the time axis."""

    time_ms: float
    position_percent: float
    label: str


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@lru_cache(maxsize=4096)
def _bar(
    start_ms: float,
    duration_ms: float,
    min_start: float,
    total_duration: float,
    min_width_percent: float,
) -> Bar:
    offset = _clamp((start_ms - min_start) * 100 / total_duration, 0.0, 100.0)
    width = max(duration_ms * 100 / total_duration, min_width_percent)
    # The right edge of the window wins over the minimum width
    width = min(width, 100.0 - offset)
    return Bar(offset_percent=offset, width_percent=width)


def layout(
    node: SpanNode,
    trace: Trace,
    min_width_percent: float = DEFAULT_MIN_WIDTH_PERCENT,
) -> Bar:
    """Compute a node's bar offset and width relative to the trace window.

    Zero-length spans get ``min_width_percent`` so they stay visible as a
    sliver; no bar extends past 100%.
    """
    return _bar(
        node.start_time_ms,
        node.duration_ms,
        trace.min_start,
        trace.total_duration,
        min_width_percent,
    )


def format_duration(ms: float) -> str:
    """Format milliseconds as ``"250ms"`` or ``"1.5s"``."""
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{ms:g}ms"


def nice_interval(total_duration: float) -> float:
    """Pick a round marker spacing for a trace of the given length."""
    if total_duration <= 100:
        return 10
    if total_duration <= 500:
        return 50
    if total_duration <= 1000:
        return 100
    if total_duration <= 5000:
        return 500
    if total_duration <= 10000:
        return 1000
    # Roughly ten segments, rounded up to whole seconds
    return math.ceil(total_duration / 10 / 1000) * 1000


def time_markers(
    trace: Trace,
    mode: MarkerMode = MarkerMode.FIXED,
    count: int = DEFAULT_MARKER_COUNT,
) -> List[TimeMarker]:
    """Return axis markers across ``[0, trace.total_duration]``.

    Markers are only labels for the axis; bar layout does not depend on them.
    An empty trace has no markers.
    """
    if not trace.nodes:
        return []
    total = trace.total_duration

    if mode is MarkerMode.NICE:
        step = nice_interval(total)
        markers: List[TimeMarker] = []
        index = 0
        while index * step <= total:
            time_ms = index * step
            markers.append(TimeMarker(time_ms, time_ms * 100 / total, format_duration(time_ms)))
            index += 1
        return markers

    if count < 2:
        raise ValueError(f"count must be at least 2, got {count!r}")
    markers = []
    for i in range(count):
        time_ms = round(total * i / (count - 1))
        markers.append(TimeMarker(time_ms, i * 100 / (count - 1), format_duration(time_ms)))
    return markers
