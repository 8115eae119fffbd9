"""Viewer configuration: build policies and layout knobs."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping


class TimestampPolicy(Enum):
    """What to do with a span whose timestamp does not parse."""

    MARK = "mark"  # keep it, flag it, place it at the trace start
    SKIP = "skip"  # drop it from the batch
    NOW = "now"  # substitute the current wall-clock time


class ExpansionPolicy(Enum):
    """Which nodes start out expanded when a trace is first shown."""

    ALL = "all"
    ROOTS = "roots"
    NONE = "none"


class MarkerMode(Enum):
    """How time-axis markers are spaced."""

    FIXED = "fixed"  # a fixed number of evenly spaced markers
    NICE = "nice"  # round intervals chosen from the trace duration


DEFAULT_MIN_WIDTH_PERCENT = 0.1
DEFAULT_MARKER_COUNT = 6

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "timestamp_policy": TimestampPolicy,
    "expansion": ExpansionPolicy,
    "marker_mode": MarkerMode,
}


@dataclass
class ViewerOptions:
    """Options controlling trace building, layout and navigation."""

    timestamp_policy: TimestampPolicy = TimestampPolicy.MARK
    strict: bool = False
    expansion: ExpansionPolicy = ExpansionPolicy.ALL
    min_width_percent: float = DEFAULT_MIN_WIDTH_PERCENT
    marker_mode: MarkerMode = MarkerMode.FIXED
    marker_count: int = DEFAULT_MARKER_COUNT
    selection_follows_focus: bool = False

    def __post_init__(self) -> None:
        if not 0 < self.min_width_percent <= 100:
            raise ValueError(
                f"min_width_percent must be in (0, 100], got {self.min_width_percent!r}"
            )
        if self.marker_count < 2:
            raise ValueError(f"marker_count must be at least 2, got {self.marker_count!r}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> ViewerOptions:
        """Build options from a plain mapping, e.g. a decoded config file.

        Enum fields accept their string values. Unknown keys raise ValueError.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown viewer option(s): {', '.join(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, value in values.items():
            enum_type = _ENUM_FIELDS.get(key)
            if enum_type is not None and not isinstance(value, enum_type):
                value = enum_type(value)
            kwargs[key] = value
        return cls(**kwargs)
