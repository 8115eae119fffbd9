"""Per-span error types raised or recorded while building a trace."""

from __future__ import annotations


class SpanError(ValueError):
    """Base class for problems tied to a single input span."""

    def __init__(self, span_id: str, message: str) -> None:
        super().__init__(f"span {span_id!r}: {message}")
        self.span_id = span_id
        self.reason = message


class InvalidTimestamp(SpanError):
    """The span's timestamp could not be parsed."""

    def __init__(self, span_id: str, raw: object) -> None:
        super().__init__(span_id, f"invalid timestamp {raw!r}")
        self.raw = raw


class InvalidDuration(SpanError):
    """The span's duration is negative or not a number."""

    def __init__(self, span_id: str, raw: object) -> None:
        super().__init__(span_id, f"invalid duration {raw!r}")
        self.raw = raw


class DuplicateSpanId(SpanError):
    """Two spans in one batch share a span_id."""

    def __init__(self, span_id: str) -> None:
        super().__init__(span_id, "duplicate span_id")


class ParentCycle(SpanError):
    """The span is its own ancestor; it was promoted to a root."""

    def __init__(self, span_id: str, parent_span_id: str) -> None:
        super().__init__(span_id, f"parent cycle through {parent_span_id!r}")
        self.parent_span_id = parent_span_id
