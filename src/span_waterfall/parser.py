"""Span input model and JSON span file loader."""

from __future__ import annotations

import gzip
import json
import sys
import warnings
from dataclasses import dataclass
from typing import IO, Any


@dataclass(frozen=True)
class Span:
    """A single decoded span record, as delivered by the data loader."""

    span_id: str
    parent_span_id: str = ""
    span_name: str = ""
    service: str = ""
    timestamp: str = ""
    duration_ms: float = 0
    span_kind: str = ""
    method: str = ""
    url: str = ""
    status_code: str = ""


# Field name → alternative spellings seen in exported span dumps.
_ALIASES: dict[str, tuple[str, ...]] = {
    "span_id": ("spanId",),
    "parent_span_id": ("parentSpanId",),
    "span_name": ("spanName", "name"),
    "service": ("serviceName", "service_name"),
    "timestamp": ("startTime", "start_time"),
    "duration_ms": ("durationMs", "duration"),
    "span_kind": ("spanKind", "kind"),
    "method": (),
    "url": (),
    "status_code": ("statusCode", "status"),
}


def _lookup(raw: dict[str, Any], name: str) -> Any:
    if name in raw:
        return raw[name]
    for alias in _ALIASES[name]:
        if alias in raw:
            return raw[alias]
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def span_from_dict(raw: dict[str, Any]) -> Span:
    """Build a Span from a decoded JSON object.

    Snake_case keys win over their camelCase aliases. A missing duration
    is read as 0; the value is otherwise passed through unchanged and
    validated when the trace is built.

    Raises ValueError if the object has no span_id.
    """
    if not isinstance(raw, dict):
        raise ValueError("Span record is not a JSON object")

    span_id = _text(_lookup(raw, "span_id"))
    if not span_id:
        raise ValueError("Span record has no span_id")

    duration = _lookup(raw, "duration_ms")
    return Span(
        span_id=span_id,
        parent_span_id=_text(_lookup(raw, "parent_span_id")),
        span_name=_text(_lookup(raw, "span_name")),
        service=_text(_lookup(raw, "service")),
        timestamp=_text(_lookup(raw, "timestamp")),
        duration_ms=0 if duration is None else duration,
        span_kind=_text(_lookup(raw, "span_kind")),
        method=_text(_lookup(raw, "method")),
        url=_text(_lookup(raw, "url")),
        status_code=_text(_lookup(raw, "status_code")),
    )


def _records(data: Any) -> list[Any]:
    """Return the span records held by a decoded JSON document."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        spans = data.get("spans")
        if isinstance(spans, list):
            return spans
        return [data]
    raise ValueError("Document is neither a span object nor a list of spans")


def _spans_from_records(records: list[Any], where: str) -> list[Span]:
    spans: list[Span] = []
    for index, record in enumerate(records):
        try:
            spans.append(span_from_dict(record))
        except ValueError as exc:
            warnings.warn(
                f"Skipping malformed span {index} {where}: {exc}",
                stacklevel=3,
            )
    return spans


def parse_line(line: str) -> list[Span]:
    """Parse a single NDJSON line holding a span, a list, or a ``spans`` object.

    Raises ValueError if the JSON is malformed.
    """
    data = json.loads(line)
    return _spans_from_records(_records(data), "in line")


def parse_stream(stream: IO) -> list[Span]:
    """Parse a span document from a stream.

    The whole stream is first tried as one JSON document (a list of spans,
    or an object with a ``spans`` list). If that fails it is read as NDJSON,
    one document per line, skipping malformed lines with warnings.
    """
    text = stream.read()
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    if not text.strip():
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        pass
    else:
        try:
            return _spans_from_records(_records(data), "in document")
        except ValueError as exc:
            warnings.warn(f"Skipping document: {exc}", stacklevel=2)
            return []

    spans: list[Span] = []
    for line_num, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            spans.extend(parse_line(line))
        except (json.JSONDecodeError, ValueError) as exc:
            warnings.warn(
                f"Skipping malformed line {line_num}: {exc}",
                stacklevel=2,
            )
    return spans


def load_spans(path: str) -> list[Span]:
    """Load spans from a JSON or NDJSON file.

    Supports:
    - Plain text ``.json`` / ``.ndjson`` files
    - Gzip-compressed ``.gz`` files
    - ``-`` for stdin
    """
    if path == "-":
        return parse_stream(sys.stdin)

    if path.endswith(".gz"):
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return parse_stream(f)

    with open(path, encoding="utf-8") as f:
        return parse_stream(f)
