"""Timestamp resolution — wall-clock span start strings to epoch milliseconds."""

from __future__ import annotations

import time
import warnings
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional

from span_waterfall.errors import InvalidTimestamp
from span_waterfall.options import TimestampPolicy

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def resolve_timestamp(raw: object, span_id: str = "") -> float:
    """Parse a span timestamp into epoch milliseconds.

    Accepts ISO-8601 (``2025-01-01T00:00:00.010Z``, with or without an
    offset) and the ``2025-01-01 00:00:00.010`` form. Values without an
    offset are read as UTC.

    Raises InvalidTimestamp if the value is empty or does not parse.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidTimestamp(span_id, raw)

    text = raw.strip()
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    if len(text) > 10 and text[10] == " ":
        text = text[:10] + "T" + text[11:]

    try:
        instant = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidTimestamp(span_id, raw) from exc

    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    # timedelta division works on whole microseconds, so whole-ms inputs stay exact
    return (instant - _EPOCH) / _ONE_MS


class Resolution(NamedTuple):
    """Outcome of resolving one span's timestamp."""

    instant_ms: Optional[float]
    error: Optional[InvalidTimestamp]


class TimestampResolver:
    """Resolves span timestamps and applies the parse-failure policy.

    With ``strict`` set, the first bad timestamp raises. Otherwise the
    failure is returned in the Resolution and reported as a warning; under
    ``TimestampPolicy.NOW`` the current wall-clock time is substituted.
    """

    def __init__(
        self,
        policy: TimestampPolicy = TimestampPolicy.MARK,
        strict: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policy = policy
        self.strict = strict
        self._clock = clock

    def resolve(self, raw: object, span_id: str = "") -> Resolution:
        try:
            return Resolution(resolve_timestamp(raw, span_id), None)
        except InvalidTimestamp as exc:
            if self.strict:
                raise
            error = exc

        if self.policy is TimestampPolicy.NOW:
            warnings.warn(f"{error}, using current time", stacklevel=2)
            return Resolution(self._clock() * 1000.0, error)
        if self.policy is TimestampPolicy.SKIP:
            warnings.warn(f"{error}, dropping span", stacklevel=2)
        else:
            warnings.warn(f"{error}, placing span at trace start", stacklevel=2)
        return Resolution(None, error)
