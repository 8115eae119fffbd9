"""Viewer session — owns the trace and view state for one span batch.

The session is the seam a rendering layer talks to: it feeds input events
in (``press``, ``click``, ``toggle_row``), reads ``rows()`` and
``markers()`` out, and can subscribe to be told when the rows change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from span_waterfall import navigation, visibility
from span_waterfall.navigation import (
    Action,
    ViewState,
    handle_key,
    initial_state,
    reduce,
)
from span_waterfall.options import ViewerOptions
from span_waterfall.parser import Span
from span_waterfall.timeline import TimeMarker, layout, time_markers
from span_waterfall.tree import SpanNode, Trace, build_trace
from span_waterfall.visibility import visible_rows


@dataclass(frozen=True)
class WaterfallRow:
    """One display row: the node, its indent, its bar, and its UI flags."""

    node: SpanNode
    depth: int
    offset_percent: float
    width_percent: float
    expanded: bool
    focused: bool
    selected: bool


Listener = Callable[[Tuple[WaterfallRow, ...]], None]


class WaterfallSession:
    """Interactive waterfall over one span batch.

    The trace is rebuilt only when ``load`` is given a different batch
    object; navigation and expansion state is reset whenever that happens.
    """

    def __init__(
        self,
        spans: Sequence[Span] = (),
        options: Optional[ViewerOptions] = None,
    ) -> None:
        self.options = options or ViewerOptions()
        self.trace = Trace()
        self.state = ViewState()
        self._spans: Optional[Sequence[Span]] = None
        self._listeners: List[Listener] = []
        self._rows: Optional[Tuple[ViewState, Tuple[WaterfallRow, ...]]] = None
        self._markers: Optional[Tuple[Trace, List[TimeMarker]]] = None
        self.load(spans)

    def load(self, spans: Sequence[Span]) -> bool:
        """Show a new span batch. Returns False if it is the batch already shown.

        If building the trace raises (strict mode), the session keeps
        showing the previous batch and a later ``load`` of the same batch
        is attempted again.
        """
        if spans is self._spans:
            return False
        trace = build_trace(spans, self.options)

        # Row caches are module-global; drop entries that pin earlier forests
        visibility.clear_cache()
        navigation.clear_cache()
        self._spans = spans
        self.trace = trace
        self.state = initial_state(trace, self.options)
        self._rows = None
        self._markers = None
        self._notify()
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(rows)`` after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        rows = self.rows()
        for listener in list(self._listeners):
            listener(rows)

    def rows(self) -> Tuple[WaterfallRow, ...]:
        if self._rows is not None and self._rows[0] is self.state:
            return self._rows[1]

        expanded = self.state.expanded
        focused = self.state.focused_id
        selected = self.state.selected_id
        rows = []
        for row in visible_rows(self.trace, expanded):
            bar = layout(row.node, self.trace, self.options.min_width_percent)
            span_id = row.node.span_id
            rows.append(
                WaterfallRow(
                    node=row.node,
                    depth=row.depth,
                    offset_percent=bar.offset_percent,
                    width_percent=bar.width_percent,
                    expanded=span_id in expanded,
                    focused=span_id == focused,
                    selected=span_id == selected,
                )
            )
        result = tuple(rows)
        self._rows = (self.state, result)
        return result

    def markers(self) -> List[TimeMarker]:
        if self._markers is None or self._markers[0] is not self.trace:
            markers = time_markers(
                self.trace, self.options.marker_mode, self.options.marker_count
            )
            self._markers = (self.trace, markers)
        return list(self._markers[1])

    def _apply(self, new_state: ViewState) -> ViewState:
        if new_state != self.state:
            self.state = new_state
            self._notify()
        return self.state

    def dispatch(self, action: Action, span_id: Optional[str] = None) -> ViewState:
        return self._apply(
            reduce(
                self.trace,
                self.state,
                action,
                span_id=span_id,
                follow_selection=self.options.selection_follows_focus,
            )
        )

    def press(self, key: str) -> ViewState:
        """Handle a key press; unbound keys are ignored."""
        return self._apply(
            handle_key(
                self.trace,
                self.state,
                key,
                follow_selection=self.options.selection_follows_focus,
            )
        )

    def click(self, span_id: str) -> ViewState:
        return self.dispatch(Action.SELECT, span_id)

    def toggle_row(self, span_id: str) -> ViewState:
        return self.dispatch(Action.TOGGLE, span_id)

    def focused_node(self) -> Optional[SpanNode]:
        return self.trace.get(self.state.focused_id)

    def selected_node(self) -> Optional[SpanNode]:
        return self.trace.get(self.state.selected_id)
