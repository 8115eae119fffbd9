"""Keyboard focus and expand/collapse state machine over the visible rows.

Every operation is a pure transition ``(trace, ViewState, ...) -> ViewState``.
Transitions never raise: moving past either end of the rows, expanding a
leaf, or selecting a hidden span simply returns the state unchanged.

After any transition that can hide rows the state is reconciled: a focus
that is no longer visible moves to the first visible row (or ``None`` when
there are no rows) and a selection that is no longer visible is cleared.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from functools import lru_cache
from typing import Dict, Optional

from span_waterfall.options import ViewerOptions
from span_waterfall.tree import SpanNode, Trace
from span_waterfall.visibility import (
    ExpansionState,
    initial_expansion,
    is_visible,
    visible_rows,
)


class Direction(Enum):
    UP = "up"
    DOWN = "down"


class Action(Enum):
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    EXPAND = "expand"
    COLLAPSE = "collapse"
    TOGGLE = "toggle"
    SELECT = "select"


KEY_BINDINGS: Dict[str, Action] = {
    "ArrowUp": Action.MOVE_UP,
    "ArrowDown": Action.MOVE_DOWN,
    "ArrowRight": Action.EXPAND,
    "ArrowLeft": Action.COLLAPSE,
    "Enter": Action.TOGGLE,
    " ": Action.TOGGLE,
    "Space": Action.TOGGLE,
}


@dataclass(frozen=True)
class NavigationState:
    focused_id: Optional[str] = None
    selected_id: Optional[str] = None


@dataclass(frozen=True)
class ViewState:
    """Expansion set plus focus/selection for one trace."""

    expanded: ExpansionState = frozenset()
    navigation: NavigationState = field(default_factory=NavigationState)

    def __post_init__(self) -> None:
        # Expansion sets key the row caches, so they must be hashable
        if not isinstance(self.expanded, frozenset):
            object.__setattr__(self, "expanded", frozenset(self.expanded))

    @property
    def focused_id(self) -> Optional[str]:
        return self.navigation.focused_id

    @property
    def selected_id(self) -> Optional[str]:
        return self.navigation.selected_id


@lru_cache(maxsize=64)
def _row_index(trace: Trace, expanded: ExpansionState) -> Dict[str, int]:
    return {row.node.span_id: i for i, row in enumerate(visible_rows(trace, expanded))}


def clear_cache() -> None:
    """Drop memoized row indexes, releasing the traces they reference."""
    _row_index.cache_clear()


def reconcile(trace: Trace, state: ViewState) -> ViewState:
    """Re-point focus and selection at rows that are actually visible."""
    index = _row_index(trace, state.expanded)
    focused = state.focused_id
    if focused not in index:
        rows = visible_rows(trace, state.expanded)
        focused = rows[0].node.span_id if rows else None
    selected = state.selected_id if state.selected_id in index else None

    navigation = NavigationState(focused, selected)
    if navigation == state.navigation:
        return state
    return replace(state, navigation=navigation)


def initial_state(trace: Trace, options: Optional[ViewerOptions] = None) -> ViewState:
    """Starting state for a freshly built trace: focus on the first visible row."""
    if options is None:
        options = ViewerOptions()
    return reconcile(trace, ViewState(expanded=initial_expansion(trace, options.expansion)))


def _focused_node(trace: Trace, state: ViewState) -> Optional[SpanNode]:
    if state.focused_id not in _row_index(trace, state.expanded):
        return None
    return trace.get(state.focused_id)


def _focus(state: ViewState, span_id: str, follow_selection: bool) -> ViewState:
    selected = span_id if follow_selection else state.selected_id
    return replace(state, navigation=NavigationState(span_id, selected))


def move_focus(
    trace: Trace,
    state: ViewState,
    direction: Direction,
    follow_selection: bool = False,
) -> ViewState:
    """Move focus one visible row up or down; no-op at either end."""
    index = _row_index(trace, state.expanded).get(state.focused_id)
    if index is None:
        return reconcile(trace, state)

    target = index - 1 if direction is Direction.UP else index + 1
    rows = visible_rows(trace, state.expanded)
    if not 0 <= target < len(rows):
        return state
    return _focus(state, rows[target].node.span_id, follow_selection)


def expand(trace: Trace, state: ViewState) -> ViewState:
    """Expand the focused node if it has children and is collapsed."""
    node = _focused_node(trace, state)
    if node is None or not node.children or node.span_id in state.expanded:
        return state
    return replace(state, expanded=state.expanded | {node.span_id})


def collapse(trace: Trace, state: ViewState, follow_selection: bool = False) -> ViewState:
    """Collapse the focused node, or move focus to its parent.

    Collapsing is shallow: descendants keep their own expansion entries, so
    expanding again restores the subtree as it was.
    """
    node = _focused_node(trace, state)
    if node is None:
        return reconcile(trace, state)

    if node.children and node.span_id in state.expanded:
        return reconcile(trace, replace(state, expanded=state.expanded - {node.span_id}))
    if node.parent is not None:
        return _focus(state, node.parent.span_id, follow_selection)
    return state


def toggle(trace: Trace, state: ViewState, span_id: Optional[str] = None) -> ViewState:
    """Flip expansion of ``span_id`` (default: the focused node).

    Leaves, unknown ids and hidden rows are left alone.
    """
    node = trace.get(span_id if span_id is not None else state.focused_id)
    if node is None or not node.children or not is_visible(node, state.expanded):
        return state

    if node.span_id in state.expanded:
        return reconcile(trace, replace(state, expanded=state.expanded - {node.span_id}))
    return replace(state, expanded=state.expanded | {node.span_id})


def select(trace: Trace, state: ViewState, span_id: Optional[str]) -> ViewState:
    """Point both focus and selection at a visible span (pointer click)."""
    if span_id not in _row_index(trace, state.expanded):
        return state
    return replace(state, navigation=NavigationState(span_id, span_id))


def reduce(
    trace: Trace,
    state: ViewState,
    action: Action,
    span_id: Optional[str] = None,
    follow_selection: bool = False,
) -> ViewState:
    """Apply one navigation action."""
    if action is Action.MOVE_UP:
        return move_focus(trace, state, Direction.UP, follow_selection)
    if action is Action.MOVE_DOWN:
        return move_focus(trace, state, Direction.DOWN, follow_selection)
    if action is Action.EXPAND:
        return expand(trace, state)
    if action is Action.COLLAPSE:
        return collapse(trace, state, follow_selection)
    if action is Action.TOGGLE:
        return toggle(trace, state, span_id)
    if action is Action.SELECT:
        return select(trace, state, span_id)
    return state


def handle_key(
    trace: Trace,
    state: ViewState,
    key: str,
    follow_selection: bool = False,
) -> ViewState:
    """Translate a key name (``"ArrowUp"``, ``"Enter"``, ...) into a transition.

    Unbound keys leave the state unchanged.
    """
    action = KEY_BINDINGS.get(key)
    if action is None:
        return state
    return reduce(trace, state, action, follow_selection=follow_selection)
