"""Tests for the keyboard navigation state machine."""

import pytest

from span_waterfall.navigation import (
    Action,
    Direction,
    NavigationState,
    ViewState,
    collapse,
    expand,
    handle_key,
    initial_state,
    move_focus,
    reconcile,
    reduce,
    select,
    toggle,
)
from span_waterfall.options import ExpansionPolicy, ViewerOptions
from span_waterfall.tree import Trace, build_trace
from span_waterfall.visibility import visible_rows
from tests.conftest import make_span


@pytest.fixture
def trace():
    #  r1 ─┬─ a ── a1
    #      └─ b
    #  r2 ─── c
    return build_trace(
        [
            make_span(span_id="r1", start_ms=0, duration_ms=100),
            make_span(span_id="a", parent_span_id="r1", start_ms=10),
            make_span(span_id="a1", parent_span_id="a", start_ms=15),
            make_span(span_id="b", parent_span_id="r1", start_ms=20),
            make_span(span_id="r2", start_ms=50),
            make_span(span_id="c", parent_span_id="r2", start_ms=60),
        ]
    )


def _focused(trace, span_id, expanded=None):
    if expanded is None:
        expanded = frozenset({"r1", "a", "r2"})
    return ViewState(expanded=frozenset(expanded), navigation=NavigationState(span_id))


def _visible(trace, state):
    return [row.node.span_id for row in visible_rows(trace, state.expanded)]


class TestInitialState:
    def test_focus_defaults_to_first_row(self, trace):
        state = initial_state(trace)
        assert state.focused_id == "r1"
        assert state.selected_id is None
        assert state.expanded == {"r1", "a", "r2"}

    def test_expansion_policy(self, trace):
        state = initial_state(trace, ViewerOptions(expansion=ExpansionPolicy.NONE))
        assert state.expanded == frozenset()
        assert _visible(trace, state) == ["r1", "r2"]

    def test_empty_trace(self):
        state = initial_state(Trace())
        assert state.focused_id is None
        assert state.expanded == frozenset()


class TestMoveFocus:
    def test_down_and_up(self, trace):
        state = initial_state(trace)
        state = move_focus(trace, state, Direction.DOWN)
        assert state.focused_id == "a"
        state = move_focus(trace, state, Direction.DOWN)
        assert state.focused_id == "a1"
        state = move_focus(trace, state, Direction.UP)
        assert state.focused_id == "a"

    def test_up_at_first_row_is_noop(self, trace):
        state = initial_state(trace)
        assert move_focus(trace, state, Direction.UP) is state

    def test_down_at_last_row_is_noop(self, trace):
        state = _focused(trace, "c")
        assert move_focus(trace, state, Direction.DOWN) is state

    def test_moves_over_visible_rows_only(self, trace):
        state = _focused(trace, "r1", expanded={"r2"})
        assert move_focus(trace, state, Direction.DOWN).focused_id == "r2"

    def test_does_not_change_selection(self, trace):
        state = select(trace, initial_state(trace), "b")
        state = move_focus(trace, state, Direction.DOWN)
        assert state.focused_id == "r2"
        assert state.selected_id == "b"

    def test_selection_can_follow_focus(self, trace):
        state = move_focus(trace, initial_state(trace), Direction.DOWN, follow_selection=True)
        assert state.selected_id == "a"

    def test_empty_trace_is_noop(self):
        trace = Trace()
        state = initial_state(trace)
        assert move_focus(trace, state, Direction.DOWN) == state

    def test_mutable_expansion_set(self, trace):
        state = ViewState(expanded={"r1"}, navigation=NavigationState("r1", None))
        assert state.expanded == frozenset({"r1"})

        state = move_focus(trace, state, Direction.DOWN)
        assert state.focused_id == "a"
        state = reduce(trace, state, Action.EXPAND)
        assert state.expanded == {"r1", "a"}
        assert select(trace, state, "a1").selected_id == "a1"


class TestExpand:
    def test_expands_collapsed_parent(self, trace):
        state = _focused(trace, "r1", expanded=set())
        state = expand(trace, state)
        assert state.expanded == {"r1"}
        assert _visible(trace, state) == ["r1", "a", "b", "r2"]

    def test_already_expanded_is_noop(self, trace):
        state = _focused(trace, "r1")
        assert expand(trace, state) is state

    def test_leaf_is_noop(self, trace):
        state = _focused(trace, "b")
        assert expand(trace, state) is state


class TestCollapse:
    def test_collapses_expanded_node(self, trace):
        state = _focused(trace, "r1")
        state = collapse(trace, state)
        assert state.focused_id == "r1"
        assert _visible(trace, state) == ["r1", "r2", "c"]

    def test_collapse_is_shallow(self, trace):
        state = collapse(trace, _focused(trace, "r1"))
        # "a" keeps its own expansion, so re-expanding restores a1
        assert "a" in state.expanded
        state = expand(trace, state)
        assert _visible(trace, state) == ["r1", "a", "a1", "b", "r2", "c"]

    def test_leaf_moves_to_parent(self, trace):
        state = collapse(trace, _focused(trace, "a1"))
        assert state.focused_id == "a"
        assert state.expanded == {"r1", "a", "r2"}

    def test_collapsed_parent_moves_to_its_parent(self, trace):
        state = collapse(trace, _focused(trace, "a", expanded={"r1"}))
        assert state.focused_id == "r1"

    def test_collapsed_root_is_noop(self, trace):
        state = _focused(trace, "r1", expanded=set())
        assert collapse(trace, state) is state

    def test_collapsing_clears_hidden_selection(self, trace):
        state = ViewState(frozenset({"r1", "a", "r2"}), NavigationState("a", "a1"))
        state = collapse(trace, state)
        assert state.focused_id == "a"
        assert state.selected_id is None


class TestToggle:
    def test_toggle_focused(self, trace):
        state = _focused(trace, "a")
        collapsed = toggle(trace, state)
        assert "a" not in collapsed.expanded
        assert toggle(trace, collapsed).expanded == state.expanded

    def test_toggle_leaf_is_noop(self, trace):
        state = _focused(trace, "c")
        assert toggle(trace, state) is state

    def test_row_affordance_keeps_focus(self, trace):
        state = _focused(trace, "b")
        state = toggle(trace, state, "a")
        assert "a" not in state.expanded
        assert state.focused_id == "b"

    def test_collapsing_focused_rows_ancestor_resets_focus(self, trace):
        state = _focused(trace, "a1")
        state = toggle(trace, state, "r1")
        assert state.focused_id == "r1"

    def test_hidden_or_unknown_row_is_noop(self, trace):
        state = _focused(trace, "r1", expanded={"a"})
        assert toggle(trace, state, "a") is state
        assert toggle(trace, state, "nope") is state


class TestSelect:
    def test_sets_focus_and_selection(self, trace):
        state = select(trace, initial_state(trace), "b")
        assert state.focused_id == "b"
        assert state.selected_id == "b"

    def test_selection_independent_of_expansion(self, trace):
        state = select(trace, initial_state(trace), "a")
        state = collapse(trace, state)
        assert state.selected_id == "a"
        assert "a" not in state.expanded

    def test_hidden_or_unknown_is_noop(self, trace):
        state = _focused(trace, "r1", expanded=set())
        assert select(trace, state, "a") is state
        assert select(trace, state, "missing") is state
        assert select(trace, state, None) is state


class TestReconcile:
    def test_invalid_focus_resets_to_first_row(self, trace):
        state = ViewState(frozenset(), NavigationState("a1", "a1"))
        state = reconcile(trace, state)
        assert state.focused_id == "r1"
        assert state.selected_id is None

    def test_valid_state_returned_unchanged(self, trace):
        state = _focused(trace, "b")
        assert reconcile(trace, state) is state


class TestKeys:
    @pytest.mark.parametrize(
        "key, focused, expanded",
        [
            ("ArrowDown", "a", {"r1", "a", "r2"}),
            ("ArrowUp", "r1", {"r1", "a", "r2"}),
            ("ArrowLeft", "r1", {"a", "r2"}),
            ("ArrowRight", "r1", {"r1", "a", "r2"}),
            ("Enter", "r1", {"a", "r2"}),
            (" ", "r1", {"a", "r2"}),
            ("Space", "r1", {"a", "r2"}),
        ],
    )
    def test_bindings_from_first_row(self, trace, key, focused, expanded):
        state = handle_key(trace, initial_state(trace), key)
        assert state.focused_id == focused
        assert state.expanded == expanded

    def test_unbound_key_is_noop(self, trace):
        state = initial_state(trace)
        assert handle_key(trace, state, "Tab") is state

    def test_reduce_select(self, trace):
        state = reduce(trace, initial_state(trace), Action.SELECT, span_id="c")
        assert state.selected_id == "c"
