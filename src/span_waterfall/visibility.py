"""Expand/collapse flattening of the span forest into display rows."""

from __future__ import annotations

from functools import lru_cache
from typing import AbstractSet, FrozenSet, Iterable, List, NamedTuple, Tuple

from span_waterfall.options import ExpansionPolicy
from span_waterfall.tree import SpanNode, Trace, iter_nodes

ExpansionState = FrozenSet[str]


class VisibleRow(NamedTuple):
    node: SpanNode
    depth: int


def flatten(roots: Iterable[SpanNode], expanded: AbstractSet[str]) -> List[VisibleRow]:
    """Return the visible nodes in display order.

    Pre-order walk that only descends into expanded nodes, so the cost is
    proportional to the number of visible rows, not the size of the forest.
    """
    rows: List[VisibleRow] = []
    stack = [(root, 0) for root in reversed(list(roots))]
    while stack:
        node, depth = stack.pop()
        rows.append(VisibleRow(node, depth))
        if node.children and node.span_id in expanded:
            stack.extend((child, depth + 1) for child in reversed(node.children))
    return rows


@lru_cache(maxsize=64)
def _cached_rows(trace: Trace, expanded: ExpansionState) -> Tuple[VisibleRow, ...]:
    return tuple(flatten(trace.roots, expanded))


def visible_rows(trace: Trace, expanded: Iterable[str]) -> Tuple[VisibleRow, ...]:
    """Memoized ``flatten`` keyed on the trace object and the expansion contents."""
    return _cached_rows(trace, frozenset(expanded))


def clear_cache() -> None:
    """Drop memoized rows, releasing the traces they reference."""
    _cached_rows.cache_clear()


def initial_expansion(trace: Trace, policy: ExpansionPolicy = ExpansionPolicy.ALL) -> ExpansionState:
    """Expansion set for a freshly built trace."""
    if policy is ExpansionPolicy.NONE:
        return frozenset()
    if policy is ExpansionPolicy.ROOTS:
        return frozenset(root.span_id for root in trace.roots if root.children)
    return frozenset(node.span_id for node in iter_nodes(trace.roots) if node.children)


def is_visible(node: SpanNode, expanded: AbstractSet[str]) -> bool:
    """True if every ancestor of ``node`` is expanded."""
    parent = node.parent
    while parent is not None:
        if parent.span_id not in expanded:
            return False
        parent = parent.parent
    return True
