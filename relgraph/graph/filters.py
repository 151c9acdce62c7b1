"""View Filter.

Derives the visible node/edge projection from a full graph and a filter
state. Pure and cheap: linear in nodes + edges, never mutates inputs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from relgraph.graph.types import EdgeType, GraphEdge, GraphNode

FOCUS_DEDUCED_RELATIONSHIPS = "deducedRelationships"


@dataclass
class FilterState:
    """User-facing toggles. Empty role/type sets mean "show all"."""
    role_filters: set[str] = field(default_factory=set)
    edge_type_filters: set[EdgeType] = field(default_factory=set)
    min_edge_weight: float = 0.0
    show_ghosts: bool = True
    show_orphans: bool = True
    focus_mode: Optional[str] = None


def focus_node_ids(edges: Sequence[GraphEdge], mode: Optional[str]) -> Optional[set[str]]:
    """Node ids allowed by a focus mode, or None when no focus is active.

    Deduced-relationships mode seeds with every endpoint of a deduced-family
    edge, then adds every node one edge away from that seed.
    """
    if mode != FOCUS_DEDUCED_RELATIONSHIPS:
        return None
    seed: set[str] = set()
    for edge in edges:
        if edge.edge_type == EdgeType.DEDUCED_FAMILY:
            seed.add(edge.source_id)
            seed.add(edge.target_id)
    expanded = set(seed)
    for edge in edges:
        if edge.source_id in seed:
            expanded.add(edge.target_id)
        if edge.target_id in seed:
            expanded.add(edge.source_id)
    return expanded


def apply_filters(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    state: FilterState,
) -> tuple[list[GraphNode], list[GraphEdge]]:
    """Return (visible nodes, visible edges) for the given filter state."""
    focus = focus_node_ids(edges, state.focus_mode)

    visible_nodes: list[GraphNode] = []
    visible_ids: set[str] = set()
    for node in nodes:
        if focus is not None and node.id not in focus:
            continue
        if state.role_filters and not (node.role_badges & state.role_filters):
            continue
        if not state.show_ghosts and node.is_ghost:
            continue
        if not state.show_orphans and node.is_orphaned:
            continue
        visible_nodes.append(node)
        visible_ids.add(node.id)

    visible_edges = [
        edge
        for edge in edges
        if (not state.edge_type_filters or edge.edge_type in state.edge_type_filters)
        and edge.weight >= state.min_edge_weight
        and edge.source_id in visible_ids
        and edge.target_id in visible_ids
    ]
    return visible_nodes, visible_edges
