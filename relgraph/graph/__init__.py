"""RELGRAPH Graph Module.

Nodes, edges, graph building, force-directed layout and view filtering.
"""

from relgraph.graph.builder import GraphBuildResult, build_graph, ghost_node_id, refresh_node
from relgraph.graph.filters import (
    FOCUS_DEDUCED_RELATIONSHIPS,
    FilterState,
    apply_filters,
    focus_node_ids,
)
from relgraph.graph.layout import CancellationToken, LayoutParams, LayoutResult, layout_graph
from relgraph.graph.types import (
    Direction,
    EdgeType,
    GraphEdge,
    GraphNode,
    GraphStatus,
    HealthLevel,
    Point,
    primary_role,
)

__all__ = [
    "GraphNode",
    "GraphEdge",
    "Point",
    "EdgeType",
    "HealthLevel",
    "Direction",
    "GraphStatus",
    "primary_role",
    "GraphBuildResult",
    "build_graph",
    "ghost_node_id",
    "refresh_node",
    "CancellationToken",
    "LayoutParams",
    "LayoutResult",
    "layout_graph",
    "FilterState",
    "FOCUS_DEDUCED_RELATIONSHIPS",
    "apply_filters",
    "focus_node_ids",
]
