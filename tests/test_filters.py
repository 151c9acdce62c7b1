"""Tests for the view filter and focus modes."""

import copy

from relgraph.graph import EdgeType, GraphEdge, GraphNode
from relgraph.graph.filters import FOCUS_DEDUCED_RELATIONSHIPS, FilterState, apply_filters, focus_node_ids


def n(nid, roles=("Client",), ghost=False, orphan=False):
    return GraphNode(id=nid, display_name=nid, role_badges=frozenset(roles), is_ghost=ghost, is_orphaned=orphan)


def e(a, b, edge_type=EdgeType.COMMUNICATION, weight=1.0):
    return GraphEdge(source_id=a, target_id=b, edge_type=edge_type, weight=weight)


NODES = [
    n("a", roles=("Client",)),
    n("b", roles=("Agent", "Client")),
    n("c", roles=("Prospect",)),
    n("d", roles=("Vendor",)),
    n("g", roles=("Prospect",), ghost=True),
    n("o", orphan=True),
]
EDGES = [
    e("a", "b", EdgeType.DEDUCED_FAMILY),
    e("b", "c", EdgeType.CO_ATTENDANCE, weight=3),
    e("c", "d", EdgeType.COMMUNICATION, weight=1),
    e("a", "g", EdgeType.GHOST_MENTION),
]


def ids(nodes):
    return {node.id for node in nodes}


class TestApplyFilters:
    def test_default_state_shows_everything(self):
        nodes, edges = apply_filters(NODES, EDGES, FilterState())
        assert ids(nodes) == ids(NODES)
        assert len(edges) == len(EDGES)

    def test_pure_and_non_mutating(self):
        before_nodes = copy.deepcopy(NODES)
        before_edges = copy.deepcopy(EDGES)
        state = FilterState(role_filters={"Client"}, min_edge_weight=2, show_ghosts=False)
        first = apply_filters(NODES, EDGES, state)
        second = apply_filters(NODES, EDGES, state)
        assert first == second
        assert NODES == before_nodes
        assert EDGES == before_edges

    def test_role_filter_matches_any_badge(self):
        nodes, edges = apply_filters(NODES, EDGES, FilterState(role_filters={"Agent", "Vendor"}))
        assert ids(nodes) == {"b", "d"}
        assert edges == []

    def test_hide_ghosts_drops_their_edges(self):
        nodes, edges = apply_filters(NODES, EDGES, FilterState(show_ghosts=False))
        assert "g" not in ids(nodes)
        assert all(EdgeType.GHOST_MENTION != edge.edge_type for edge in edges)

    def test_hide_orphans(self):
        nodes, _ = apply_filters(NODES, EDGES, FilterState(show_orphans=False))
        assert "o" not in ids(nodes)

    def test_edge_type_filter_keeps_nodes(self):
        nodes, edges = apply_filters(NODES, EDGES, FilterState(edge_type_filters={EdgeType.CO_ATTENDANCE}))
        assert ids(nodes) == ids(NODES)
        assert [(x.source_id, x.target_id) for x in edges] == [("b", "c")]

    def test_min_edge_weight(self):
        _, edges = apply_filters(NODES, EDGES, FilterState(min_edge_weight=2))
        assert [x.weight for x in edges] == [3]

    def test_visible_edges_always_have_visible_endpoints(self):
        state = FilterState(role_filters={"Client", "Prospect"}, show_ghosts=False)
        nodes, edges = apply_filters(NODES, EDGES, state)
        visible = ids(nodes)
        assert all(x.source_id in visible and x.target_id in visible for x in edges)


class TestFocusMode:
    def test_deduced_focus_expands_one_hop(self):
        nodes, edges = apply_filters(NODES, EDGES, FilterState(focus_mode=FOCUS_DEDUCED_RELATIONSHIPS))
        assert ids(nodes) == {"a", "b", "c", "g"}
        assert "d" not in ids(nodes)
        assert {(x.source_id, x.target_id) for x in edges} == {("a", "b"), ("b", "c"), ("a", "g")}

    def test_focus_without_deduced_edges_hides_all(self):
        edges = [x for x in EDGES if x.edge_type != EdgeType.DEDUCED_FAMILY]
        nodes, visible_edges = apply_filters(NODES, edges, FilterState(focus_mode=FOCUS_DEDUCED_RELATIONSHIPS))
        assert nodes == []
        assert visible_edges == []

    def test_unknown_focus_mode_is_inactive(self):
        assert focus_node_ids(EDGES, None) is None
        assert focus_node_ids(EDGES, "somethingElse") is None

    def test_focus_combines_with_other_filters(self):
        state = FilterState(focus_mode=FOCUS_DEDUCED_RELATIONSHIPS, show_ghosts=False)
        nodes, _ = apply_filters(NODES, EDGES, state)
        assert ids(nodes) == {"a", "b", "c"}
