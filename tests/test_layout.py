"""Tests for the force-directed layout and its Barnes-Hut approximation."""

import math
import random

from relgraph.graph import EdgeType, GraphEdge, GraphNode, Point
from relgraph.graph.layout import CancellationToken, LayoutParams, layout_graph
from relgraph.graph.quadtree import QuadTree

VIEWPORT = (1200.0, 800.0)


def node(nid, x=None, y=None, pinned=False):
    pos = Point(x, y) if x is not None else None
    return GraphNode(id=nid, display_name=nid, position=pos, is_pinned=pinned)


def edge(a, b, weight=1.0):
    return GraphEdge(source_id=a, target_id=b, edge_type=EdgeType.COMMUNICATION, weight=weight)


def dist(p, q):
    return math.hypot(p.x - q.x, p.y - q.y)


def in_bounds(p, viewport=VIEWPORT):
    return 0 <= p.x <= viewport[0] and 0 <= p.y <= viewport[1] and p.is_finite()


class TestBasics:
    def test_empty_graph(self):
        result = layout_graph([], [], VIEWPORT)
        assert result.positions == {}
        assert result.completed

    def test_every_node_gets_a_finite_position_in_bounds(self):
        nodes = [node(f"n{i}") for i in range(25)]
        edges = [edge(f"n{i}", f"n{i + 1}") for i in range(24)]
        result = layout_graph(nodes, edges, VIEWPORT, params=LayoutParams(iterations=60), rng=random.Random(42))
        assert set(result.positions) == {n.id for n in nodes}
        assert all(in_bounds(p) for p in result.positions.values())
        assert result.completed
        assert result.iterations_run == 60

    def test_input_nodes_are_not_mutated(self):
        nodes = [node("a", 10, 10), node("b")]
        layout_graph(nodes, [edge("a", "b")], VIEWPORT, params=LayoutParams(iterations=20), rng=random.Random(1))
        assert nodes[0].position == Point(10, 10)
        assert nodes[1].position is None

    def test_deterministic_with_seeded_rng(self):
        nodes = [node(f"n{i}") for i in range(8)]
        edges = [edge("n0", "n1"), edge("n2", "n3")]
        params = LayoutParams(iterations=40)
        first = layout_graph(nodes, edges, VIEWPORT, params=params, rng=random.Random(7))
        second = layout_graph(nodes, edges, VIEWPORT, params=params, rng=random.Random(7))
        assert first.positions == second.positions

    def test_tiny_viewport_stays_in_bounds(self):
        nodes = [node(f"n{i}") for i in range(5)]
        result = layout_graph(nodes, [], (30.0, 30.0), params=LayoutParams(iterations=30), rng=random.Random(3))
        assert all(in_bounds(p, (30.0, 30.0)) for p in result.positions.values())


class TestPinning:
    def test_pinned_node_is_bit_for_bit_unchanged(self):
        anchor = Point(123.456789, 654.321)
        nodes = [node("pin", anchor.x, anchor.y, pinned=True), node("a"), node("b")]
        edges = [edge("pin", "a", 5), edge("pin", "b", 5)]
        result = layout_graph(nodes, edges, VIEWPORT, params=LayoutParams(iterations=100), rng=random.Random(2))
        assert result.positions["pin"] is nodes[0].position
        assert result.positions["pin"].x == anchor.x
        assert result.positions["pin"].y == anchor.y

    def test_pinned_outside_viewport_is_kept(self):
        nodes = [node("pin", 5000.0, -10.0, pinned=True), node("a")]
        result = layout_graph(nodes, [edge("pin", "a")], VIEWPORT, params=LayoutParams(iterations=10), rng=random.Random(2))
        assert result.positions["pin"] == Point(5000.0, -10.0)
        assert in_bounds(result.positions["a"])


class TestForces:
    def test_coincident_nodes_separate(self):
        nodes = [node("a", 600, 400), node("b", 600, 400)]
        result = layout_graph(nodes, [], VIEWPORT, params=LayoutParams(iterations=50), rng=random.Random(0))
        assert dist(result.positions["a"], result.positions["b"]) > 1.0
        assert all(p.is_finite() for p in result.positions.values())

    def test_strong_edge_pulls_pair_together(self):
        nodes = [node("a", 100, 100), node("b", 1100, 700)]
        start = dist(Point(100, 100), Point(1100, 700))
        result = layout_graph(nodes, [edge("a", "b", 10)], VIEWPORT, rng=random.Random(42))
        assert dist(result.positions["a"], result.positions["b"]) < start / 2

    def test_unconnected_pair_stays_apart(self):
        nodes = [node("a", 590, 400), node("b", 610, 400)]
        result = layout_graph(nodes, [], VIEWPORT, params=LayoutParams(iterations=100), rng=random.Random(0))
        assert dist(result.positions["a"], result.positions["b"]) > 20

    def test_context_members_cluster(self):
        ids = [f"n{i}" for i in range(12)]
        nodes = [node(i) for i in ids]
        family = ids[:4]
        params = LayoutParams(iterations=200, cluster_strength=0.05)
        result = layout_graph(nodes, [], VIEWPORT, clusters=[family], params=params, rng=random.Random(5))

        def spread(members):
            pts = [result.positions[m] for m in members]
            cx = sum(p.x for p in pts) / len(pts)
            cy = sum(p.y for p in pts) / len(pts)
            return sum(math.hypot(p.x - cx, p.y - cy) for p in pts) / len(pts)

        assert spread(family) < spread(ids[4:8])


class TestCancellation:
    def test_pre_cancelled_token_stops_immediately(self):
        token = CancellationToken()
        token.cancel()
        nodes = [node("a"), node("b")]
        result = layout_graph(nodes, [], VIEWPORT, token=token, rng=random.Random(0))
        assert not result.completed
        assert result.iterations_run == 0

    def test_token_polled_on_check_interval(self):
        calls = {"n": 0}

        class CountingToken:
            @property
            def cancelled(self):
                calls["n"] += 1
                return calls["n"] > 2

        params = LayoutParams(iterations=100, check_every=10)
        result = layout_graph([node("a"), node("b")], [], VIEWPORT, params=params, token=CountingToken(), rng=random.Random(0))
        assert not result.completed
        assert result.iterations_run == 20


class TestBarnesHut:
    def test_large_graph_uses_approximation_and_stays_bounded(self):
        rng = random.Random(11)
        nodes = [node(f"n{i}") for i in range(40)]
        edges = [edge(f"n{i}", f"n{rng.randrange(40)}") for i in range(40)]
        edges = [e for e in edges if e.source_id != e.target_id]
        params = LayoutParams(iterations=30, barnes_hut_threshold=10)
        result = layout_graph(nodes, edges, VIEWPORT, params=params, rng=rng)
        assert result.completed
        assert all(in_bounds(p) for p in result.positions.values())

    def test_quadtree_repulsion_points_away_from_mass(self):
        xs = [0.0, 100.0, 105.0, 95.0]
        ys = [0.0, 100.0, 95.0, 105.0]
        tree = QuadTree(xs, ys)
        fx, fy = tree.repulsion(0, xs[0], ys[0], strength=1000.0)
        assert fx < 0 and fy < 0

    def test_quadtree_matches_direct_sum_when_exact(self):
        xs = [0.0, 50.0, -30.0]
        ys = [0.0, 10.0, 40.0]
        tree = QuadTree(xs, ys, theta=0.0)
        fx, fy = tree.repulsion(0, 0.0, 0.0, strength=100.0)
        ex = ey = 0.0
        for x, y in zip(xs[1:], ys[1:]):
            d_sq = x * x + y * y
            d = math.sqrt(d_sq)
            ex += 100.0 / d_sq * (-x) / d
            ey += 100.0 / d_sq * (-y) / d
        assert math.isclose(fx, ex, rel_tol=1e-9)
        assert math.isclose(fy, ey, rel_tol=1e-9)

    def test_quadtree_keeps_every_coincident_body(self):
        xs = [5.0, 5.0, 5.0, 200.0]
        ys = [5.0, 5.0, 5.0, 200.0]
        tree = QuadTree(xs, ys)

        leaves = []
        stack = [tree.root]
        while stack:
            n = stack.pop()
            if n.leaf:
                leaves.append(sorted(b[0] for b in n.bodies))
            stack.extend(c for c in n.children if c is not None)
        assert [0, 1, 2] in leaves
        assert sorted(i for leaf in leaves for i in leaf) == [0, 1, 2, 3]

        fx, fy = tree.repulsion(3, 200.0, 200.0, strength=100.0)
        d_sq = 2 * 195.0 ** 2
        expected = 3 * 100.0 / d_sq * 195.0 / math.sqrt(d_sq)
        assert math.isclose(fx, expected, rel_tol=1e-9)
        assert math.isclose(fy, expected, rel_tol=1e-9)
