"""Barnes-Hut Quadtree.

Spatial partitioning for O(n log n) repulsion on large graphs. Distant
groups of bodies are approximated by their centre of mass.
"""
from __future__ import annotations

import math
from typing import Optional, Sequence

# Max subdivision depth; coincident points coalesce instead of recursing.
MAX_DEPTH = 40


class _QuadNode:
    __slots__ = (
        "x0", "y0", "size", "depth", "mass", "cx", "cy",
        "bodies", "children", "leaf",
    )

    def __init__(self, x0: float, y0: float, size: float, depth: int = 0):
        self.x0 = x0
        self.y0 = y0
        self.size = size
        self.depth = depth
        self.mass = 0.0
        self.cx = 0.0
        self.cy = 0.0
        self.bodies: list[tuple[int, float, float]] = []
        self.children: list[Optional[_QuadNode]] = [None, None, None, None]
        self.leaf = True

    def insert(self, index: int, x: float, y: float) -> None:
        if self.mass == 0:
            self.bodies = [(index, x, y)]
            self.cx, self.cy, self.mass = x, y, 1.0
            return

        if self.depth < MAX_DEPTH:
            if self.leaf:
                self.leaf = False
                for bi, bx, by in self.bodies:
                    self._child_for(bx, by).insert(bi, bx, by)
                self.bodies = []
            self._child_for(x, y).insert(index, x, y)
        else:
            self.bodies.append((index, x, y))

        mass = self.mass + 1.0
        self.cx = (self.cx * self.mass + x) / mass
        self.cy = (self.cy * self.mass + y) / mass
        self.mass = mass

    def _child_for(self, x: float, y: float) -> "_QuadNode":
        half = self.size / 2.0
        mid_x = self.x0 + half
        mid_y = self.y0 + half
        quadrant = (0 if y <= mid_y else 2) + (0 if x <= mid_x else 1)
        child = self.children[quadrant]
        if child is None:
            child = _QuadNode(
                mid_x if quadrant in (1, 3) else self.x0,
                mid_y if quadrant in (2, 3) else self.y0,
                half,
                self.depth + 1,
            )
            self.children[quadrant] = child
        return child


class QuadTree:
    """Quadtree over a set of positions, queried per body for repulsion."""

    def __init__(self, xs: Sequence[float], ys: Sequence[float], theta: float = 0.8, padding: float = 10.0):
        self.theta = theta
        if xs:
            min_x, max_x = min(xs), max(xs)
            min_y, max_y = min(ys), max(ys)
        else:
            min_x = max_x = min_y = max_y = 0.0
        size = max(1.0, max_x - min_x + 2 * padding, max_y - min_y + 2 * padding)
        self.root = _QuadNode(min_x - padding, min_y - padding, size)
        for i, (x, y) in enumerate(zip(xs, ys)):
            self.root.insert(i, x, y)

    def repulsion(self, index: int, x: float, y: float, strength: float, min_dist_sq: float = 1.0) -> tuple[float, float]:
        """Net repulsive force on body ``index`` at (x, y)."""
        fx = fy = 0.0
        theta_sq = self.theta * self.theta
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.mass == 0:
                continue
            if node.leaf:
                for bi, bx, by in node.bodies:
                    if bi == index:
                        continue
                    dx = x - bx
                    dy = y - by
                    dist_sq = max(min_dist_sq, dx * dx + dy * dy)
                    dist = math.sqrt(dist_sq)
                    f = strength / dist_sq
                    fx += f * dx / dist
                    fy += f * dy / dist
                continue

            dx = x - node.cx
            dy = y - node.cy
            dist_sq = max(min_dist_sq, dx * dx + dy * dy)
            if node.size * node.size / dist_sq < theta_sq:
                dist = math.sqrt(dist_sq)
                f = strength * node.mass / dist_sq
                fx += f * dx / dist
                fy += f * dy / dist
            else:
                stack.extend(c for c in node.children if c is not None)
        return fx, fy
