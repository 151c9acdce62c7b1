"""Force-Directed Layout.

Iterative spring/repulsion simulation with context clustering, pinning,
a cooling schedule and cooperative cancellation. The engine only ever
sees positions: nodes are read, never mutated, and the caller decides
whether to publish the returned positions.
"""
from __future__ import annotations

import logging
import math
import random
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from relgraph.graph.quadtree import QuadTree
from relgraph.graph.types import GraphEdge, GraphNode, Point

logger = logging.getLogger("relgraph.layout")

GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))


class CancellationToken:
    """Thread-safe flag polled by the layout loop between iteration batches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class LayoutParams:
    iterations: int = 300
    repulsion: float = 5000.0
    attraction: float = 0.01
    rest_length: float = 80.0
    cluster_strength: float = 0.004  # weaker than any single edge spring
    gravity: float = 0.02
    damping: float = 0.75
    min_distance: float = 1.0
    min_spacing: float = 40.0
    max_step: float = 50.0
    padding: float = 20.0
    barnes_hut_threshold: int = 500
    check_every: int = 10


@dataclass
class LayoutResult:
    positions: dict[str, Point] = field(default_factory=dict)
    iterations_run: int = 0
    completed: bool = True


def layout_graph(
    nodes: Sequence[GraphNode],
    edges: Iterable[GraphEdge],
    viewport: tuple[float, float],
    clusters: Iterable[Sequence[str]] = (),
    params: Optional[LayoutParams] = None,
    token: Optional[CancellationToken] = None,
    rng: Optional[random.Random] = None,
) -> LayoutResult:
    """Run the simulation and return a position for every node.

    Pinned nodes come back with exactly the position they carried.
    ``completed`` is False when the token cancelled the run early.
    """
    params = params or LayoutParams()
    rng = rng or random.Random()
    width, height = viewport
    if not nodes:
        return LayoutResult()

    pad = params.padding if width > 2 * params.padding and height > 2 * params.padding else 0.0
    lo_x, hi_x = pad, max(pad, width - pad)
    lo_y, hi_y = pad, max(pad, height - pad)

    n = len(nodes)
    index = {node.id: i for i, node in enumerate(nodes)}
    pinned = [node.is_pinned for node in nodes]
    xs: list[float] = []
    ys: list[float] = []
    for node in nodes:
        if node.has_position():
            xs.append(node.position.x)
            ys.append(node.position.y)
        else:
            xs.append(rng.uniform(lo_x, hi_x))
            ys.append(rng.uniform(lo_y, hi_y))
    vx = [0.0] * n
    vy = [0.0] * n

    springs = [
        (index[e.source_id], index[e.target_id], max(0.0, e.weight))
        for e in edges
        if e.source_id in index and e.target_id in index and e.source_id != e.target_id
    ]
    groups = [
        members
        for members in ([index[pid] for pid in dict.fromkeys(c) if pid in index] for c in clusters)
        if len(members) >= 2
    ]

    center_x, center_y = width / 2.0, height / 2.0
    use_barnes_hut = n > params.barnes_hut_threshold
    min_dist_sq = params.min_distance * params.min_distance
    iterations = max(0, params.iterations)
    logger.debug(
        "Layout start: %d nodes, %d springs, %d clusters, %d iterations%s",
        n, len(springs), len(groups), iterations, " (barnes-hut)" if use_barnes_hut else "",
    )

    completed = True
    iteration = 0
    for iteration in range(iterations):
        if token is not None and iteration % params.check_every == 0 and token.cancelled:
            logger.info("Layout cancelled at iteration %d/%d", iteration, iterations)
            completed = False
            break

        temperature = max(0.01, 1.0 - iteration / iterations)
        fx = [0.0] * n
        fy = [0.0] * n

        # --- Repulsion ---
        strength = params.repulsion * temperature
        if use_barnes_hut:
            tree = QuadTree(xs, ys)
            for i in range(n):
                if not pinned[i]:
                    rx, ry = tree.repulsion(i, xs[i], ys[i], strength, min_dist_sq)
                    fx[i] += rx
                    fy[i] += ry
        else:
            _direct_repulsion(xs, ys, pinned, fx, fy, strength, min_dist_sq)

        # --- Springs along edges ---
        for i, j, weight in springs:
            dx = xs[j] - xs[i]
            dy = ys[j] - ys[i]
            dist = math.sqrt(dx * dx + dy * dy)
            if dist < 1e-9:
                continue
            f = params.attraction * weight * (dist - params.rest_length)
            ux, uy = dx / dist, dy / dist
            if not pinned[i]:
                fx[i] += f * ux
                fy[i] += f * uy
            if not pinned[j]:
                fx[j] -= f * ux
                fy[j] -= f * uy

        # --- Context clustering ---
        for members in groups:
            cx = sum(xs[m] for m in members) / len(members)
            cy = sum(ys[m] for m in members) / len(members)
            for m in members:
                if not pinned[m]:
                    fx[m] += params.cluster_strength * (cx - xs[m])
                    fy[m] += params.cluster_strength * (cy - ys[m])

        # --- Gravity, damping, integration, clamping ---
        damping = params.damping * temperature
        max_step = params.max_step * temperature
        for i in range(n):
            if pinned[i]:
                continue
            fx[i] += params.gravity * (center_x - xs[i])
            fy[i] += params.gravity * (center_y - ys[i])
            vx[i] = (vx[i] + fx[i]) * damping
            vy[i] = (vy[i] + fy[i]) * damping
            step_x, step_y = vx[i] * temperature, vy[i] * temperature
            step = math.sqrt(step_x * step_x + step_y * step_y)
            if step > max_step:
                step_x *= max_step / step
                step_y *= max_step / step
            xs[i] = _clamp(xs[i] + step_x, lo_x, hi_x)
            ys[i] = _clamp(ys[i] + step_y, lo_y, hi_y)

        if not use_barnes_hut:
            _resolve_collisions(xs, ys, pinned, params.min_spacing, lo_x, hi_x, lo_y, hi_y)
    else:
        iteration = iterations

    positions: dict[str, Point] = {}
    for i, node in enumerate(nodes):
        if pinned[i] and node.has_position():
            positions[node.id] = node.position
        else:
            positions[node.id] = Point(xs[i], ys[i])

    if completed:
        logger.info("Layout complete: %d nodes, %d iterations", n, iterations)
    return LayoutResult(positions=positions, iterations_run=iteration, completed=completed)


def _direct_repulsion(xs, ys, pinned, fx, fy, strength: float, min_dist_sq: float) -> None:
    """All-pairs inverse-square repulsion with a minimum distance floor."""
    n = len(xs)
    for i in range(n):
        for j in range(i + 1, n):
            if pinned[i] and pinned[j]:
                continue
            dx = xs[i] - xs[j]
            dy = ys[i] - ys[j]
            raw = dx * dx + dy * dy
            if raw == 0.0:
                # Coincident: push apart along a fixed, pair-specific direction
                angle = (i + 1) * GOLDEN_ANGLE + j
                dx, dy = math.cos(angle), math.sin(angle)
                raw = 1.0
            dist_sq = max(min_dist_sq, raw)
            dist = math.sqrt(raw)
            f = strength / dist_sq
            ux, uy = dx / dist, dy / dist
            if not pinned[i]:
                fx[i] += f * ux
                fy[i] += f * uy
            if not pinned[j]:
                fx[j] -= f * ux
                fy[j] -= f * uy


def _resolve_collisions(xs, ys, pinned, min_spacing: float, lo_x, hi_x, lo_y, hi_y) -> None:
    n = len(xs)
    min_sq = min_spacing * min_spacing
    for i in range(n):
        for j in range(i + 1, n):
            if pinned[i] and pinned[j]:
                continue
            dx = xs[i] - xs[j]
            dy = ys[i] - ys[j]
            dist_sq = dx * dx + dy * dy
            if dist_sq >= min_sq or dist_sq < 1e-6:
                continue
            dist = math.sqrt(dist_sq)
            overlap = (min_spacing - dist) / 2.0
            nx, ny = dx / dist, dy / dist
            if not pinned[i]:
                xs[i] = _clamp(xs[i] + nx * overlap, lo_x, hi_x)
                ys[i] = _clamp(ys[i] + ny * overlap, lo_y, hi_y)
            if not pinned[j]:
                xs[j] = _clamp(xs[j] - nx * overlap, lo_x, hi_x)
                ys[j] = _clamp(ys[j] - ny * overlap, lo_y, hi_y)


def _clamp(value: float, lo: float, hi: float) -> float:
    return lo if value < lo else hi if value > hi else value
