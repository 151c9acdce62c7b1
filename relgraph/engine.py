"""
RELGRAPH v1.0 · Graph Engine.

The single owner of the relationship graph. Drives one
gather -> build -> (cache restore | layout) pipeline at a time, holds the
full and filtered graph, and exposes the commands the UI layer calls.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import replace
from typing import Optional

from relgraph import config
from relgraph.cache import LayoutCache, MemorySettingsStore
from relgraph.collaborators import Collaborators
from relgraph.exceptions import PersonNotFound
from relgraph.gather import RelationGatherer
from relgraph.graph.builder import build_graph, refresh_node
from relgraph.graph.filters import FilterState, apply_filters
from relgraph.graph.layout import CancellationToken, LayoutParams, layout_graph
from relgraph.graph.types import GraphEdge, GraphNode, GraphStatus, Point
from relgraph.temporal import now_iso

logger = logging.getLogger("relgraph.engine")


class RelationshipGraphEngine:
    """Relationship graph coordinator.

    Usage:
        engine = RelationshipGraphEngine(collaborators, LayoutCache(SQLiteSettingsStore()))
        await engine.build_graph((1200, 800))
        engine.filters.show_ghosts = False
        engine.apply_filters()
        visible = engine.nodes
    """

    def __init__(
        self,
        collaborators: Collaborators,
        layout_cache: Optional[LayoutCache] = None,
        show_self: Optional[bool] = None,
        layout_params: Optional[LayoutParams] = None,
        rng: Optional[random.Random] = None,
    ):
        self.collaborators = collaborators
        self.cache = layout_cache or LayoutCache(MemorySettingsStore())
        self.gatherer = RelationGatherer(
            collaborators, show_self=config.SHOW_SELF if show_self is None else show_self
        )
        self.layout_params = layout_params or LayoutParams(
            iterations=config.LAYOUT_ITERATIONS,
            check_every=config.CANCEL_CHECK_EVERY,
            barnes_hut_threshold=config.BARNES_HUT_THRESHOLD,
        )
        self.rng = rng or random.Random()

        # Observable state
        self.status = GraphStatus.IDLE
        self.progress = ""
        self.last_computed_at: Optional[str] = None
        self.selected_node_id: Optional[str] = None
        self.hovered_node_id: Optional[str] = None
        self.filters = FilterState()

        self._all_nodes: list[GraphNode] = []
        self._all_edges: list[GraphEdge] = []
        self._visible_nodes: list[GraphNode] = []
        self._visible_edges: list[GraphEdge] = []
        self._build_task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None
        self._status_before_build = GraphStatus.IDLE

    # ─── Read-only views (copies, never live references) ─────────────

    @property
    def nodes(self) -> list[GraphNode]:
        return [n.copy() for n in self._visible_nodes]

    @property
    def edges(self) -> list[GraphEdge]:
        return [e.copy() for e in self._visible_edges]

    @property
    def all_nodes(self) -> list[GraphNode]:
        return [n.copy() for n in self._all_nodes]

    @property
    def all_edges(self) -> list[GraphEdge]:
        return [e.copy() for e in self._all_edges]

    @property
    def is_building(self) -> bool:
        return self._build_task is not None and not self._build_task.done()

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        node = self._find(node_id)
        return node.copy() if node else None

    # ─── Build ───────────────────────────────────────────────────────

    async def build_graph(self, viewport: Optional[tuple[float, float]] = None) -> None:
        """Build the complete graph, cancelling any build already in flight."""
        if not self.is_building:
            self._status_before_build = self.status
        self.cancel_build(restore_status=False)

        token = CancellationToken()
        self._token = token
        self.status = GraphStatus.COMPUTING
        self.progress = "Gathering data..."

        task = asyncio.create_task(self._run_build(viewport or config.VIEWPORT, token))
        self._build_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The caller stopped waiting; abandon this build unless a newer one replaced it
            if self._build_task is task:
                self.cancel_build()
            else:
                token.cancel()
                task.cancel()
            raise

    def cancel_build(self, restore_status: bool = True) -> None:
        """Cancel the in-flight build, if any. Never reported as failure."""
        if self._token is not None:
            self._token.cancel()
        if self._build_task is not None and not self._build_task.done():
            self._build_task.cancel()
            if restore_status:
                self.status = self._status_before_build
                self.progress = ""
                logger.info("Graph build cancelled")

    async def rebuild_if_stale(self, viewport: Optional[tuple[float, float]] = None) -> None:
        if self.is_building:
            return
        await self.build_graph(viewport)

    async def _run_build(self, viewport: tuple[float, float], token: CancellationToken) -> None:
        try:
            inputs = await asyncio.to_thread(self.gatherer.gather, lambda: token.cancelled)
            if inputs is None or token.cancelled:
                return

            self.progress = "Building graph..."
            result = await asyncio.to_thread(build_graph, inputs)
            if token.cancelled:
                return

            nodes, edges = result.nodes, result.edges
            clusters = [ctx.participant_ids for ctx in inputs.contexts]

            if self.cache.restore(nodes):
                self.progress = "Restored from cache..."
                fresh = [n for n in nodes if not n.has_position()]
                if fresh:
                    # Place only the new nodes; restored ones stay where they were
                    frozen = [n if not n.has_position() else replace(n, is_pinned=True) for n in nodes]
                    placed = await asyncio.to_thread(
                        layout_graph, frozen, edges, viewport, clusters, self.layout_params, token, self.rng
                    )
                    if not placed.completed or token.cancelled:
                        return
                    for node in fresh:
                        node.position = placed.positions[node.id]
                    self.cache.save(nodes)
            else:
                self.progress = "Computing layout..."
                laid_out = await asyncio.to_thread(
                    layout_graph, nodes, edges, viewport, clusters, self.layout_params, token, self.rng
                )
                if not laid_out.completed or token.cancelled:
                    return
                for node in nodes:
                    node.position = laid_out.positions[node.id]
                self.cache.save(nodes)

            if token.cancelled:
                return
            self._publish(nodes, edges)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if token.cancelled:
                return
            self.status = GraphStatus.FAILED
            self.progress = f"Error: {e}"
            logger.error("Graph build failed: %s", e, exc_info=True)

    def _publish(self, nodes: list[GraphNode], edges: list[GraphEdge]) -> None:
        self._all_nodes = nodes
        self._all_edges = edges
        self.last_computed_at = now_iso()
        self.apply_filters()
        self.status = GraphStatus.READY
        self.progress = f"{len(nodes)} people, {len(edges)} connections"
        logger.info("Graph ready: %d nodes, %d edges", len(nodes), len(edges))

    # ─── Structural commands ─────────────────────────────────────────

    async def merge_ghost(
        self, ghost_name: str, person_id: str, viewport: Optional[tuple[float, float]] = None
    ) -> int:
        """Resolve a ghost into a real person, then rebuild from scratch."""
        affected = 0
        try:
            if not any(p.id == person_id for p in self.collaborators.people.fetch_all()):
                raise PersonNotFound(f"Person {person_id} not found")
            affected = self.collaborators.notes.merge_ghost_mentions(ghost_name, person_id)
            logger.info("Ghost merge: %r -> person %s, %d note(s) updated", ghost_name, person_id, affected)
        except Exception as e:
            logger.error("Ghost merge failed: %s", e)

        self.invalidate_cache()
        await self.build_graph(viewport)
        return affected

    async def confirm_deduced_relation(
        self, relation_id: str, viewport: Optional[tuple[float, float]] = None
    ) -> bool:
        """Confirm a deduced relation upstream and rebuild to refresh its edge."""
        try:
            self.collaborators.deduced_relations.confirm(relation_id)
        except Exception as e:
            logger.error("Failed to confirm deduced relation: %s", e)
            return False
        self.invalidate_cache()
        await self.build_graph(viewport)
        return True

    def invalidate_cache(self) -> None:
        self.cache.invalidate()

    # ─── Incremental updates ─────────────────────────────────────────

    def update_node(self, person_id: str) -> bool:
        """Refresh one node's display attributes without touching edges or layout."""
        if self.is_building:
            logger.debug("Skipping node update for %s: build in progress", person_id)
            return False
        idx = next((i for i, n in enumerate(self._all_nodes) if n.id == person_id), None)
        if idx is None:
            return False
        try:
            person = self.gatherer.person_input(person_id)
        except Exception as e:
            logger.error("Incremental node update failed: %s", e)
            return False
        if person is None:
            return False
        self._all_nodes[idx] = refresh_node(self._all_nodes[idx], person)
        self.apply_filters()
        logger.info("Incrementally updated node for person %s", person_id)
        return True

    def pin_node(self, node_id: str, x: float, y: float) -> bool:
        """Fix a node at a user-chosen position and remember it."""
        node = self._find(node_id)
        if node is None or self.is_building:
            return False
        node.position = Point(x, y)
        node.is_pinned = True
        self.cache.save(self._all_nodes)
        return True

    def unpin_node(self, node_id: str) -> bool:
        node = self._find(node_id)
        if node is None or self.is_building:
            return False
        node.is_pinned = False
        self.cache.save(self._all_nodes)
        return True

    # ─── Filtering ───────────────────────────────────────────────────

    def apply_filters(self) -> None:
        """Recompute the visible projection. Cheap; never rebuilds."""
        self._visible_nodes, self._visible_edges = apply_filters(
            self._all_nodes, self._all_edges, self.filters
        )

    def activate_focus_mode(self, mode: str) -> None:
        self.filters.focus_mode = mode
        self.apply_filters()

    def clear_focus_mode(self) -> None:
        self.filters.focus_mode = None
        self.apply_filters()

    def _find(self, node_id: str) -> Optional[GraphNode]:
        return next((n for n in self._all_nodes if n.id == node_id), None)
