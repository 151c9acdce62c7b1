"""
RELGRAPH v1.0 · Engine Tests.

Build lifecycle, cache reuse, supersession, cancellation, failure
handling, incremental updates and the filtered projection.
"""

import asyncio
import random

import pytest

from relgraph.cache import LayoutCache, MemorySettingsStore, SQLiteSettingsStore
from relgraph.collaborators import ContextRecord, EvidenceRecord, NoteRecord, PersonRecord
from relgraph.engine import RelationshipGraphEngine
from relgraph.exceptions import GraphBuildError
from relgraph.graph import EdgeType, GraphStatus, LayoutParams, Point
from relgraph.repositories import in_memory_collaborators

VIEWPORT = (1200.0, 800.0)


def sample_collaborators():
    return in_memory_collaborators(
        people=[
            PersonRecord("ann", "Ann", ["Client"]),
            PersonRecord("ben", "Ben", ["Agent"], referred_by="ann"),
            PersonRecord("cy", "Cy", ["Prospect"]),
            PersonRecord("dee", "Dee", ["Vendor"]),
        ],
        contexts=[ContextRecord("h1", "household", ["ann", "ben"])],
        evidence=[
            EvidenceRecord("e1", "calendar", ["ann", "cy"]),
            EvidenceRecord("e2", "mail", ["ben", "cy"], "2026-05-01T10:00:00+00:00", "outbound"),
        ],
        notes=[NoteRecord("n1", ["ann", "dee"])],
    )


def make_engine(collaborators=None, cache=None, iterations=40):
    return RelationshipGraphEngine(
        collaborators or sample_collaborators(),
        layout_cache=cache or LayoutCache(MemorySettingsStore()),
        layout_params=LayoutParams(iterations=iterations),
        rng=random.Random(42),
    )


def positions(engine):
    return {n.id: n.position for n in engine.all_nodes}


class TestBuild:
    @pytest.mark.asyncio
    async def test_build_reaches_ready(self):
        engine = make_engine()
        assert engine.status == GraphStatus.IDLE
        await engine.build_graph(VIEWPORT)

        assert engine.status == GraphStatus.READY
        assert engine.progress == "4 people, 5 connections"
        assert engine.last_computed_at is not None
        assert not engine.is_building
        assert len(engine.nodes) == 4
        assert all(n.has_position() for n in engine.nodes)

    @pytest.mark.asyncio
    async def test_empty_collaborators_build_empty_graph(self):
        engine = make_engine(in_memory_collaborators())
        await engine.build_graph(VIEWPORT)
        assert engine.status == GraphStatus.READY
        assert engine.nodes == []
        assert engine.progress == "0 people, 0 connections"

    @pytest.mark.asyncio
    async def test_second_build_restores_identical_positions(self):
        cache = LayoutCache(MemorySettingsStore())
        first = make_engine(cache=cache)
        await first.build_graph(VIEWPORT)

        second = make_engine(cache=cache)
        second.rng = random.Random(999)
        await second.build_graph(VIEWPORT)
        assert positions(second) == positions(first)

    @pytest.mark.asyncio
    async def test_partial_restore_places_only_new_nodes(self):
        collaborators = sample_collaborators()
        cache = LayoutCache(MemorySettingsStore())
        engine = make_engine(collaborators, cache)
        await engine.build_graph(VIEWPORT)
        before = positions(engine)

        collaborators.people.add(PersonRecord("eve", "Eve"))
        await engine.build_graph(VIEWPORT)
        after = positions(engine)

        assert {k: after[k] for k in before} == before
        assert after["eve"] is not None and after["eve"].is_finite()
        assert [e.id for e in cache.load_layout_cache().entries].count("eve") == 1

    @pytest.mark.asyncio
    async def test_invalidated_cache_forces_fresh_layout(self):
        cache = LayoutCache(MemorySettingsStore())
        engine = make_engine(cache=cache)
        await engine.build_graph(VIEWPORT)
        before = positions(engine)

        engine.invalidate_cache()
        engine.rng = random.Random(7)
        await engine.build_graph(VIEWPORT)
        assert positions(engine) != before

    @pytest.mark.asyncio
    async def test_rebuild_if_stale_skips_while_building(self):
        engine = make_engine()
        first = asyncio.create_task(engine.build_graph(VIEWPORT))
        await asyncio.sleep(0)
        await engine.rebuild_if_stale(VIEWPORT)
        assert engine.is_building
        await first
        assert engine.status == GraphStatus.READY

    @pytest.mark.asyncio
    async def test_rebuild_if_stale(self):
        engine = make_engine()
        await engine.rebuild_if_stale(VIEWPORT)
        assert engine.status == GraphStatus.READY


class TestFailure:
    @pytest.mark.asyncio
    async def test_failed_build_keeps_previous_graph(self, monkeypatch):
        engine = make_engine()
        await engine.build_graph(VIEWPORT)
        previous = engine.all_nodes

        def explode(inputs):
            raise GraphBuildError("boom")

        monkeypatch.setattr("relgraph.engine.build_graph", explode)
        await engine.build_graph(VIEWPORT)

        assert engine.status == GraphStatus.FAILED
        assert engine.progress == "Error: boom"
        assert engine.all_nodes == previous

    @pytest.mark.asyncio
    async def test_failing_collaborator_does_not_fail_build(self):
        class Broken:
            def fetch_all(self):
                raise OSError("unreadable")

        collaborators = sample_collaborators()
        collaborators.evidence = Broken()
        engine = make_engine(collaborators)
        await engine.build_graph(VIEWPORT)

        assert engine.status == GraphStatus.READY
        types = {e.edge_type for e in engine.all_edges}
        assert EdgeType.CO_ATTENDANCE not in types
        assert EdgeType.COMMUNICATION not in types
        assert EdgeType.SHARED_CONTEXT in types

    @pytest.mark.asyncio
    async def test_unreadable_settings_database_does_not_fail_build(self, tmp_path):
        db = tmp_path / "settings.db"
        db.write_bytes(b"this is not a database" * 64)
        store = SQLiteSettingsStore(db)
        try:
            engine = make_engine(cache=LayoutCache(store))
            await engine.build_graph(VIEWPORT)
        finally:
            store.close()

        assert engine.status == GraphStatus.READY
        assert all(n.has_position() for n in engine.all_nodes)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_superseded_build_never_publishes(self):
        engine = make_engine()
        published = []
        original = engine._publish

        def counting(nodes, edges):
            published.append(len(nodes))
            original(nodes, edges)

        engine._publish = counting

        first = asyncio.create_task(engine.build_graph(VIEWPORT))
        await asyncio.sleep(0)
        await engine.build_graph(VIEWPORT)
        await first

        assert published == [4]
        assert engine.status == GraphStatus.READY

    @pytest.mark.asyncio
    async def test_cancel_restores_previous_status(self):
        engine = make_engine()
        task = asyncio.create_task(engine.build_graph(VIEWPORT))
        await asyncio.sleep(0)
        assert engine.status == GraphStatus.COMPUTING

        engine.cancel_build()
        await task
        assert engine.status == GraphStatus.IDLE
        assert engine.progress == ""
        assert engine.all_nodes == []
        assert not engine.is_building

    @pytest.mark.asyncio
    async def test_cancel_after_ready_returns_to_ready(self):
        engine = make_engine()
        await engine.build_graph(VIEWPORT)
        graph = engine.all_nodes

        task = asyncio.create_task(engine.build_graph(VIEWPORT))
        await asyncio.sleep(0)
        engine.cancel_build()
        await task
        assert engine.status == GraphStatus.READY
        assert engine.all_nodes == graph

    @pytest.mark.asyncio
    async def test_cancelling_the_caller_restores_status(self):
        engine = make_engine()
        caller = asyncio.create_task(engine.build_graph(VIEWPORT))
        await asyncio.sleep(0)
        assert engine.status == GraphStatus.COMPUTING

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        while engine.is_building:
            await asyncio.sleep(0.01)
        assert engine.status == GraphStatus.IDLE
        assert engine.progress == ""

        # A stale status must not block the next rebuild
        await engine.rebuild_if_stale(VIEWPORT)
        assert engine.status == GraphStatus.READY

    def test_cancel_without_build_is_noop(self):
        engine = make_engine()
        engine.cancel_build()
        assert engine.status == GraphStatus.IDLE


class TestCommands:
    @pytest.mark.asyncio
    async def test_returned_graph_is_a_copy(self):
        engine = make_engine()
        await engine.build_graph(VIEWPORT)
        node = engine.nodes[0]
        node.display_name = "Mallory"
        node.position = Point(-1, -1)
        edge = engine.edges[0]
        edge.meta["tampered"] = True

        assert engine.nodes[0].display_name != "Mallory"
        assert engine.nodes[0].position != Point(-1, -1)
        assert "tampered" not in engine.edges[0].meta

    @pytest.mark.asyncio
    async def test_update_node_keeps_position_and_edges(self):
        collaborators = sample_collaborators()
        engine = make_engine(collaborators)
        await engine.build_graph(VIEWPORT)
        before = engine.get_node("cy")
        edges_before = engine.all_edges

        collaborators.people.fetch_all()[2].display_name = "Cyrus"
        collaborators.people.fetch_all()[2].role_badges = ["Client"]
        assert engine.update_node("cy") is True

        after = engine.get_node("cy")
        assert after.display_name == "Cyrus"
        assert after.primary_role == "Client"
        assert after.position == before.position
        assert engine.all_edges == edges_before

    @pytest.mark.asyncio
    async def test_update_unknown_node(self):
        engine = make_engine()
        await engine.build_graph(VIEWPORT)
        assert engine.update_node("nobody") is False

    @pytest.mark.asyncio
    async def test_pin_survives_rebuild(self):
        cache = LayoutCache(MemorySettingsStore())
        engine = make_engine(cache=cache)
        await engine.build_graph(VIEWPORT)

        assert engine.pin_node("dee", 42.0, 24.0) is True
        await engine.build_graph(VIEWPORT)
        dee = engine.get_node("dee")
        assert dee.is_pinned
        assert dee.position == Point(42.0, 24.0)

        assert engine.unpin_node("dee") is True
        assert not engine.get_node("dee").is_pinned
        assert engine.pin_node("nobody", 1, 1) is False

    @pytest.mark.asyncio
    async def test_filters_and_focus(self):
        engine = make_engine()
        await engine.build_graph(VIEWPORT)

        engine.filters.role_filters = {"Client", "Agent"}
        engine.apply_filters()
        assert {n.id for n in engine.nodes} == {"ann", "ben"}
        assert len(engine.all_nodes) == 4

        engine.filters.role_filters = set()
        engine.activate_focus_mode("deducedRelationships")
        assert engine.nodes == []

        engine.clear_focus_mode()
        assert len(engine.nodes) == 4
