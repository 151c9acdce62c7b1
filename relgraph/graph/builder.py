"""Graph Builder.

Fuses person inputs and relation-input records into one canonical node
set and one edge set. Pure: no I/O, no shared state, safe to run while a
previous result is being filtered.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, replace
from typing import Optional

from relgraph.exceptions import GraphBuildError
from relgraph.graph.inputs import GraphInputs, PersonGraphInput
from relgraph.graph.types import (
    Direction,
    EdgeType,
    GraphEdge,
    GraphNode,
    HealthLevel,
    edge_key,
    primary_role,
)
from relgraph.temporal import parse_iso

logger = logging.getLogger("relgraph.graph")

GHOST_ID_PREFIX = "ghost:"


@dataclass
class GraphBuildResult:
    nodes: list[GraphNode]
    edges: list[GraphEdge]

    def stats(self) -> dict:
        return {
            "nodes": len(self.nodes),
            "edges": len(self.edges),
            "ghosts": sum(1 for n in self.nodes if n.is_ghost),
            "orphans": sum(1 for n in self.nodes if n.is_orphaned),
        }


def ghost_node_id(name: str) -> str:
    """Stable id for a ghost: the same name always hashes to the same node."""
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:20]
    return f"{GHOST_ID_PREFIX}{digest}"


class _EdgeMap:
    """Canonical edge map keyed by (sorted endpoint pair, type)."""

    def __init__(self, node_ids: set[str]):
        self.node_ids = node_ids
        self.edges: dict[tuple[str, str, EdgeType], GraphEdge] = {}
        self.dropped = 0

    def add(self, source: str, target: str, edge_type: EdgeType, weight: float, **attrs) -> Optional[GraphEdge]:
        if source == target or source not in self.node_ids or target not in self.node_ids:
            self.dropped += 1
            return None
        key = edge_key(source, target, edge_type)
        edge = self.edges.get(key)
        if edge is None:
            edge = GraphEdge(source_id=source, target_id=target, edge_type=edge_type, weight=weight, **attrs)
            self.edges[key] = edge
            return edge
        edge.weight += weight
        return edge


def build_graph(inputs: GraphInputs) -> GraphBuildResult:
    """Assemble nodes and aggregated edges from gathered inputs."""
    nodes: dict[str, GraphNode] = {}
    for person in inputs.people:
        if not person.id:
            raise GraphBuildError(f"Person input without id: {person.display_name!r}")
        if person.id in nodes:
            logger.debug("Duplicate person input %s ignored", person.id)
            continue
        nodes[person.id] = _person_node(person)

    # Ghost nodes for names nobody resolved
    ghost_ids: dict[str, str] = {}
    for ghost in sorted(inputs.ghost_mentions, key=lambda g: g.name):
        gid = ghost_node_id(ghost.name)
        if gid in nodes:
            continue
        ghost_ids[ghost.name] = gid
        nodes[gid] = GraphNode(
            id=gid,
            display_name=ghost.name,
            role_badges=frozenset([ghost.suggested_role]) if ghost.suggested_role else frozenset(),
            primary_role=ghost.suggested_role,
            relationship_health=HealthLevel.UNKNOWN,
            is_ghost=True,
        )

    emap = _EdgeMap(set(nodes))

    for ctx in inputs.contexts:
        members = sorted(set(ctx.participant_ids))
        for i, a in enumerate(members):
            for b in members[i + 1:]:
                emap.add(a, b, EdgeType.SHARED_CONTEXT, 1.0, label=ctx.context_type)

    for link in inputs.referrals:
        emap.add(link.referrer_id, link.referred_id, EdgeType.REFERRAL, 1.0,
                 label="referred", is_reciprocal=False)

    for link in inputs.recruits:
        emap.add(link.recruiter_id, link.recruit_id, EdgeType.RECRUIT, 1.0,
                 label=link.stage, is_reciprocal=False)

    for pair in inputs.co_attendance:
        emap.add(pair.person_a, pair.person_b, EdgeType.CO_ATTENDANCE, float(pair.meeting_count))

    for link in inputs.communication:
        edge = emap.add(link.person_a, link.person_b, EdgeType.COMMUNICATION, float(link.evidence_count),
                        last_contact=link.last_contact, direction=link.direction,
                        is_reciprocal=link.direction == Direction.BALANCED)
        if edge is not None and link.last_contact and edge.last_contact != link.last_contact:
            if edge.last_contact is None or parse_iso(link.last_contact) > parse_iso(edge.last_contact):
                edge.last_contact = link.last_contact

    for pair in inputs.note_mentions:
        emap.add(pair.person_a, pair.person_b, EdgeType.NOTE_MENTION, float(pair.co_mention_count))

    for ghost in inputs.ghost_mentions:
        gid = ghost_ids.get(ghost.name)
        if gid is None:
            continue
        for mentioner in sorted(ghost.mentioned_by):
            emap.add(mentioner, gid, EdgeType.GHOST_MENTION, 1.0,
                     label="mentioned", is_reciprocal=False)

    for link in inputs.deduced_family:
        edge = emap.add(link.person_a_id, link.person_b_id, EdgeType.DEDUCED_FAMILY, 1.0,
                        label=link.label, deduced_relation_id=link.deduced_relation_id,
                        is_confirmed=link.is_confirmed, meta={"relation_type": link.relation_type})
        if edge is not None and link.is_confirmed:
            edge.is_confirmed = True

    edges = list(emap.edges.values())
    for edge in edges:
        if edge.edge_type == EdgeType.CO_ATTENDANCE:
            count = int(edge.weight)
            edge.label = "1 meeting" if count == 1 else f"{count} meetings"

    connected: set[str] = set()
    for edge in edges:
        connected.add(edge.source_id)
        connected.add(edge.target_id)
    for node in nodes.values():
        node.is_orphaned = node.id not in connected

    result = GraphBuildResult(nodes=list(nodes.values()), edges=edges)
    if emap.dropped:
        logger.debug("Dropped %d relation inputs with unresolved endpoints", emap.dropped)
    logger.info("Built graph: %d nodes, %d edges", len(result.nodes), len(result.edges))
    return result


def refresh_node(node: GraphNode, person: PersonGraphInput) -> GraphNode:
    """Return ``node`` with display attributes recomputed from ``person``.

    Position, pin state and the orphan flag are carried over untouched.
    """
    return replace(
        node,
        display_name=person.display_name,
        role_badges=person.role_badges,
        primary_role=primary_role(person.role_badges),
        pipeline_stage=person.pipeline_stage,
        relationship_health=person.relationship_health,
        production_value=person.production_value,
        top_outcome=person.top_outcome,
        photo_thumbnail=person.photo_thumbnail,
    )


def _person_node(person: PersonGraphInput) -> GraphNode:
    return GraphNode(
        id=person.id,
        display_name=person.display_name,
        role_badges=person.role_badges,
        primary_role=primary_role(person.role_badges),
        pipeline_stage=person.pipeline_stage,
        relationship_health=person.relationship_health,
        production_value=person.production_value,
        top_outcome=person.top_outcome,
        photo_thumbnail=person.photo_thumbnail,
    )
