"""Graph Data Models.

Nodes, edges, and the enums that type them.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class EdgeType(str, Enum):
    REFERRAL = "referral"
    RECRUIT = "recruit"
    CO_ATTENDANCE = "co-attendance"
    COMMUNICATION = "communication"
    NOTE_MENTION = "note-mention"
    GHOST_MENTION = "ghost-mention"
    DEDUCED_FAMILY = "deduced-family"
    SHARED_CONTEXT = "shared-context"


class HealthLevel(str, Enum):
    HEALTHY = "healthy"
    COOLING = "cooling"
    AT_RISK = "at-risk"
    COLD = "cold"
    UNKNOWN = "unknown"  # ghosts only


class Direction(str, Enum):
    OUTBOUND = "outbound"  # user -> contact
    INBOUND = "inbound"    # contact -> user
    BALANCED = "balanced"


class GraphStatus(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    READY = "ready"
    FAILED = "failed"


# Lower = higher priority when picking the colour role.
ROLE_PRIORITY: dict[str, int] = {
    "Client": 0,
    "Applicant": 1,
    "Agent": 2,
    "Lead": 3,
    "External Agent": 4,
    "Referral Partner": 5,
    "Vendor": 6,
    "Prospect": 7,
}


def primary_role(badges) -> Optional[str]:
    """Return the highest-priority role from a collection of badges."""
    if not badges:
        return None
    return min(sorted(badges), key=lambda b: ROLE_PRIORITY.get(b, 99))


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


@dataclass
class GraphNode:
    """A person (or ghost) in the relationship graph."""
    id: str
    display_name: str
    role_badges: frozenset[str] = frozenset()
    primary_role: Optional[str] = None
    pipeline_stage: Optional[str] = None
    relationship_health: HealthLevel = HealthLevel.HEALTHY
    production_value: float = 0.0
    is_ghost: bool = False
    is_orphaned: bool = False
    top_outcome: Optional[str] = None
    photo_thumbnail: Optional[bytes] = None
    # Layout state, owned by the layout engine / cache
    position: Optional[Point] = None
    is_pinned: bool = False

    def has_position(self) -> bool:
        return self.position is not None and self.position.is_finite()

    def copy(self) -> "GraphNode":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "roles": sorted(self.role_badges),
            "primary_role": self.primary_role,
            "pipeline_stage": self.pipeline_stage,
            "health": self.relationship_health.value,
            "production": self.production_value,
            "ghost": self.is_ghost,
            "orphaned": self.is_orphaned,
            "top_outcome": self.top_outcome,
            "x": self.position.x if self.position else None,
            "y": self.position.y if self.position else None,
            "pinned": self.is_pinned,
        }


@dataclass
class GraphEdge:
    """One aggregated relation between two distinct nodes."""
    source_id: str
    target_id: str
    edge_type: EdgeType
    weight: float = 1.0
    label: Optional[str] = None
    is_reciprocal: bool = True
    direction: Optional[Direction] = None
    last_contact: Optional[str] = None
    deduced_relation_id: Optional[str] = None
    is_confirmed: bool = False
    meta: dict = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, EdgeType]:
        return edge_key(self.source_id, self.target_id, self.edge_type)

    def copy(self) -> "GraphEdge":
        return replace(self, meta=dict(self.meta))

    def to_dict(self) -> dict:
        return {
            "source": self.source_id,
            "target": self.target_id,
            "type": self.edge_type.value,
            "weight": self.weight,
            "label": self.label,
            "reciprocal": self.is_reciprocal,
            "direction": self.direction.value if self.direction else None,
            "last_contact": self.last_contact,
            "deduced_relation_id": self.deduced_relation_id,
            "confirmed": self.is_confirmed,
        }


def edge_key(a: str, b: str, edge_type: EdgeType) -> tuple[str, str, EdgeType]:
    """Order-independent key for an edge: sorted endpoints plus type."""
    lo, hi = (a, b) if a <= b else (b, a)
    return lo, hi, edge_type
