"""Relation Input Records.

Small, deduplicated records produced by the gatherer and consumed by the
builder. Pair records are always stored with sorted endpoints.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from relgraph.graph.types import Direction, HealthLevel


@dataclass(frozen=True)
class PersonGraphInput:
    id: str
    display_name: str
    role_badges: frozenset[str] = frozenset()
    relationship_health: HealthLevel = HealthLevel.HEALTHY
    production_value: float = 0.0
    photo_thumbnail: Optional[bytes] = None
    top_outcome: Optional[str] = None
    pipeline_stage: Optional[str] = None


@dataclass(frozen=True)
class ContextGraphInput:
    context_id: str
    context_type: str
    participant_ids: tuple[str, ...]


@dataclass(frozen=True)
class ReferralLink:
    referrer_id: str
    referred_id: str


@dataclass(frozen=True)
class RecruitLink:
    recruiter_id: str
    recruit_id: str
    stage: str


@dataclass(frozen=True)
class CoAttendancePair:
    person_a: str
    person_b: str
    meeting_count: int


@dataclass(frozen=True)
class CommLink:
    person_a: str
    person_b: str
    evidence_count: int
    last_contact: Optional[str] = None
    direction: Direction = Direction.BALANCED


@dataclass(frozen=True)
class MentionPair:
    person_a: str
    person_b: str
    co_mention_count: int


@dataclass(frozen=True)
class GhostMention:
    name: str
    mentioned_by: frozenset[str]
    suggested_role: Optional[str] = None


@dataclass(frozen=True)
class DeducedFamilyLink:
    person_a_id: str
    person_b_id: str
    relation_type: str
    label: str
    is_confirmed: bool
    deduced_relation_id: str


@dataclass
class GraphInputs:
    """Everything the builder needs, as gathered in one pass."""
    people: list[PersonGraphInput] = field(default_factory=list)
    contexts: list[ContextGraphInput] = field(default_factory=list)
    referrals: list[ReferralLink] = field(default_factory=list)
    recruits: list[RecruitLink] = field(default_factory=list)
    co_attendance: list[CoAttendancePair] = field(default_factory=list)
    communication: list[CommLink] = field(default_factory=list)
    note_mentions: list[MentionPair] = field(default_factory=list)
    ghost_mentions: list[GhostMention] = field(default_factory=list)
    deduced_family: list[DeducedFamilyLink] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "people": len(self.people),
            "contexts": len(self.contexts),
            "referrals": len(self.referrals),
            "recruits": len(self.recruits),
            "co_attendance": len(self.co_attendance),
            "communication": len(self.communication),
            "note_mentions": len(self.note_mentions),
            "ghost_mentions": len(self.ghost_mentions),
            "deduced_family": len(self.deduced_family),
        }
