"""
RELGRAPH v1.0 · Collaborator Contracts.

Records handed to the engine by the surrounding application, and the
repository protocols it reads them through. Storage is not our concern:
any object satisfying these protocols can be injected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

# Evidence sources that count as communication (everything except calendar).
CALENDAR_SOURCE = "calendar"
COMMUNICATION_SOURCES = frozenset({"mail", "imessage", "phone_call", "facetime", "message"})

# Context kinds that participate in the graph.
GRAPH_CONTEXT_KINDS = frozenset({"household", "business"})


@dataclass
class PersonRecord:
    id: str
    display_name: str
    role_badges: list[str] = field(default_factory=list)
    decay_risk: str = "none"  # none | low | moderate | high | critical
    photo_thumbnail: Optional[bytes] = None
    referred_by: Optional[str] = None
    is_archived: bool = False
    is_me: bool = False


@dataclass
class ContextRecord:
    id: str
    kind: str
    participant_ids: list[str] = field(default_factory=list)


@dataclass
class EvidenceRecord:
    """A calendar event or a communication item with its linked people."""
    id: str
    source: str
    linked_people: list[str] = field(default_factory=list)
    occurred_at: str = ""
    direction: Optional[str] = None  # outbound | inbound


@dataclass
class MentionRecord:
    name: str
    role: Optional[str] = None
    matched_person_id: Optional[str] = None


@dataclass
class NoteRecord:
    id: str
    linked_people: list[str] = field(default_factory=list)
    mentions: list[MentionRecord] = field(default_factory=list)


@dataclass
class RecruitingStageRecord:
    person_id: str
    stage: str


@dataclass
class ProductionRecord:
    person_id: str
    annual_premium: float
    status: str = "submitted"


@dataclass
class OutcomeRecord:
    person_id: str
    title: str
    priority: float = 0.0


@dataclass
class DeducedRelationRecord:
    id: str
    person_a_id: str
    person_b_id: str
    relation_type: str
    source_label: str
    is_confirmed: bool = False


# ─── Repository Protocols ────────────────────────────────────────────


@runtime_checkable
class PeopleRepository(Protocol):
    def fetch_all(self) -> list[PersonRecord]: ...


@runtime_checkable
class ContextsRepository(Protocol):
    def fetch_all(self) -> list[ContextRecord]: ...


@runtime_checkable
class EvidenceRepository(Protocol):
    def fetch_all(self) -> list[EvidenceRecord]: ...


@runtime_checkable
class NotesRepository(Protocol):
    def fetch_all(self) -> list[NoteRecord]: ...

    def merge_ghost_mentions(self, ghost_name: str, person_id: str) -> int:
        """Point every unresolved mention named ``ghost_name`` at ``person_id``."""
        ...


@runtime_checkable
class PipelineRepository(Protocol):
    def fetch_all_recruiting_stages(self) -> list[RecruitingStageRecord]: ...


@runtime_checkable
class ProductionRepository(Protocol):
    def fetch_all(self) -> list[ProductionRecord]: ...


@runtime_checkable
class OutcomeRepository(Protocol):
    def fetch_active(self) -> list[OutcomeRecord]: ...


@runtime_checkable
class DeducedRelationRepository(Protocol):
    def fetch_all(self) -> list[DeducedRelationRecord]: ...

    def confirm(self, relation_id: str) -> None: ...


@dataclass
class Collaborators:
    """Everything the engine reads from, injected as one bundle."""
    people: PeopleRepository
    contexts: ContextsRepository
    evidence: EvidenceRepository
    notes: NotesRepository
    pipeline: PipelineRepository
    production: ProductionRepository
    outcomes: OutcomeRepository
    deduced_relations: DeducedRelationRepository
