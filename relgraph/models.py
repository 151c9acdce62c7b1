"""
RELGRAPH v1.0 · Serialized Models.
Pydantic models for everything that crosses a persistence or file boundary:
the layout cache snapshot and the JSON dataset consumed by the CLI.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ─── Layout Cache ────────────────────────────────────────────────────


class LayoutCacheEntry(BaseModel):
    id: str
    x: float
    y: float
    is_pinned: bool = False


class LayoutSnapshot(BaseModel):
    timestamp: float = Field(..., description="Epoch seconds when the snapshot was taken")
    entries: list[LayoutCacheEntry] = Field(default_factory=list)


# ─── Dataset (collaborator records as JSON) ──────────────────────────


class _Identified(BaseModel):
    id: str

    @field_validator("id")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Must not be empty or whitespace only")
        return v


class PersonModel(_Identified):
    display_name: str
    role_badges: list[str] = Field(default_factory=list)
    decay_risk: str = "none"
    referred_by: Optional[str] = None
    is_archived: bool = False
    is_me: bool = False


class ContextModel(_Identified):
    kind: str
    participant_ids: list[str] = Field(default_factory=list)


class EvidenceModel(_Identified):
    source: str
    linked_people: list[str] = Field(default_factory=list)
    occurred_at: str = ""
    direction: Optional[str] = None


class MentionModel(BaseModel):
    name: str
    role: Optional[str] = None
    matched_person_id: Optional[str] = None


class NoteModel(_Identified):
    linked_people: list[str] = Field(default_factory=list)
    mentions: list[MentionModel] = Field(default_factory=list)


class RecruitingStageModel(BaseModel):
    person_id: str
    stage: str


class ProductionModel(BaseModel):
    person_id: str
    annual_premium: float = Field(0.0, ge=0.0)
    status: str = "submitted"


class OutcomeModel(BaseModel):
    person_id: str
    title: str
    priority: float = 0.0


class DeducedRelationModel(_Identified):
    person_a_id: str
    person_b_id: str
    relation_type: str
    source_label: str
    is_confirmed: bool = False


class Dataset(BaseModel):
    """A full set of collaborator records, as read from a JSON file."""
    people: list[PersonModel] = Field(default_factory=list)
    contexts: list[ContextModel] = Field(default_factory=list)
    evidence: list[EvidenceModel] = Field(default_factory=list)
    notes: list[NoteModel] = Field(default_factory=list)
    recruiting_stages: list[RecruitingStageModel] = Field(default_factory=list)
    production: list[ProductionModel] = Field(default_factory=list)
    outcomes: list[OutcomeModel] = Field(default_factory=list)
    deduced_relations: list[DeducedRelationModel] = Field(default_factory=list)
