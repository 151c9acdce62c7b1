"""
RELGRAPH v1.0 · In-Memory Repositories.

List-backed collaborator implementations plus a JSON dataset loader.
Used by the CLI and the test-suite; a host application injects its own.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Generic, Iterable, TypeVar

from pydantic import ValidationError

from relgraph.collaborators import (
    Collaborators,
    ContextRecord,
    DeducedRelationRecord,
    EvidenceRecord,
    MentionRecord,
    NoteRecord,
    OutcomeRecord,
    PersonRecord,
    ProductionRecord,
    RecruitingStageRecord,
)
from relgraph.exceptions import CollaboratorReadError, UnknownRelationError
from relgraph.models import Dataset

logger = logging.getLogger("relgraph.repositories")

R = TypeVar("R")


class ListRepository(Generic[R]):
    """Holds records in a list and hands out shallow copies of it."""

    def __init__(self, records: Iterable[R] = ()):
        self.records: list[R] = list(records)

    def fetch_all(self) -> list[R]:
        return list(self.records)

    def add(self, record: R) -> R:
        self.records.append(record)
        return record


class InMemoryPeopleRepository(ListRepository[PersonRecord]):
    pass


class InMemoryContextsRepository(ListRepository[ContextRecord]):
    pass


class InMemoryEvidenceRepository(ListRepository[EvidenceRecord]):
    pass


class InMemoryNotesRepository(ListRepository[NoteRecord]):
    def merge_ghost_mentions(self, ghost_name: str, person_id: str) -> int:
        """Resolve every unmatched mention of ``ghost_name``. Returns notes touched."""
        target = ghost_name.strip()
        affected = 0
        for note in self.records:
            touched = False
            for mention in note.mentions:
                if mention.matched_person_id is None and mention.name.strip() == target:
                    mention.matched_person_id = person_id
                    touched = True
            affected += touched
        return affected


class InMemoryPipelineRepository(ListRepository[RecruitingStageRecord]):
    def fetch_all_recruiting_stages(self) -> list[RecruitingStageRecord]:
        return self.fetch_all()


class InMemoryProductionRepository(ListRepository[ProductionRecord]):
    pass


class InMemoryOutcomeRepository(ListRepository[OutcomeRecord]):
    def fetch_active(self) -> list[OutcomeRecord]:
        return self.fetch_all()


class InMemoryDeducedRelationRepository(ListRepository[DeducedRelationRecord]):
    def confirm(self, relation_id: str) -> None:
        for relation in self.records:
            if relation.id == relation_id:
                relation.is_confirmed = True
                logger.info("Confirmed deduced relation %s", relation_id)
                return
        raise UnknownRelationError(f"Deduced relation {relation_id} not found")


def in_memory_collaborators(
    people: Iterable[PersonRecord] = (),
    contexts: Iterable[ContextRecord] = (),
    evidence: Iterable[EvidenceRecord] = (),
    notes: Iterable[NoteRecord] = (),
    recruiting_stages: Iterable[RecruitingStageRecord] = (),
    production: Iterable[ProductionRecord] = (),
    outcomes: Iterable[OutcomeRecord] = (),
    deduced_relations: Iterable[DeducedRelationRecord] = (),
) -> Collaborators:
    return Collaborators(
        people=InMemoryPeopleRepository(people),
        contexts=InMemoryContextsRepository(contexts),
        evidence=InMemoryEvidenceRepository(evidence),
        notes=InMemoryNotesRepository(notes),
        pipeline=InMemoryPipelineRepository(recruiting_stages),
        production=InMemoryProductionRepository(production),
        outcomes=InMemoryOutcomeRepository(outcomes),
        deduced_relations=InMemoryDeducedRelationRepository(deduced_relations),
    )


def load_dataset(path: str | Path) -> Collaborators:
    """Read a JSON dataset file into in-memory collaborators."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        dataset = Dataset.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise CollaboratorReadError(f"Cannot load dataset {path}: {e}") from e

    return in_memory_collaborators(
        people=[PersonRecord(**p.model_dump()) for p in dataset.people],
        contexts=[ContextRecord(**c.model_dump()) for c in dataset.contexts],
        evidence=[EvidenceRecord(**e.model_dump()) for e in dataset.evidence],
        notes=[
            NoteRecord(
                id=n.id,
                linked_people=list(n.linked_people),
                mentions=[MentionRecord(**m.model_dump()) for m in n.mentions],
            )
            for n in dataset.notes
        ],
        recruiting_stages=[RecruitingStageRecord(**r.model_dump()) for r in dataset.recruiting_stages],
        production=[ProductionRecord(**p.model_dump()) for p in dataset.production],
        outcomes=[OutcomeRecord(**o.model_dump()) for o in dataset.outcomes],
        deduced_relations=[DeducedRelationRecord(**d.model_dump()) for d in dataset.deduced_relations],
    )


def dump_dataset(collaborators: Collaborators, path: str | Path) -> None:
    """Write in-memory collaborators back to a JSON dataset file."""
    people = []
    for p in collaborators.people.fetch_all():
        record = asdict(p)
        record.pop("photo_thumbnail", None)
        people.append(record)
    payload = {
        "people": people,
        "contexts": [asdict(c) for c in collaborators.contexts.fetch_all()],
        "evidence": [asdict(e) for e in collaborators.evidence.fetch_all()],
        "notes": [asdict(n) for n in collaborators.notes.fetch_all()],
        "recruiting_stages": [asdict(r) for r in collaborators.pipeline.fetch_all_recruiting_stages()],
        "production": [asdict(p) for p in collaborators.production.fetch_all()],
        "outcomes": [asdict(o) for o in collaborators.outcomes.fetch_active()],
        "deduced_relations": [asdict(d) for d in collaborators.deduced_relations.fetch_all()],
    }
    dataset = Dataset.model_validate(payload)
    Path(path).write_text(dataset.model_dump_json(indent=2), encoding="utf-8")
