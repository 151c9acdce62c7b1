"""
RELGRAPH v1.0 · Relation Input Gatherer.

Reads every collaborator repository once per category and reduces it to
typed, deduplicated relation-input records. A failing repository only
empties its own category; gathering always continues.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from itertools import combinations
from typing import Callable, Iterable, Optional, TypeVar

from relgraph.collaborators import (
    CALENDAR_SOURCE,
    COMMUNICATION_SOURCES,
    GRAPH_CONTEXT_KINDS,
    Collaborators,
    PersonRecord,
)
from relgraph.graph.inputs import (
    CoAttendancePair,
    CommLink,
    ContextGraphInput,
    DeducedFamilyLink,
    GhostMention,
    GraphInputs,
    MentionPair,
    PersonGraphInput,
    RecruitLink,
    ReferralLink,
)
from relgraph.graph.types import Direction, HealthLevel
from relgraph.temporal import parse_iso

logger = logging.getLogger("relgraph.gather")

T = TypeVar("T")

HEALTH_BY_DECAY_RISK: dict[str, HealthLevel] = {
    "none": HealthLevel.HEALTHY,
    "low": HealthLevel.HEALTHY,
    "moderate": HealthLevel.COOLING,
    "high": HealthLevel.AT_RISK,
    "critical": HealthLevel.COLD,
}

DECLINED_STATUS = "declined"


class RelationGatherer:
    """Collects relation inputs from the injected collaborators.

    Categories:
        - people, contexts
        - referral and recruiting links
        - co-attendance, communication and note co-mention pairs
        - ghost mentions and deduced family links
    """

    def __init__(self, collaborators: Collaborators, show_self: bool = False):
        self.repos = collaborators
        self.show_self = show_self

    def gather(self, is_cancelled: Callable[[], bool] = lambda: False) -> Optional[GraphInputs]:
        """Gather every category. Returns None if cancelled between categories."""
        inputs = GraphInputs()
        steps: list[tuple[str, Callable[[], list]]] = [
            ("people", self.gather_people),
            ("contexts", self.gather_contexts),
            ("referrals", self.gather_referrals),
            ("recruits", self.gather_recruits),
            ("co_attendance", self.gather_co_attendance),
            ("communication", self.gather_communication),
            ("note_mentions", self.gather_note_mentions),
            ("ghost_mentions", self.gather_ghost_mentions),
            ("deduced_family", self.gather_deduced_family),
        ]
        for name, step in steps:
            if is_cancelled():
                logger.info("Gathering cancelled before %s", name)
                return None
            setattr(inputs, name, _degrade(name, step, []))
        logger.debug("Gathered inputs: %s", inputs.counts())
        return inputs

    # ─── People & Contexts ───────────────────────────────────────────

    def gather_people(self) -> list[PersonGraphInput]:
        """One input per eligible person (not archived, self only if shown)."""
        people = self.repos.people.fetch_all()
        production, outcomes, stages = self._person_attributes()
        return [
            self._person_input(p, production, outcomes, stages)
            for p in people
            if self._eligible(p)
        ]

    def person_input(self, person_id: str) -> Optional[PersonGraphInput]:
        """Recompute a single person's display attributes (incremental path)."""
        person = next((p for p in self.repos.people.fetch_all() if p.id == person_id), None)
        if person is None or not self._eligible(person):
            return None
        production, outcomes, stages = self._person_attributes()
        return self._person_input(person, production, outcomes, stages)

    def gather_contexts(self) -> list[ContextGraphInput]:
        """Household and business contexts with at least two members."""
        result = []
        for ctx in self.repos.contexts.fetch_all():
            if ctx.kind.lower() not in GRAPH_CONTEXT_KINDS:
                continue
            members = tuple(dict.fromkeys(ctx.participant_ids))
            if len(members) < 2:
                continue
            result.append(ContextGraphInput(ctx.id, ctx.kind.lower(), members))
        return result

    # ─── Lineage ─────────────────────────────────────────────────────

    def gather_referrals(self) -> list[ReferralLink]:
        return [
            ReferralLink(referrer_id=p.referred_by, referred_id=p.id)
            for p in self.repos.people.fetch_all()
            if p.referred_by
        ]

    def gather_recruits(self) -> list[RecruitLink]:
        """Recruiter is whoever referred the recruit; stage comes from the pipeline."""
        people = {p.id: p for p in self.repos.people.fetch_all()}
        links: dict[tuple[str, str], RecruitLink] = {}
        for rs in self.repos.pipeline.fetch_all_recruiting_stages():
            recruit = people.get(rs.person_id)
            if recruit is None or not recruit.referred_by:
                continue
            key = (recruit.referred_by, recruit.id)
            links.setdefault(key, RecruitLink(recruit.referred_by, recruit.id, rs.stage))
        return list(links.values())

    # ─── Pairwise Evidence ───────────────────────────────────────────

    def gather_co_attendance(self) -> list[CoAttendancePair]:
        counts: dict[tuple[str, str], int] = defaultdict(int)
        for event in self.repos.evidence.fetch_all():
            if event.source != CALENDAR_SOURCE:
                continue
            for pair in _pairs(event.linked_people):
                counts[pair] += 1
        return [CoAttendancePair(a, b, n) for (a, b), n in counts.items()]

    def gather_communication(self) -> list[CommLink]:
        counts: dict[tuple[str, str], int] = defaultdict(int)
        latest: dict[tuple[str, str], str] = {}
        outbound: dict[tuple[str, str], int] = defaultdict(int)
        inbound: dict[tuple[str, str], int] = defaultdict(int)

        for item in self.repos.evidence.fetch_all():
            if item.source not in COMMUNICATION_SOURCES:
                continue
            for pair in _pairs(item.linked_people):
                counts[pair] += 1
                if item.occurred_at and (
                    pair not in latest or parse_iso(item.occurred_at) > parse_iso(latest[pair])
                ):
                    latest[pair] = item.occurred_at
                if item.direction == Direction.OUTBOUND.value:
                    outbound[pair] += 1
                elif item.direction == Direction.INBOUND.value:
                    inbound[pair] += 1

        return [
            CommLink(
                person_a=a,
                person_b=b,
                evidence_count=n,
                last_contact=latest.get((a, b)),
                direction=_dominant_direction(outbound[(a, b)], inbound[(a, b)]),
            )
            for (a, b), n in counts.items()
        ]

    def gather_note_mentions(self) -> list[MentionPair]:
        """People linked to (or resolved-mentioned in) the same note."""
        counts: dict[tuple[str, str], int] = defaultdict(int)
        for note in self.repos.notes.fetch_all():
            participants = list(note.linked_people)
            participants.extend(m.matched_person_id for m in note.mentions if m.matched_person_id)
            for pair in _pairs(participants):
                counts[pair] += 1
        return [MentionPair(a, b, n) for (a, b), n in counts.items()]

    # ─── Ghosts & Deductions ─────────────────────────────────────────

    def gather_ghost_mentions(self) -> list[GhostMention]:
        """Unresolved mention names, exact after trimming whitespace."""
        mentioners: dict[str, set[str]] = {}
        roles: dict[str, Optional[str]] = {}
        for note in self.repos.notes.fetch_all():
            for mention in note.mentions:
                if mention.matched_person_id is not None:
                    continue
                name = mention.name.strip()
                if not name:
                    continue
                if name not in mentioners:
                    mentioners[name] = set()
                    roles[name] = mention.role
                elif roles[name] is None:
                    roles[name] = mention.role
                mentioners[name].update(note.linked_people)
        return [
            GhostMention(name=name, mentioned_by=frozenset(ids), suggested_role=roles[name])
            for name, ids in mentioners.items()
        ]

    def gather_deduced_family(self) -> list[DeducedFamilyLink]:
        return [
            DeducedFamilyLink(
                person_a_id=r.person_a_id,
                person_b_id=r.person_b_id,
                relation_type=r.relation_type,
                label=r.source_label,
                is_confirmed=r.is_confirmed,
                deduced_relation_id=r.id,
            )
            for r in self.repos.deduced_relations.fetch_all()
        ]

    # ─── Helpers ─────────────────────────────────────────────────────

    def _eligible(self, person: PersonRecord) -> bool:
        if person.is_archived:
            return False
        return self.show_self or not person.is_me

    def _person_attributes(self):
        production: dict[str, float] = defaultdict(float)
        for rec in _degrade("production", self.repos.production.fetch_all, []):
            if rec.status != DECLINED_STATUS:
                production[rec.person_id] += rec.annual_premium

        outcomes: dict[str, str] = {}
        best: dict[str, float] = {}
        for outcome in _degrade("outcomes", self.repos.outcomes.fetch_active, []):
            if outcome.person_id not in best or outcome.priority > best[outcome.person_id]:
                best[outcome.person_id] = outcome.priority
                outcomes[outcome.person_id] = outcome.title

        stages: dict[str, str] = {}
        for rs in _degrade("pipeline", self.repos.pipeline.fetch_all_recruiting_stages, []):
            stages.setdefault(rs.person_id, rs.stage)

        return production, outcomes, stages

    @staticmethod
    def _person_input(person, production, outcomes, stages) -> PersonGraphInput:
        return PersonGraphInput(
            id=person.id,
            display_name=person.display_name,
            role_badges=frozenset(person.role_badges),
            relationship_health=HEALTH_BY_DECAY_RISK.get(
                (person.decay_risk or "none").lower(), HealthLevel.HEALTHY
            ),
            production_value=max(0.0, production.get(person.id, 0.0)),
            photo_thumbnail=person.photo_thumbnail,
            top_outcome=outcomes.get(person.id),
            pipeline_stage=stages.get(person.id),
        )


def _pairs(ids: Iterable[str]) -> list[tuple[str, str]]:
    """Every unordered pair of distinct ids, each pair sorted."""
    return list(combinations(sorted(set(ids)), 2))


def _dominant_direction(outbound: int, inbound: int) -> Direction:
    if outbound > inbound:
        return Direction.OUTBOUND
    if inbound > outbound:
        return Direction.INBOUND
    return Direction.BALANCED


def _degrade(category: str, fn: Callable[[], T], fallback: T) -> T:
    """Run one collaborator read; any failure degrades to ``fallback``."""
    try:
        return fn()
    except Exception as e:
        logger.warning("Could not gather %s: %s", category, e)
        logger.debug("Gather failure detail for %s", category, exc_info=True)
        return fallback
