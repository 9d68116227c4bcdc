"""
Confidence assignment for extracted entities and relationships.

Scores come from ordered decision tables; the first rule whose predicate
matches decides. Anything that already carries a numeric confidence is
returned untouched.

Entity rules (A = populated attributes, L = evidence length):

    | rule    | predicate            | score        |
    |---------|----------------------|--------------|
    | high    | A >= 3 and L >= 80   | 0.85 - 0.95  |
    | medium  | A >= 1 and L > 0     | 0.60 - 0.80  |
    | low     | A == 0 and L > 0     | 0.30 - 0.60  |
    | bare    | L == 0               | 0.20 - 0.40  |

Relationship rules:

    | rule     | predicate                                | score |
    |----------|------------------------------------------|-------|
    | explicit | specific label and L >= 40               | 0.85  |
    | minimal  | evidence is empty, tiny, or only names   | 0.30  |
    | moderate | anything else                            | 0.50  |
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from src.ingestion.models import Entity, Relationship

HIGH_EVIDENCE_LENGTH = 80
EXPLICIT_EVIDENCE_LENGTH = 40
MINIMAL_EVIDENCE_LENGTH = 15

GENERIC_RELATIONSHIP_LABELS = frozenset({
    "mentioned_together",
    "mentioned_with",
    "mentioned",
    "referenced",
    "references",
    "related",
    "related_to",
    "associated",
    "associated_with",
    "connected",
    "connected_to",
    "connection",
    "co_occurs_with",
    "linked_to",
    "unknown",
    "other",
})


@dataclass(frozen=True)
class EntitySignals:
    attribute_count: int
    evidence_length: int


@dataclass(frozen=True)
class RelationshipSignals:
    explicit_label: bool
    evidence_length: int
    minimal_evidence: bool


@dataclass(frozen=True)
class EntityRule:
    name: str
    applies: Callable[[EntitySignals], bool]
    score: Callable[[EntitySignals], float]


@dataclass(frozen=True)
class RelationshipRule:
    name: str
    applies: Callable[[RelationshipSignals], bool]
    score: float


def _banded(low: float, high: float, bonus: float) -> float:
    return round(low + min(high - low, max(0.0, bonus)), 4)


ENTITY_RULES: Tuple[EntityRule, ...] = (
    EntityRule(
        "high",
        lambda s: s.attribute_count >= 3 and s.evidence_length >= HIGH_EVIDENCE_LENGTH,
        lambda s: _banded(
            0.85, 0.95,
            0.02 * (s.attribute_count - 3) + (s.evidence_length - HIGH_EVIDENCE_LENGTH) / 2000,
        ),
    ),
    EntityRule(
        "medium",
        lambda s: s.attribute_count >= 1 and s.evidence_length > 0,
        lambda s: _banded(
            0.6, 0.8,
            0.04 * (s.attribute_count - 1) + s.evidence_length / 1000,
        ),
    ),
    EntityRule(
        "low",
        lambda s: s.attribute_count == 0 and s.evidence_length > 0,
        lambda s: _banded(0.3, 0.6, s.evidence_length / 400),
    ),
    EntityRule(
        "bare",
        lambda s: s.evidence_length == 0,
        lambda s: _banded(0.2, 0.4, 0.05 * s.attribute_count),
    ),
)

RELATIONSHIP_RULES: Tuple[RelationshipRule, ...] = (
    RelationshipRule(
        "explicit",
        lambda s: s.explicit_label and s.evidence_length >= EXPLICIT_EVIDENCE_LENGTH,
        0.85,
    ),
    RelationshipRule("minimal", lambda s: s.minimal_evidence, 0.3),
    RelationshipRule("moderate", lambda s: True, 0.5),
)


def canonical_label(label: Optional[str]) -> str:
    """Lower-case a relationship label and join its words with underscores."""
    return re.sub(r"[\s\-]+", "_", (label or "").strip().lower())


def is_explicit_label(label: Optional[str]) -> bool:
    canonical = canonical_label(label)
    return bool(canonical) and canonical not in GENERIC_RELATIONSHIP_LABELS


def _evidence_length(evidence: Optional[str]) -> int:
    return len(evidence.strip()) if evidence else 0


def _is_minimal_evidence(relationship: Relationship) -> bool:
    evidence = (relationship.evidence or "").strip()
    if len(evidence) < MINIMAL_EVIDENCE_LENGTH:
        return True
    # evidence that is just the two names joined by a word or two
    remainder = evidence.lower()
    for name in (relationship.source, relationship.target):
        if name:
            remainder = remainder.replace(name.strip().lower(), " ")
    words = re.findall(r"[a-z0-9]+", remainder)
    return sum(len(word) for word in words) < 5


def entity_signals(entity: Entity) -> EntitySignals:
    populated = sum(1 for value in entity.attributes.values() if value and str(value).strip())
    return EntitySignals(
        attribute_count=populated,
        evidence_length=_evidence_length(entity.evidence),
    )


def relationship_signals(relationship: Relationship) -> RelationshipSignals:
    return RelationshipSignals(
        explicit_label=is_explicit_label(relationship.relationship),
        evidence_length=_evidence_length(relationship.evidence),
        minimal_evidence=_is_minimal_evidence(relationship),
    )


def score_entity(entity: Entity) -> float:
    """Score an entity with the first matching rule of ENTITY_RULES."""
    signals = entity_signals(entity)
    for rule in ENTITY_RULES:
        if rule.applies(signals):
            return rule.score(signals)
    raise AssertionError("entity rules are exhaustive")


def score_relationship(relationship: Relationship) -> float:
    """Score a relationship with the first matching rule of RELATIONSHIP_RULES."""
    signals = relationship_signals(relationship)
    for rule in RELATIONSHIP_RULES:
        if rule.applies(signals):
            return rule.score
    raise AssertionError("relationship rules are exhaustive")


def _is_scored(confidence: Optional[float]) -> bool:
    return isinstance(confidence, (int, float)) and not isinstance(confidence, bool)


def assign_confidence(
    entities: List[Entity],
    relationships: List[Relationship],
) -> Tuple[List[Entity], List[Relationship]]:
    """
    Attach a confidence to every entity and relationship lacking one.

    Inputs are not modified; pre-scored items are passed through as-is.

    Args:
        entities: Extracted entities
        relationships: Extracted relationships

    Returns:
        Tuple of (scored entities, scored relationships)
    """
    scored_entities = [
        entity if _is_scored(entity.confidence)
        else replace(entity, confidence=score_entity(entity))
        for entity in entities
    ]
    scored_relationships = [
        rel if _is_scored(rel.confidence)
        else replace(rel, confidence=score_relationship(rel))
        for rel in relationships
    ]
    return scored_entities, scored_relationships
