"""
Post-processing of scored extraction results.

Steps, in order:

1. Normalize entity names (title-case people, trim everything)
2. Merge same-type entities whose names are near-duplicates
3. Collapse duplicate relationships
4. Promote recurring ``location``/``event`` attribute values to entities

Entities are merged in extraction order, so the earliest entity of a
near-duplicate group survives and its attribute values win on conflict.
"""

from __future__ import annotations

import copy
import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Tuple

from src.ingestion.confidence import canonical_label
from src.ingestion.models import Entity, EntityType, Relationship

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.8
PROMOTION_THRESHOLD = 3

# (attribute key, promoted entity type, relationship label)
PROMOTION_RULES = (
    ("location", EntityType.PLACE, "located_in"),
    ("event", EntityType.EVENT, "attended"),
)

RELATIONSHIP_SYNONYMS = {
    "works_for": "works_at",
    "employed_at": "works_at",
    "employed_by": "works_at",
    "employee_of": "works_at",
    "friends_with": "friend_of",
    "friend": "friend_of",
    "colleague": "colleague_of",
    "coworker_of": "colleague_of",
    "co_worker_of": "colleague_of",
    "works_with": "colleague_of",
    "lives_in": "located_in",
    "based_in": "located_in",
    "resides_in": "located_in",
    "married_to": "spouse_of",
    "spouse": "spouse_of",
    "went_to": "attended",
    "participated_in": "attended",
}


def normalize_entity_name(name: str, entity_type: str) -> str:
    """
    Normalize an entity name for its type.

    People are title-cased word by word; other names are only trimmed.

    Args:
        name: Raw entity name
        entity_type: Entity type

    Returns:
        Normalized name
    """
    trimmed = (name or "").strip()
    if entity_type != EntityType.PERSON:
        return trimmed
    return " ".join(word[:1].upper() + word[1:].lower() for word in trimmed.split())


def _bigrams(text: str) -> Counter:
    cleaned = re.sub(r"\s+", " ", text.lower()).strip()
    return Counter(cleaned[i:i + 2] for i in range(len(cleaned) - 1))


def dice_similarity(a: str, b: str) -> float:
    """
    Dice coefficient over overlapping character bigrams (case-insensitive).

    Example:
        dice_similarity("Steve Hughes", "Steven Hughes")  # ~0.87
    """
    if not a or not b:
        return 0.0
    if a.strip().lower() == b.strip().lower():
        return 1.0
    bigrams_a = _bigrams(a)
    bigrams_b = _bigrams(b)
    total = sum(bigrams_a.values()) + sum(bigrams_b.values())
    if total == 0:
        return 0.0
    shared = sum((bigrams_a & bigrams_b).values())
    return 2 * shared / total


def relationship_label_key(label: Optional[str]) -> str:
    canonical = canonical_label(label)
    return RELATIONSHIP_SYNONYMS.get(canonical, canonical)


def _relationship_key(relationship: Relationship) -> Tuple[str, str, str]:
    return (
        (relationship.source or "").strip().lower(),
        relationship.target.strip().lower(),
        relationship_label_key(relationship.relationship),
    )


def _merge_into(survivor: Entity, duplicate: Entity) -> None:
    for key, value in duplicate.attributes.items():
        if not survivor.attributes.get(key):
            survivor.attributes[key] = value

    confidences = [c for c in (survivor.confidence, duplicate.confidence) if c is not None]
    survivor.confidence = max(confidences) if confidences else None

    if len(duplicate.evidence or "") > len(survivor.evidence or ""):
        survivor.evidence = duplicate.evidence


def _rename_endpoints(relationships: List[Relationship], renames: Dict[str, str]) -> None:
    if not renames:
        return
    for relationship in relationships:
        if relationship.source is not None:
            relationship.source = renames.get(relationship.source.strip().lower(), relationship.source)
        relationship.target = renames.get(relationship.target.strip().lower(), relationship.target)


def normalize_names(entities: List[Entity], relationships: List[Relationship]) -> None:
    """
    Normalize entity names in place.

    Relationship endpoints that name an entity case-insensitively are
    rewritten to the entity's normalized name.
    """
    renames: Dict[str, str] = {}
    for entity in entities:
        normalized = normalize_entity_name(entity.name, entity.type)
        renames.setdefault(entity.name.strip().lower(), normalized)
        entity.name = normalized
    _rename_endpoints(relationships, renames)


def deduplicate_entities(
    entities: List[Entity],
    relationships: List[Relationship],
) -> List[Entity]:
    """
    Merge same-type entities whose names have Dice similarity above 0.8.

    Entities are visited in order; each one is folded into the first
    earlier survivor it matches. Relationship endpoints naming a merged
    entity are rewritten to the survivor's name.

    Returns:
        Surviving entities in original order
    """
    survivors: List[Entity] = []
    renames: Dict[str, str] = {}

    for entity in entities:
        match = next(
            (
                survivor for survivor in survivors
                if survivor.type == entity.type
                and dice_similarity(survivor.name, entity.name) > SIMILARITY_THRESHOLD
            ),
            None,
        )
        if match is None:
            survivors.append(entity)
            continue

        logger.debug(f"Merging {entity.name!r} into {match.name!r} ({entity.type})")
        _merge_into(match, entity)
        if entity.name.strip().lower() != match.name.strip().lower():
            renames[entity.name.strip().lower()] = match.name

    _rename_endpoints(relationships, renames)
    if len(survivors) < len(entities):
        logger.info(f"Merged {len(entities) - len(survivors)} duplicate entities")
    return survivors


def _prefer(current: Relationship, candidate: Relationship) -> Relationship:
    current_confidence = current.confidence if current.confidence is not None else -1.0
    candidate_confidence = candidate.confidence if candidate.confidence is not None else -1.0
    if candidate_confidence != current_confidence:
        return candidate if candidate_confidence > current_confidence else current
    if len(candidate.evidence or "") > len(current.evidence or ""):
        return candidate
    return current


def deduplicate_relationships(relationships: List[Relationship]) -> List[Relationship]:
    """
    Keep one relationship per (source, target, equivalent label).

    The higher-confidence version wins, then the one with longer evidence.
    The kept relationship takes the position of the group's first member.
    """
    kept: Dict[Tuple[str, str, str], Relationship] = {}
    for relationship in relationships:
        key = _relationship_key(relationship)
        kept[key] = _prefer(kept[key], relationship) if key in kept else relationship
    return list(kept.values())


def _find_similar(entities: List[Entity], name: str, entity_type: str) -> Optional[Entity]:
    for entity in entities:
        if entity.type == entity_type and dice_similarity(entity.name, name) > SIMILARITY_THRESHOLD:
            return entity
    return None


def promote_attribute_values(
    entities: List[Entity],
    relationships: List[Relationship],
) -> Tuple[List[Entity], List[Relationship]]:
    """
    Turn attribute values shared by 3+ entities into standalone entities.

    ``location`` values become PLACE entities linked with ``located_in``;
    ``event`` values become EVENT entities linked with ``attended``. An
    existing entity with a matching name is reused instead of creating a
    new one, and existing relationships are not duplicated.
    """
    entities = list(entities)
    relationships = list(relationships)
    existing_keys = {_relationship_key(rel) for rel in relationships}

    for attribute, promoted_type, label in PROMOTION_RULES:
        referrers: Dict[str, List[Entity]] = {}
        for entity in entities:
            value = entity.attributes.get(attribute)
            if value and value.strip() and entity.name != value:
                referrers.setdefault(value, []).append(entity)

        for value, referencing in referrers.items():
            if len(referencing) < PROMOTION_THRESHOLD:
                continue

            name = value.strip()
            target = _find_similar(entities, name, promoted_type)
            if target is None:
                confidences = [e.confidence for e in referencing if e.confidence is not None]
                target = Entity(
                    name=name,
                    type=promoted_type,
                    confidence=round(sum(confidences) / len(confidences), 4) if confidences else 0.5,
                    evidence=f"Shared {attribute} of {len(referencing)} entities",
                )
                entities.append(target)
                logger.info(f"Promoted {attribute} {value!r} to {promoted_type}")

            for entity in referencing:
                relationship = Relationship(
                    source=entity.name,
                    target=target.name,
                    relationship=label,
                    confidence=entity.confidence,
                    evidence=f"{entity.name} has {attribute} {value}",
                )
                key = _relationship_key(relationship)
                if key in existing_keys:
                    continue
                existing_keys.add(key)
                relationships.append(relationship)

    return entities, relationships


def post_process(
    entities: List[Entity],
    relationships: List[Relationship],
) -> Tuple[List[Entity], List[Relationship]]:
    """
    Normalize, deduplicate and enrich scored extraction results.

    Inputs are copied, never modified. Running post_process on its own
    output returns an equal result.

    Args:
        entities: Scored entities
        relationships: Scored relationships

    Returns:
        Tuple of (entities, relationships)
    """
    entities = copy.deepcopy(entities)
    relationships = copy.deepcopy(relationships)

    normalize_names(entities, relationships)
    entities = deduplicate_entities(entities, relationships)
    relationships = deduplicate_relationships(relationships)
    entities, relationships = promote_attribute_values(entities, relationships)

    return entities, relationships
