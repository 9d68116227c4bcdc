"""
Structured profile shapes for direct import.

Two JSON layouts are accepted:

- flat:   {"name", "entity_type" | "type", "attributes": {...}, "relationships": [...]}
- nested: {"entity": {"name": str | {"full", "preferred"}, "entity_type"},
           "attributes": [{"key", "value", "confidence"}], "relationships": [...]}

Each layout has its own parser producing a named dataclass; both convert
to pipeline entities the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from src.ingestion.models import (
    Entity,
    Relationship,
    coerce_attribute_value,
    coerce_attributes,
    normalize_entity_type,
)

DIRECT_IMPORT_CONFIDENCE = 0.9


@dataclass
class ProfileRelationship:
    """A relationship listed in a profile, anchored to the profile's subject."""
    target: str
    label: str = "related_to"
    direction: Optional[str] = None
    evidence: Optional[str] = None

    @classmethod
    def parse(cls, data: Any) -> Optional["ProfileRelationship"]:
        if not isinstance(data, dict):
            return None
        target = data.get("target") or data.get("name")
        if not isinstance(target, str) or not target.strip():
            return None
        label = (
            data.get("relationship_type")
            or data.get("relationship")
            or data.get("type")
            or "related_to"
        )
        evidence = data.get("context") or data.get("evidence")
        direction = data.get("direction")
        return cls(
            target=target.strip(),
            label=str(label),
            direction=direction if isinstance(direction, str) else None,
            evidence=evidence if isinstance(evidence, str) and evidence.strip() else None,
        )


@dataclass
class ProfileAttribute:
    key: str
    value: str
    confidence: Optional[float] = None


@dataclass
class FlatProfile:
    """Profile with name, type, attributes and relationships at top level."""
    name: str
    entity_type: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    relationships: List[ProfileRelationship] = field(default_factory=list)
    evidence: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name


@dataclass
class NestedProfile:
    """Profile wrapping identity in an ``entity`` object with list attributes."""
    full_name: Optional[str] = None
    preferred_name: Optional[str] = None
    entity_type: Optional[str] = None
    attributes: List[ProfileAttribute] = field(default_factory=list)
    relationships: List[ProfileRelationship] = field(default_factory=list)
    evidence: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.preferred_name or self.full_name or ""


Profile = Union[FlatProfile, NestedProfile]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _summary_text(value: Any) -> Optional[str]:
    # summaries appear either as plain strings or {"value": ...}
    if isinstance(value, dict):
        return _text(value.get("value"))
    return _text(value)


def _parse_relationships(raw: Any) -> List[ProfileRelationship]:
    if not isinstance(raw, list):
        return []
    parsed = (ProfileRelationship.parse(item) for item in raw)
    return [rel for rel in parsed if rel is not None]


def _parse_flat(data: Dict[str, Any]) -> FlatProfile:
    name = data.get("name")
    return FlatProfile(
        name=name if isinstance(name, str) else "",
        entity_type=_text(data.get("entity_type")) or _text(data.get("type")),
        attributes=coerce_attributes(data.get("attributes")),
        relationships=_parse_relationships(data.get("relationships")),
        evidence=_summary_text(data.get("summary")) or _text(data.get("evidence")),
    )


def _parse_nested(data: Dict[str, Any]) -> NestedProfile:
    entity = data["entity"]
    name = entity.get("name")
    if isinstance(name, dict):
        full_name = _text(name.get("full"))
        preferred_name = _text(name.get("preferred"))
    else:
        full_name = _text(name)
        preferred_name = None

    attributes: List[ProfileAttribute] = []
    raw_attributes = data.get("attributes")
    if isinstance(raw_attributes, list):
        for item in raw_attributes:
            if not isinstance(item, dict) or not _text(item.get("key")):
                continue
            value = coerce_attribute_value(item.get("value"))
            if value is None:
                continue
            confidence = item.get("confidence")
            attributes.append(ProfileAttribute(
                key=item["key"],
                value=value,
                confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
            ))

    return NestedProfile(
        full_name=full_name,
        preferred_name=preferred_name,
        entity_type=_text(entity.get("entity_type")) or _text(entity.get("type")),
        attributes=attributes,
        relationships=_parse_relationships(data.get("relationships")),
        evidence=_summary_text(entity.get("summary")),
    )


def parse_profile(data: Any) -> Profile:
    """
    Parse decoded profile JSON into its shape-specific dataclass.

    Args:
        data: Result of json.loads on the profile document

    Returns:
        NestedProfile when an ``entity`` object is present, else FlatProfile

    Raises:
        ValueError: If the document is not a JSON object
    """
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    if isinstance(data.get("entity"), dict):
        return _parse_nested(data)
    return _parse_flat(data)


def profile_to_entities(profile: Profile) -> Tuple[List[Entity], List[Relationship]]:
    """
    Convert a parsed profile into pre-scored pipeline entities.

    The profile subject becomes a single entity with confidence 0.9, and
    each listed relationship points from it to the named target. Directions
    are copied as given.

    Raises:
        ValueError: If the profile has no usable name
    """
    name = profile.display_name.strip()
    if not name:
        raise ValueError("profile has no name")

    if isinstance(profile, NestedProfile):
        attributes: Dict[str, str] = {}
        for attribute in profile.attributes:
            attributes.setdefault(attribute.key, attribute.value)
    else:
        attributes = dict(profile.attributes)

    entity = Entity(
        name=name,
        type=normalize_entity_type(profile.entity_type),
        attributes=attributes,
        confidence=DIRECT_IMPORT_CONFIDENCE,
        evidence=profile.evidence,
    )
    relationships = [
        Relationship(
            source=name,
            target=rel.target,
            relationship=rel.label,
            direction=rel.direction,
            confidence=DIRECT_IMPORT_CONFIDENCE,
            evidence=rel.evidence,
        )
        for rel in profile.relationships
    ]
    return [entity], relationships
