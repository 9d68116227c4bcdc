"""
Data model for the document ingestion pipeline.

Entities and relationships are produced by extraction, scored by the
confidence assigner, merged by the post-processor and finally serialised
into a ParseResult envelope.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class EntityType:
    """Canonical entity type vocabulary."""
    PERSON = "PERSON"
    ORG = "ORG"
    PLACE = "PLACE"
    EVENT = "EVENT"
    CONCEPT = "CONCEPT"

    ALL = (PERSON, ORG, PLACE, EVENT, CONCEPT)


class Direction:
    """Relationship directions carried by structured profiles."""
    A_TO_B = "A_TO_B"
    B_TO_A = "B_TO_A"
    BIDIRECTIONAL = "BIDIRECTIONAL"


class ParseStrategy:
    STRUCTURED_IMPORT = "structured_import"
    CHAT_IMPORT = "chat_import"
    AI_EXTRACTION = "ai_extraction"


DIRECT_IMPORT_MODEL = "direct_import"

# Loose type names seen in profiles and LLM output
_TYPE_ALIASES = {
    "person": EntityType.PERSON,
    "people": EntityType.PERSON,
    "individual": EntityType.PERSON,
    "org": EntityType.ORG,
    "organization": EntityType.ORG,
    "organisation": EntityType.ORG,
    "business": EntityType.ORG,
    "company": EntityType.ORG,
    "place": EntityType.PLACE,
    "location": EntityType.PLACE,
    "event": EntityType.EVENT,
    "concept": EntityType.CONCEPT,
}


def normalize_entity_type(raw: Any) -> str:
    """
    Map a loosely-typed entity type onto the canonical vocabulary.

    Unknown types are upper-cased and passed through rather than rejected.

    Args:
        raw: Type value from extraction output or a profile

    Returns:
        Canonical type string (CONCEPT when missing)
    """
    if not isinstance(raw, str) or not raw.strip():
        return EntityType.CONCEPT
    value = raw.strip()
    return _TYPE_ALIASES.get(value.lower(), value.upper())


def coerce_confidence(value: Any) -> Optional[float]:
    """Return a numeric confidence as float, or None when absent/non-numeric."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def coerce_attribute_value(value: Any) -> Optional[str]:
    """Attribute values are stored as strings; None means 'drop this key'."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def coerce_attributes(raw: Any) -> Dict[str, str]:
    """Build a string→string attribute map from a loosely-typed mapping."""
    attributes: Dict[str, str] = {}
    if not isinstance(raw, dict):
        return attributes
    for key, value in raw.items():
        text = coerce_attribute_value(value)
        if text is not None:
            attributes[str(key)] = text
    return attributes


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


def default_access_rules() -> Dict[str, Any]:
    return {"visibility": "private", "shared_with": []}


def default_projection_config() -> Dict[str, Any]:
    return {"lenses": []}


@dataclass
class Entity:
    """
    A candidate real-world referent extracted from a document.

    Attributes:
        name: Display name (non-empty after trimming)
        type: PERSON, ORG, PLACE, EVENT, CONCEPT or a provisional type
        attributes: String key/value facts about the entity
        confidence: Trust value in [0, 1]; None until scored
        evidence: Supporting snippet from the source document
        ownership, access_rules, projection_config, perspectives:
            Sharing/visibility scaffolding with safe defaults
    """
    name: str
    type: str = EntityType.CONCEPT
    attributes: Dict[str, str] = field(default_factory=dict)
    confidence: Optional[float] = None
    evidence: Optional[str] = None
    ownership: str = "referenced"
    access_rules: Dict[str, Any] = field(default_factory=default_access_rules)
    projection_config: Dict[str, Any] = field(default_factory=default_projection_config)
    perspectives: List[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Entity"]:
        """
        Build an entity from extraction output.

        Unknown fields are ignored. Returns None when the name is missing
        or blank.
        """
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            return None
        return cls(
            name=name,
            type=normalize_entity_type(data.get("type") or data.get("entity_type")),
            attributes=coerce_attributes(data.get("attributes")),
            confidence=coerce_confidence(data.get("confidence")),
            evidence=_optional_text(data.get("evidence")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "type": self.type,
            "attributes": dict(self.attributes),
            "confidence": self.confidence,
            "evidence": self.evidence,
            "ownership": self.ownership,
            "access_rules": {
                **self.access_rules,
                "shared_with": list(self.access_rules.get("shared_with", [])),
            },
            "projection_config": {
                **self.projection_config,
                "lenses": list(self.projection_config.get("lenses", [])),
            },
            "perspectives": list(self.perspectives),
        }


@dataclass
class Relationship:
    """
    An association between two named entities.

    Attributes:
        target: Name of the target entity (required)
        relationship: Free-text label, e.g. "works_at"
        source: Name of the source entity; None when anchored to the
            document's single subject
        direction: A_TO_B, B_TO_A or BIDIRECTIONAL (structured imports only)
        confidence: Trust value in [0, 1]; None until scored
        evidence: Supporting snippet from the source document
    """
    target: str
    relationship: str = "related_to"
    source: Optional[str] = None
    direction: Optional[str] = None
    confidence: Optional[float] = None
    evidence: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Relationship"]:
        """Build a relationship from extraction output; None without a target."""
        target = data.get("target") or data.get("to")
        if not isinstance(target, str) or not target.strip():
            return None
        source = data.get("source") or data.get("from")
        label = (
            data.get("relationship")
            or data.get("relationship_type")
            or data.get("type")
            or "related_to"
        )
        return cls(
            target=target.strip(),
            relationship=str(label),
            source=source.strip() if isinstance(source, str) and source.strip() else None,
            direction=data.get("direction") if isinstance(data.get("direction"), str) else None,
            confidence=coerce_confidence(data.get("confidence")),
            evidence=_optional_text(data.get("evidence")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting unset optional endpoints."""
        data: Dict[str, Any] = {
            "source": self.source,
            "target": self.target,
            "relationship": self.relationship,
            "confidence": self.confidence,
            "evidence": self.evidence,
        }
        if self.source is None:
            del data["source"]
        if self.direction is not None:
            data["direction"] = self.direction
        return data


@dataclass
class ExtractionOutcome:
    """
    Output of the extraction router.

    Attributes:
        entities: Candidate entities
        relationships: Candidate relationships
        summary: Human-readable description of what was extracted
        strategy: structured_import, chat_import or ai_extraction
        model_used: direct_import or the extraction service model id
        chunk_count: Number of text chunks sent to the extraction service
        errors: Per-chunk error messages (recoverable failures)
    """
    entities: List[Entity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    summary: str = ""
    strategy: str = ParseStrategy.AI_EXTRACTION
    model_used: Optional[str] = None
    chunk_count: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class ParseMetadata:
    filename: str
    file_type: str
    file_size: int
    parse_strategy: str
    model_used: Optional[str]
    parse_duration_ms: int
    chunk_count: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "parse_strategy": self.parse_strategy,
            "model_used": self.model_used,
            "parse_duration_ms": self.parse_duration_ms,
            "chunk_count": self.chunk_count,
            "timestamp": self.timestamp,
        }


@dataclass
class ParseResult:
    """
    Result envelope returned by the pipeline.

    Attributes:
        metadata: Where the document came from and how it was parsed
        entities: Final, deduplicated entities
        relationships: Final, deduplicated relationships
        summary: Human-readable description of the batch
    """
    metadata: ParseMetadata
    entities: List[Entity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain JSON-compatible data."""
        return {
            "metadata": self.metadata.to_dict(),
            "entities": [entity.to_dict() for entity in self.entities],
            "relationships": [rel.to_dict() for rel in self.relationships],
            "summary": self.summary,
        }
