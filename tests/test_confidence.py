"""
Tests for confidence assignment.
"""

import pytest

from src.ingestion.confidence import assign_confidence, score_entity, score_relationship
from src.ingestion.models import Entity, Relationship


def entity(attributes=None, evidence=None, confidence=None) -> Entity:
    return Entity(
        name="Alice Johnson",
        type="PERSON",
        attributes=attributes or {},
        evidence=evidence,
        confidence=confidence,
    )


class TestEntityScoring:
    """Tests for the entity decision table."""

    def test_should_score_rich_entity_high(self) -> None:
        """Should score 3+ attributes with long evidence in 0.85-0.95."""
        score = score_entity(entity(
            attributes={"role": "Engineer", "age": "34", "location": "Denver"},
            evidence="x" * 80,
        ))

        assert 0.85 <= score <= 0.95

    def test_should_cap_high_band(self) -> None:
        """Should never exceed 0.95."""
        score = score_entity(entity(
            attributes={str(i): "v" for i in range(20)},
            evidence="x" * 2000,
        ))

        assert score == 0.95

    def test_should_score_medium_just_below_evidence_threshold(self) -> None:
        """Should fall to the medium band with 79 characters of evidence."""
        score = score_entity(entity(
            attributes={"role": "Engineer", "age": "34", "location": "Denver"},
            evidence="x" * 79,
        ))

        assert 0.6 <= score <= 0.8

    def test_should_score_attributes_with_evidence_medium(self) -> None:
        """Should score one attribute plus evidence in 0.6-0.8."""
        score = score_entity(entity(attributes={"role": "Engineer"}, evidence="Alice is an engineer"))

        assert 0.6 <= score <= 0.8

    def test_should_score_evidence_only_low(self) -> None:
        """Should score evidence without attributes in 0.3-0.6."""
        score = score_entity(entity(evidence="Alice was mentioned in passing"))

        assert 0.3 <= score <= 0.6

    def test_should_score_bare_entity_lowest(self) -> None:
        """Should score an entity without evidence in 0.2-0.4."""
        assert 0.2 <= score_entity(entity()) <= 0.4
        assert 0.2 <= score_entity(entity(attributes={"role": "Engineer"})) <= 0.4

    def test_should_ignore_blank_attribute_values(self) -> None:
        """Should only count populated attributes."""
        blank = score_entity(entity(attributes={"role": "  "}, evidence="Alice was mentioned"))
        none = score_entity(entity(evidence="Alice was mentioned"))

        assert blank == none


class TestRelationshipScoring:
    """Tests for the relationship decision table."""

    def test_should_score_explicit_relationship(self) -> None:
        """Should give 0.85 to a specific label with long evidence."""
        relationship = Relationship(
            source="Alice",
            target="Acme",
            relationship="works_at",
            evidence="Alice has been a senior engineer at Acme since 2019",
        )

        assert score_relationship(relationship) == 0.85

    def test_should_score_generic_label_moderate(self) -> None:
        """Should give 0.5 to a generic label with real evidence."""
        relationship = Relationship(
            source="Alice",
            target="Acme",
            relationship="related_to",
            evidence="Alice and Acme were discussed in the quarterly planning memo",
        )

        assert score_relationship(relationship) == 0.5

    def test_should_score_short_specific_evidence_moderate(self) -> None:
        """Should give 0.5 when a specific label has short evidence."""
        relationship = Relationship(
            source="Alice", target="Acme", relationship="works_at", evidence="Alice works at Acme"
        )

        assert score_relationship(relationship) == 0.5

    @pytest.mark.parametrize("evidence", [None, "", "Alice, Acme"])
    def test_should_score_missing_evidence_minimal(self, evidence) -> None:
        """Should give 0.3 when evidence is absent or tiny."""
        relationship = Relationship(
            source="Alice", target="Acme", relationship="related_to", evidence=evidence
        )

        assert score_relationship(relationship) == 0.3

    def test_should_score_names_only_evidence_minimal(self) -> None:
        """Should give 0.3 when evidence is just the two names."""
        relationship = Relationship(
            source="Alice Johnson",
            target="Acme Corporation",
            relationship="mentioned_together",
            evidence="Alice Johnson and Acme Corporation",
        )

        assert score_relationship(relationship) == 0.3


class TestAssignConfidence:
    """Tests for assign_confidence."""

    def test_should_pass_through_preset_confidence(self) -> None:
        """Should return pre-scored items unchanged."""
        scored = entity(confidence=0.42)
        relationship = Relationship(target="Acme", source="Alice", confidence=0.9)

        entities, relationships = assign_confidence([scored], [relationship])

        assert entities[0] is scored
        assert entities[0].confidence == 0.42
        assert relationships[0] is relationship

    def test_should_fill_missing_confidence(self) -> None:
        """Should give every unscored item a value in [0, 1]."""
        entities, relationships = assign_confidence(
            [entity(), entity(evidence="Alice was mentioned")],
            [Relationship(target="Acme", source="Alice")],
        )

        assert all(0.0 <= e.confidence <= 1.0 for e in entities)
        assert relationships[0].confidence == 0.3

    def test_should_not_modify_inputs(self) -> None:
        """Should leave the input objects unscored."""
        original = entity()

        assign_confidence([original], [])

        assert original.confidence is None

    def test_should_preserve_order_and_count(self) -> None:
        """Should return one output per input in the same order."""
        inputs = [
            Entity(name="A", confidence=0.1),
            Entity(name="B"),
            Entity(name="C", confidence=0.3),
        ]

        entities, _ = assign_confidence(inputs, [])

        assert [e.name for e in entities] == ["A", "B", "C"]
