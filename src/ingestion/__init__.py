"""
Ingestion module for Context-Parser.
Handles type detection, text normalization, entity extraction,
confidence scoring and post-processing of arbitrary documents.
"""

from src.ingestion.confidence import assign_confidence
from src.ingestion.detector import FileType, detect_file_type
from src.ingestion.extractor import (
    EntityExtractor,
    ExtractionError,
    extract_entities,
    repair_truncated_json,
)
from src.ingestion.models import (
    Entity,
    EntityType,
    ExtractionOutcome,
    ParseMetadata,
    ParseResult,
    Relationship,
)
from src.ingestion.normalizer import extract_text
from src.ingestion.pipeline import UniversalParser, parse, parse_sync
from src.ingestion.postprocess import dice_similarity, post_process

__all__ = [
    "assign_confidence",
    "detect_file_type",
    "dice_similarity",
    "extract_entities",
    "extract_text",
    "parse",
    "parse_sync",
    "post_process",
    "repair_truncated_json",
    "Entity",
    "EntityExtractor",
    "EntityType",
    "ExtractionError",
    "ExtractionOutcome",
    "FileType",
    "ParseMetadata",
    "ParseResult",
    "Relationship",
    "UniversalParser",
]
