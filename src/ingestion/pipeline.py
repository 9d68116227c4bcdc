"""
Universal Parsing Pipeline for Context-Parser.

Orchestrates the flow from an arbitrary document to graph-ready data:
Detect type -> Normalize text -> Extract -> Score confidence -> Post-process

Each stage is a pure function of its inputs; the only I/O is the call to
the extraction service during AI extraction.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional, Union

from src.ingestion.confidence import assign_confidence
from src.ingestion.detector import detect_file_type
from src.ingestion.extractor import EntityExtractor, extract_entities
from src.ingestion.models import ParseMetadata, ParseResult
from src.ingestion.normalizer import extract_text
from src.ingestion.postprocess import post_process
from src.llm.client import ExtractionClient

logger = logging.getLogger(__name__)


def _byte_length(content: Union[str, bytes, None]) -> int:
    if content is None:
        return 0
    if isinstance(content, bytes):
        return len(content)
    return len(str(content).encode("utf-8"))


class UniversalParser:
    """
    Pipeline for turning any document into entities and relationships.

    Handles:
    - File type detection and text normalization
    - Direct import of structured profiles
    - Chunked AI extraction with truncation repair
    - Confidence scoring, deduplication and attribute promotion

    Example:
        parser = UniversalParser()
        result = await parser.parse(open("notes.md").read(), "notes.md")
        print(f"Found {len(result.entities)} entities")
    """

    def __init__(
        self,
        client: Optional[ExtractionClient] = None,
        extractor: Optional[EntityExtractor] = None,
    ) -> None:
        """
        Initialize the parser.

        Args:
            client: Extraction service client (Ollama by default)
            extractor: Pre-built entity extractor (overrides client)
        """
        self._extractor = extractor or EntityExtractor(client=client)

    async def parse(
        self,
        content: Union[str, bytes, None],
        filename: str = "",
        content_override: Optional[str] = None,
    ) -> ParseResult:
        """
        Parse a document into a result envelope.

        Args:
            content: Raw document content
            filename: Original filename (used for type detection)
            content_override: Replacement JSON for structured/chat imports

        Returns:
            ParseResult with metadata, entities, relationships and summary

        Raises:
            ExtractionError: If a structured profile or chat export does
                not parse
        """
        start = time.perf_counter()

        file_type = detect_file_type(content, filename)
        text = extract_text(content, file_type)
        logger.info(f"Parsing {filename or 'unknown'} as {file_type} ({len(text)} chars)")

        outcome = await extract_entities(
            text,
            content,
            filename,
            file_type,
            extractor=self._extractor,
            content_override=content_override,
        )
        for error in outcome.errors:
            logger.warning(f"{filename or 'unknown'}: {error}")

        entities, relationships = assign_confidence(outcome.entities, outcome.relationships)
        entities, relationships = post_process(entities, relationships)

        summary = outcome.summary or (
            f"Extracted {len(entities)} entities and {len(relationships)} "
            f"relationships from {filename or 'document'}."
        )
        metadata = ParseMetadata(
            filename=filename or "unknown",
            file_type=file_type,
            file_size=_byte_length(content),
            parse_strategy=outcome.strategy,
            model_used=outcome.model_used,
            parse_duration_ms=int((time.perf_counter() - start) * 1000),
            chunk_count=outcome.chunk_count,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

        logger.info(
            f"Parse complete: {len(entities)} entities, {len(relationships)} relationships, "
            f"{metadata.parse_duration_ms}ms via {metadata.parse_strategy}"
        )
        return ParseResult(
            metadata=metadata,
            entities=entities,
            relationships=relationships,
            summary=summary,
        )

    def parse_sync(
        self,
        content: Union[str, bytes, None],
        filename: str = "",
        content_override: Optional[str] = None,
    ) -> ParseResult:
        """Synchronous version of parse for non-async contexts."""
        return asyncio.run(self.parse(content, filename, content_override))


async def parse(
    content: Union[str, bytes, None],
    filename: str = "",
    client: Optional[ExtractionClient] = None,
) -> ParseResult:
    """
    Parse any document with a one-off UniversalParser.

    Args:
        content: Raw document content
        filename: Original filename
        client: Extraction service client (Ollama by default)

    Returns:
        ParseResult envelope
    """
    return await UniversalParser(client=client).parse(content, filename)


def parse_sync(
    content: Union[str, bytes, None],
    filename: str = "",
    client: Optional[ExtractionClient] = None,
) -> ParseResult:
    """Synchronous version of parse."""
    return asyncio.run(parse(content, filename, client))
