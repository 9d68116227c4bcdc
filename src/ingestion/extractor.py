"""
Entity and Relationship Extraction for Context-Parser.

Routes each document to one of three strategies:

- structured_import: already-structured profiles are imported directly
- chat_import: conversational exports are handed to a separate importer
- ai_extraction: everything else is chunked and sent to the extraction
  service, whose JSON responses are validated and repaired
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from src.config import get_config
from src.ingestion.detector import FileType, as_text
from src.ingestion.models import (
    DIRECT_IMPORT_MODEL,
    Entity,
    ExtractionOutcome,
    ParseStrategy,
    Relationship,
)
from src.ingestion.normalizer import split_into_chunks
from src.ingestion.profiles import parse_profile, profile_to_entities
from src.llm.client import ExtractionClient, OllamaExtractionClient

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when a declared-structured document cannot be imported."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(f"{stage}: {message}")


EXTRACTION_INSTRUCTION_TEMPLATE = """You are a knowledge extraction system building a personal knowledge graph.
Extract the entities and relationships described in the document below.

## Entity Types
- PERSON: individual people
- ORG: companies, institutions, teams
- PLACE: cities, addresses, venues, regions
- EVENT: meetings, conferences, life events
- CONCEPT: anything else worth remembering

## Instructions
1. Identify every entity mentioned in the text and give it one of the types above
2. Record facts about each entity as string attributes (use "location" and "event" keys where relevant)
3. Quote a short supporting snippet from the text as "evidence"
4. Identify relationships between entities using specific snake_case labels (e.g. works_at, friend_of)
5. Return ONLY valid JSON in the exact format specified

## Output Format
```json
{{
    "entities": [
        {{"name": "Entity Name", "type": "PERSON", "attributes": {{"role": "Engineer"}}, "evidence": "..."}}
    ],
    "relationships": [
        {{"source": "Entity Name", "target": "Another Entity", "relationship": "works_at", "evidence": "..."}}
    ],
    "summary": "One sentence describing the document"
}}
```

Source file: {filename}
Part {part} of {total}"""

CHAT_EXPORT_SUMMARY = (
    "Conversation export detected; chat history is ingested by the dedicated "
    "chat import path, not by entity extraction."
)


@dataclass
class ChunkResult:
    """
    Result of extracting one chunk.

    Attributes:
        entities: Entities parsed from the response
        relationships: Relationships parsed from the response
        summary: Summary text returned for the chunk
        error: Error message if the chunk failed
    """
    entities: List[Entity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    summary: str = ""
    error: Optional[str] = None


def repair_truncated_json(raw: str) -> Optional[Any]:
    """
    Recover a JSON object whose tail was cut off.

    Walks the text tracking open containers and remembers every point
    where an array element or a top-level member was completed. The text
    is cut back to the last such point and the still-open containers are
    closed.

    Args:
        raw: Response text starting at the opening brace

    Returns:
        Decoded JSON value, or None if no repair parses
    """
    stack: List[str] = []
    cut_points: List[Tuple[int, Tuple[str, ...]]] = []
    in_string = False
    escaped = False

    for index, char in enumerate(raw):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append(char)
        elif char in "}]":
            if not stack:
                break
            stack.pop()
            if not stack:
                # complete document; nothing to repair past this point
                cut_points.append((index + 1, ()))
                break
            if stack[-1] == "[" or len(stack) == 1:
                cut_points.append((index + 1, tuple(stack)))
        elif char == "," and stack and (stack[-1] == "[" or len(stack) == 1):
            cut_points.append((index, tuple(stack)))

    closers = {"{": "}", "[": "]"}
    for cut, open_containers in reversed(cut_points):
        candidate = raw[:cut].rstrip().rstrip(",")
        candidate += "".join(closers[opener] for opener in reversed(open_containers))
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    return None


def load_json_payload(response: str) -> Any:
    """
    Decode the JSON payload of an extraction response.

    Tolerates prose around the JSON and attempts truncation repair.

    Raises:
        ValueError: If no JSON can be recovered
    """
    starts = [pos for pos in (response.find("{"), response.find("[")) if pos >= 0]
    if not starts:
        raise ValueError(f"No JSON object found in response: {response[:200]}")
    start = min(starts)
    closer = "}" if response[start] == "{" else "]"
    end = response.rfind(closer)

    if end > start:
        try:
            return json.loads(response[start:end + 1])
        except ValueError:
            pass

    repaired = repair_truncated_json(response[start:])
    if repaired is None:
        raise ValueError(f"Unrepairable JSON in response: {response[:200]}")
    logger.warning("Recovered truncated extraction response")
    return repaired


class EntityExtractor:
    """
    Extracts entities and relationships from text via the extraction service.

    Long documents are split into chunks which run concurrently; a chunk
    that fails or times out contributes nothing instead of failing the
    document.

    Example:
        extractor = EntityExtractor(client=OllamaExtractionClient())
        outcome = await extractor.extract("Alice works at Acme.", "notes.txt")
        for entity in outcome.entities:
            print(entity.name, entity.type)
    """

    def __init__(
        self,
        client: Optional[ExtractionClient] = None,
        chunk_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        chunk_timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the entity extractor.

        Args:
            client: Extraction service client (Ollama by default)
            chunk_size: Max characters per chunk (defaults to config)
            max_concurrency: Max in-flight chunk calls (defaults to config)
            chunk_timeout: Seconds allowed per chunk call (defaults to config)
        """
        config = get_config().parser

        self._client = client or OllamaExtractionClient()
        self._chunk_size = chunk_size or config.chunk_size
        self._max_concurrency = max(1, max_concurrency or config.max_concurrent_chunks)
        self._chunk_timeout = chunk_timeout or config.chunk_timeout

    @property
    def model_name(self) -> str:
        return self._client.model_name

    def _build_instruction(self, filename: str, part: int, total: int) -> str:
        return EXTRACTION_INSTRUCTION_TEMPLATE.format(
            filename=filename or "unknown",
            part=part,
            total=total,
        )

    def _parse_response(self, response: Union[str, Dict[str, Any], List[Any]]) -> ChunkResult:
        """
        Parse a service response into entities and relationships.

        Accepts the raw response text or an already-decoded JSON payload.
        Fields of the wrong container type are ignored and noted on the
        result's error.

        Raises:
            ValueError: If the response holds no usable JSON
        """
        if isinstance(response, (dict, list)):
            data = response
        elif isinstance(response, str):
            data = load_json_payload(response)
        else:
            raise ValueError(f"Unexpected response type: {type(response).__name__}")

        if isinstance(data, list):
            data = {"entities": data}
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected JSON payload type: {type(data).__name__}")

        result = ChunkResult()
        ignored = []
        sections = {}
        for key in ("entities", "relationships"):
            raw = data.get(key)
            if raw is not None and not isinstance(raw, list):
                ignored.append(f"{key} ({type(raw).__name__})")
                raw = []
            sections[key] = raw or []
        if ignored:
            result.error = f"Ignored non-list fields in response: {', '.join(ignored)}"
            logger.warning(result.error)

        for item in sections["entities"]:
            entity = Entity.from_dict(item) if isinstance(item, dict) else None
            if entity is None:
                logger.debug(f"Skipping unusable entity: {item!r}")
                continue
            result.entities.append(entity)

        for item in sections["relationships"]:
            relationship = Relationship.from_dict(item) if isinstance(item, dict) else None
            if relationship is not None:
                result.relationships.append(relationship)

        summary = data.get("summary")
        if isinstance(summary, str):
            result.summary = summary.strip()
        return result

    async def _extract_chunk(
        self,
        chunk: str,
        filename: str,
        part: int,
        total: int,
        semaphore: asyncio.Semaphore,
    ) -> ChunkResult:
        instruction = self._build_instruction(filename, part, total)
        async with semaphore:
            try:
                response = await asyncio.wait_for(
                    self._client.extract(instruction, chunk),
                    timeout=self._chunk_timeout,
                )
            except asyncio.TimeoutError:
                error_msg = f"Chunk {part}/{total} timed out after {self._chunk_timeout}s"
                logger.error(error_msg)
                return ChunkResult(error=error_msg)
            except Exception as e:
                error_msg = f"Chunk {part}/{total} extraction call failed: {e}"
                logger.error(error_msg)
                return ChunkResult(error=error_msg)

        try:
            result = self._parse_response(response)
        except Exception as e:
            error_msg = f"Chunk {part}/{total} response unusable: {e}"
            logger.error(error_msg)
            return ChunkResult(error=error_msg)

        logger.info(
            f"Chunk {part}/{total}: {len(result.entities)} entities, "
            f"{len(result.relationships)} relationships"
        )
        return result

    async def extract(self, text: str, filename: str = "") -> ExtractionOutcome:
        """
        Extract entities and relationships from normalized text.

        Args:
            text: Normalized document text
            filename: Original filename, included in the instruction

        Returns:
            ExtractionOutcome with chunk results concatenated in order
        """
        chunks = split_into_chunks(text, self._chunk_size)
        outcome = ExtractionOutcome(
            strategy=ParseStrategy.AI_EXTRACTION,
            model_used=self.model_name,
            chunk_count=len(chunks),
        )
        if not chunks:
            outcome.summary = "Document contained no text to extract."
            return outcome

        semaphore = asyncio.Semaphore(self._max_concurrency)
        results = await asyncio.gather(*[
            self._extract_chunk(chunk, filename, part, len(chunks), semaphore)
            for part, chunk in enumerate(chunks, start=1)
        ])

        summaries = []
        for result in results:
            outcome.entities.extend(result.entities)
            outcome.relationships.extend(result.relationships)
            if result.summary:
                summaries.append(result.summary)
            if result.error:
                outcome.errors.append(result.error)

        outcome.summary = " ".join(summaries)
        return outcome


def import_structured_profile(content: str) -> ExtractionOutcome:
    """
    Import a structured profile without calling the extraction service.

    Raises:
        ExtractionError: If the content is not a usable profile
    """
    try:
        data = json.loads(content)
        profile = parse_profile(data)
        entities, relationships = profile_to_entities(profile)
    except ValueError as e:
        raise ExtractionError(
            ParseStrategy.STRUCTURED_IMPORT, f"could not import structured profile: {e}"
        ) from e

    name = entities[0].name
    logger.info(f"Imported structured profile for {name} with {len(relationships)} relationships")
    return ExtractionOutcome(
        entities=entities,
        relationships=relationships,
        summary=f"Imported structured profile for {name}.",
        strategy=ParseStrategy.STRUCTURED_IMPORT,
        model_used=DIRECT_IMPORT_MODEL,
    )


def route_chat_export(content: str, model_name: Optional[str] = None) -> ExtractionOutcome:
    """
    Acknowledge a chat export without extracting from it.

    Raises:
        ExtractionError: If the export is not valid JSON
    """
    try:
        json.loads(content)
    except ValueError as e:
        raise ExtractionError(ParseStrategy.CHAT_IMPORT, f"could not parse chat export: {e}") from e

    return ExtractionOutcome(
        summary=CHAT_EXPORT_SUMMARY,
        strategy=ParseStrategy.CHAT_IMPORT,
        model_used=model_name,
    )


async def extract_entities(
    text: str,
    content: Union[str, bytes, None],
    filename: str,
    file_type: str,
    extractor: Optional[EntityExtractor] = None,
    content_override: Optional[str] = None,
) -> ExtractionOutcome:
    """
    Choose and run the extraction strategy for a document.

    Args:
        text: Normalized text from extract_text()
        content: Original document content
        filename: Original filename
        file_type: Output of detect_file_type()
        extractor: AI extractor to use (created on demand)
        content_override: Replacement JSON for structured/chat imports

    Returns:
        ExtractionOutcome describing entities, relationships and strategy

    Raises:
        ExtractionError: If a structured profile or chat export does not parse
    """
    source = content_override if content_override is not None else as_text(content)

    if file_type == FileType.STRUCTURED_PROFILE:
        return import_structured_profile(source)

    if file_type == FileType.CHAT_EXPORT:
        model_name = extractor.model_name if extractor is not None else None
        return route_chat_export(source, model_name)

    extractor = extractor or EntityExtractor()
    return await extractor.extract(text, filename)

