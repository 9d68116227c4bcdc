"""
File type detection for the universal parser.

Resolves raw content plus a filename into one canonical type tag.
Extension wins over content sniffing, except for ``.json`` where the
parsed content refines the tag into structured_profile, chat_export or
generic json. Detection never fails: undecidable input is plaintext.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import PurePath
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)


class FileType:
    PDF = "pdf"
    DOCX = "docx"
    CSV = "csv"
    TSV = "tsv"
    MARKDOWN = "markdown"
    HTML = "html"
    PLAINTEXT = "plaintext"
    JSON = "json"
    STRUCTURED_PROFILE = "structured_profile"
    CHAT_EXPORT = "chat_export"


EXTENSION_MAP = {
    ".pdf": FileType.PDF,
    ".docx": FileType.DOCX,
    ".doc": FileType.DOCX,
    ".csv": FileType.CSV,
    ".tsv": FileType.TSV,
    ".md": FileType.MARKDOWN,
    ".htm": FileType.HTML,
    ".html": FileType.HTML,
    ".txt": FileType.PLAINTEXT,
    ".json": FileType.JSON,
}

HTML_MARKERS = ("<html", "<!doctype html", "<body")

MARKDOWN_SIGNALS = [
    re.compile(r"^#{1,6}\s+\S", re.MULTILINE),
    re.compile(r"(\*\*|__)[^\s*_][^*_\n]*\1|(?<![\w*])\*[^\s*][^*\n]*\*(?![\w*])"),
    re.compile(r"\[[^\]]+\]\([^)\s]+\)"),
]

DELIMITER_SAMPLE_LINES = 5


def as_text(content: Union[str, bytes, None]) -> str:
    """Decode content to text; bytes are read as UTF-8 with replacement."""
    if content is None:
        return ""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content)


def _non_empty(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, dict, list)):
        return len(value) > 0
    return True


def classify_json(parsed: Any) -> str:
    """
    Classify parsed JSON into structured_profile, chat_export or json.

    Args:
        parsed: Result of json.loads

    Returns:
        File type tag
    """
    if not isinstance(parsed, dict):
        return FileType.JSON

    nested = parsed.get("entity")
    if _non_empty(parsed.get("entity_type")):
        return FileType.STRUCTURED_PROFILE
    if isinstance(nested, dict) and _non_empty(nested.get("entity_type")):
        return FileType.STRUCTURED_PROFILE

    attributes = parsed.get("attributes")
    has_attributes = isinstance(attributes, (dict, list)) and len(attributes) > 0
    if _non_empty(parsed.get("name")) and (has_attributes or "type" in parsed):
        return FileType.STRUCTURED_PROFILE

    mapping = parsed.get("mapping")
    if isinstance(mapping, dict) and any(
        isinstance(node, dict) and node.get("message") for node in mapping.values()
    ):
        return FileType.CHAT_EXPORT

    return FileType.JSON


def _try_classify_json(text: str) -> Optional[str]:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return classify_json(parsed)


def _looks_delimited(lines: List[str], delimiter: str) -> bool:
    sample = lines[:DELIMITER_SAMPLE_LINES]
    counts = [line.count(delimiter) for line in sample]
    if min(counts) < 1:
        return False
    return all(abs(count - counts[0]) <= 1 for count in counts)


def sniff_content(content: Union[str, bytes]) -> str:
    """
    Guess the file type from content alone.

    Args:
        content: Raw document content

    Returns:
        File type tag, plaintext when nothing matches
    """
    if isinstance(content, bytes):
        if content.startswith(b"%PDF"):
            return FileType.PDF
        if content.startswith(b"PK"):
            return FileType.DOCX
    text = as_text(content)
    if text.startswith("%PDF"):
        return FileType.PDF
    if text.startswith("PK"):
        return FileType.DOCX

    stripped = text.strip()
    if stripped.startswith(("{", "[")):
        json_type = _try_classify_json(stripped)
        if json_type is not None:
            return json_type

    lower = text.lower()
    if any(marker in lower for marker in HTML_MARKERS):
        return FileType.HTML

    hits = sum(1 for signal in MARKDOWN_SIGNALS if signal.search(text))
    if hits >= 2:
        return FileType.MARKDOWN

    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) >= 2:
        if _looks_delimited(lines, ","):
            return FileType.CSV
        if _looks_delimited(lines, "\t"):
            return FileType.TSV

    return FileType.PLAINTEXT


def detect_file_type(content: Union[str, bytes, None], filename: str = "") -> str:
    """
    Detect the canonical type of a document.

    Args:
        content: Raw document content (text or bytes)
        filename: Original filename, may be empty

    Returns:
        One of pdf, docx, csv, tsv, markdown, html, plaintext, json,
        structured_profile, chat_export
    """
    extension = PurePath(filename or "").suffix.lower()
    file_type = EXTENSION_MAP.get(extension)

    if file_type == FileType.JSON:
        refined = _try_classify_json(as_text(content).strip())
        if refined is None:
            logger.debug(f"{filename}: malformed JSON, keeping extension type")
            return FileType.JSON
        return refined

    if file_type is not None:
        return file_type

    return sniff_content(content if content is not None else "")
