"""
Text normalization for the universal parser.

Turns each document type into plain prose suitable for an LLM. Any
format-specific failure returns the original content unchanged, so this
stage never raises.
"""

from __future__ import annotations

import csv
import html
import json
import logging
import re
from typing import List, Union

from src.ingestion.detector import FileType, as_text

logger = logging.getLogger(__name__)


# Order matters: images before links, rules before emphasis
MARKDOWN_RULES = [
    (re.compile(r"!\[[^\]]*\]\([^)]*\)"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),
    (re.compile(r"^[ \t]*([-*_])([ \t]*\1){2,}[ \t]*$", re.MULTILINE), ""),
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),
    (re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])"), r"\1"),
    (re.compile(r"(?<![\w_])_(?!\s)(.+?)(?<!\s)_(?![\w_])"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]

SCRIPT_STYLE_PATTERN = re.compile(
    r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_json(raw: str) -> str:
    """Pretty-print JSON with 2-space indentation, preserving key order."""
    parsed = json.loads(raw)
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def normalize_markdown(raw: str) -> str:
    """Strip Markdown formatting markers while keeping the enclosed text."""
    text = raw
    for pattern, replacement in MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def normalize_delimited(raw: str, delimiter: str) -> str:
    """
    Convert CSV/TSV content into one readable line per data row.

    Example:
        "Name,Role\\nAlice,Engineer" -> "Row 1: Name=Alice, Role=Engineer"

    Args:
        raw: Delimited text with a header row
        delimiter: Column separator ("," or tab)

    Returns:
        Row descriptions joined by newlines
    """
    lines = [line for line in raw.splitlines() if line.strip()]
    if not lines:
        return raw

    rows = list(csv.reader(lines, delimiter=delimiter))
    headers = [cell.strip().strip('"') for cell in rows[0]]

    described: List[str] = []
    for row_number, row in enumerate(rows[1:], start=1):
        parts = []
        for header, value in zip(headers, row):
            value = value.strip().strip('"')
            if value:
                parts.append(f"{header}={value}")
        if parts:
            described.append(f"Row {row_number}: {', '.join(parts)}")

    return "\n".join(described)


def normalize_html(raw: str) -> str:
    """Drop script/style blocks, strip tags, decode entities, collapse whitespace."""
    text = SCRIPT_STYLE_PATTERN.sub(" ", raw)
    text = TAG_PATTERN.sub(" ", text)
    text = html.unescape(text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def extract_text(content: Union[str, bytes, None], file_type: str) -> str:
    """
    Extract readable text from content based on its detected type.

    pdf, docx and chat_export pass through untouched; decoding binary
    formats belongs to the file-format decoder upstream.

    Args:
        content: Raw document content
        file_type: Output of detect_file_type()

    Returns:
        Normalized text, or the original content on any parse failure
    """
    raw = as_text(content)

    try:
        if file_type in (FileType.JSON, FileType.STRUCTURED_PROFILE):
            return normalize_json(raw)
        if file_type == FileType.MARKDOWN:
            return normalize_markdown(raw)
        if file_type == FileType.CSV:
            return normalize_delimited(raw, ",")
        if file_type == FileType.TSV:
            return normalize_delimited(raw, "\t")
        if file_type == FileType.HTML:
            return normalize_html(raw)
    except (ValueError, csv.Error) as e:
        logger.warning(f"Could not normalize {file_type} content, using raw text: {e}")
        return raw

    return raw


def split_into_chunks(text: str, chunk_size: int) -> List[str]:
    """
    Split text into chunks of at most ``chunk_size`` characters.

    Paragraph boundaries are preferred; a paragraph longer than the limit
    is cut into fixed-size slices.

    Args:
        text: Normalized document text
        chunk_size: Maximum characters per chunk

    Returns:
        List of non-empty chunks (empty for blank text)
    """
    if not text.strip():
        return []
    if chunk_size <= 0 or len(text) <= chunk_size:
        return [text]

    chunks: List[str] = []
    current = ""
    for paragraph in re.split(r"\n\s*\n", text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue

        while len(paragraph) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(paragraph[:chunk_size])
            paragraph = paragraph[chunk_size:]

        candidate = f"{current}\n\n{paragraph}" if current else paragraph
        if len(candidate) > chunk_size:
            chunks.append(current)
            current = paragraph
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks
