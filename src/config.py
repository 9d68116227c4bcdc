"""
Configuration for Context-Parser.

Settings are read from environment variables (and an optional .env file)
and grouped into sections, e.g. ``get_config().ollama.model``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass(frozen=True)
class OllamaConfig:
    """
    Settings for the Ollama-backed extraction service.

    Attributes:
        base_url: Ollama server URL
        model: Model used for entity extraction
        temperature: Sampling temperature (0 for deterministic output)
        request_timeout: Client-side timeout for a single call, in seconds
    """
    base_url: str = "http://localhost:11434"
    model: str = "llama3.1"
    temperature: float = 0.0
    request_timeout: float = 120.0

    @classmethod
    def from_env(cls) -> "OllamaConfig":
        return cls(
            base_url=os.getenv("OLLAMA_BASE_URL", cls.base_url),
            model=os.getenv("OLLAMA_MODEL", cls.model),
            temperature=_env_float("OLLAMA_TEMPERATURE", cls.temperature),
            request_timeout=_env_float("OLLAMA_REQUEST_TIMEOUT", cls.request_timeout),
        )


@dataclass(frozen=True)
class ParserConfig:
    """
    Settings for the document parsing pipeline.

    Attributes:
        chunk_size: Maximum characters of normalized text per extraction call
        max_concurrent_chunks: Upper bound on in-flight extraction calls
        chunk_timeout: Seconds to wait for one chunk before giving up on it
    """
    chunk_size: int = 12000
    max_concurrent_chunks: int = 4
    chunk_timeout: float = 180.0

    @classmethod
    def from_env(cls) -> "ParserConfig":
        return cls(
            chunk_size=_env_int("PARSER_CHUNK_SIZE", cls.chunk_size),
            max_concurrent_chunks=_env_int(
                "PARSER_MAX_CONCURRENT_CHUNKS", cls.max_concurrent_chunks
            ),
            chunk_timeout=_env_float("PARSER_CHUNK_TIMEOUT", cls.chunk_timeout),
        )


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            ollama=OllamaConfig.from_env(),
            parser=ParserConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """
    Load the application configuration once per process.

    Returns:
        AppConfig populated from the environment
    """
    load_dotenv()
    return AppConfig.from_env()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=(level or get_config().log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
