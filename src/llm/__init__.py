"""
LLM module for Context-Parser.
Contains the extraction service client.
"""

from src.llm.client import ExtractionClient, OllamaExtractionClient

__all__ = [
    "ExtractionClient",
    "OllamaExtractionClient",
]
