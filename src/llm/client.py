"""
Extraction service client for Context-Parser.

The pipeline treats the LLM as a black box: it sends an instruction plus
normalized text and gets back a raw string that should contain a JSON
object. Any object implementing ExtractionClient can be injected; the
default talks to a local Ollama server.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Union

from langchain_ollama import OllamaLLM

from src.config import get_config

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT_TEMPLATE = """{instruction}

## Document Text
{text}

## Extracted Knowledge (JSON only, no other text):"""


class ExtractionClient(Protocol):
    """
    Contract for the external extraction service.

    ``extract`` returns the raw response text, which should contain a JSON
    object. Clients that decode the response themselves may return the
    decoded object instead.
    """

    @property
    def model_name(self) -> str:
        ...

    async def extract(self, instruction: str, text: str) -> Union[str, Dict[str, Any]]:
        ...


class OllamaExtractionClient:
    """
    Extraction client backed by an Ollama model.

    Example:
        client = OllamaExtractionClient(model="llama3.1")
        raw = await client.extract(instruction, "Alice works at Acme.")
    """

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            model: Ollama model name (defaults to config)
            base_url: Ollama server URL (defaults to config)
            temperature: LLM temperature (defaults to config, 0 for deterministic)
        """
        config = get_config().ollama

        self._model = model or config.model
        self._base_url = base_url or config.base_url

        self._llm = OllamaLLM(
            model=self._model,
            base_url=self._base_url,
            temperature=config.temperature if temperature is None else temperature,
            format="json",
            client_kwargs={"timeout": config.request_timeout},
        )

    @property
    def model_name(self) -> str:
        return self._model

    def build_prompt(self, instruction: str, text: str) -> str:
        return EXTRACTION_PROMPT_TEMPLATE.format(instruction=instruction, text=text)

    async def extract(self, instruction: str, text: str) -> str:
        """
        Run one extraction call.

        Args:
            instruction: Task-specific extraction instruction
            text: Normalized document text (one chunk)

        Returns:
            Raw model response
        """
        prompt = self.build_prompt(instruction, text)
        response = await self._llm.ainvoke(prompt)
        logger.debug(f"{self._model} returned {len(response)} characters")
        return response
