"""
Command-Line Interface

Usage:
    # Print the parse result for a document
    context-parser parse notes.md

    # Write it to a file instead
    context-parser parse profile.json --output profile.parsed.json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from src.config import configure_logging
from src.ingestion.extractor import ExtractionError
from src.ingestion.pipeline import UniversalParser
from src.llm.client import OllamaExtractionClient

app = typer.Typer(help="Parse documents into knowledge graph entities.")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    configure_logging(log_level.upper() if log_level else None)


@app.command()
def parse(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Document to parse"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    model: Optional[str] = typer.Option(None, "--model", help="Ollama model override"),
) -> None:
    """Parse one document and emit the result envelope as JSON."""
    raw = path.read_bytes()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        content = raw

    parser = UniversalParser(client=_client_for(model))
    try:
        result = parser.parse_sync(content, path.name)
    except ExtractionError as e:
        err_console.print(f"[red]Parse failed:[/red] {e}")
        raise typer.Exit(code=1)

    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if output is not None:
        output.write_text(payload, encoding="utf-8")
        console.print(
            f"Wrote {len(result.entities)} entities and "
            f"{len(result.relationships)} relationships to {output}"
        )
    else:
        console.print_json(payload)


def _client_for(model: Optional[str]) -> Optional[OllamaExtractionClient]:
    if model is None:
        return None
    return OllamaExtractionClient(model=model)


if __name__ == "__main__":
    app()
