"""
studyblocks command line interface.

Commands
--------
- ``materialize``  turn a saved generation output (JSON) into blocks and
                   show them, without touching any storage.
- ``generate``     run the whole pipeline (load files, generate, materialize,
                   persist) against an in-memory repository.

Usage
-----
    $ studyblocks materialize proposals.json --policy manual --file lecture.pdf=https://cdn/x.pdf
    $ studyblocks generate slides.pdf notes.md --policy auto --trace-dir artifacts/trace
"""

from __future__ import annotations

import asyncio
import json
import traceback
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from studyblocks.agents.generator import (
    GenerationCollaborator,
    GenerationError,
    LLMSummaryGenerator,
    parse_generation,
)
from studyblocks.agents.image_search import GoogleImageSearch
from studyblocks.agents.materializer import Materializer, RejectedItem, ResolutionPolicy
from studyblocks.agents.source_files import SourceFile
from studyblocks.core.blackboard.storage import TraceWriter
from studyblocks.core.contracts.block import Block
from studyblocks.core.persistence.repository import InMemoryBlockRepository
from studyblocks.core.settings import load_settings
from studyblocks.llm.client import LLMClient
from studyblocks.pipelines.summary_generation import run_generation

load_dotenv()

app = typer.Typer(
    help="studyblocks: block-based study documents from lecture material.",
    rich_markup_mode="markdown",
)
console = Console()

_PREVIEW_CHARS = 60


def _get_generator(model: str | None) -> GenerationCollaborator:
    """Generation collaborator for ``generate``; tests monkeypatch this."""
    alias = model or load_settings().generator_model
    return LLMSummaryGenerator(LLMClient.from_env(default_model_alias=alias), model=alias)


def _parse_file_option(value: str) -> SourceFile:
    name, sep, url = value.partition("=")
    if not sep or not name.strip() or not url.strip():
        raise typer.BadParameter(f"expected NAME=URL, got {value!r}")
    return SourceFile(id=name.strip(), name=name.strip(), url=url.strip())


def _preview(block: Block) -> str:
    text = " ".join(block.text().split())
    return text if len(text) <= _PREVIEW_CHARS else text[: _PREVIEW_CHARS - 1] + "…"


def _render_blocks(title: str, blocks: list[Block]) -> None:
    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("type", style="cyan")
    table.add_column("content")
    table.add_column("source", style="dim")
    for block in blocks:
        prov = block.provenance
        source = ""
        if prov is not None and prov.source_file_id:
            source = prov.source_file_id
            if prov.source_page is not None:
                source += f" p.{prov.source_page}"
        table.add_row(str(block.order), block.type.value, _preview(block), source)
    console.print(table)


def _render_rejected(rejected: list[RejectedItem]) -> None:
    if not rejected:
        return
    console.print(f"[yellow]Dropped {len(rejected)} malformed item(s):[/yellow]")
    for item in rejected:
        console.print(f" [dim]#{item.index}[/dim] {item.reason}")


def _parse_policy(value: str | None) -> ResolutionPolicy:
    try:
        return ResolutionPolicy.parse(value or load_settings().image_policy)
    except ValueError as exc:
        raise typer.BadParameter(f"unknown policy {value!r}") from exc


@app.command()  # type: ignore[misc]
def materialize(
    proposals: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            help="Generation output: {'title', 'blocks': [...]} or a bare list.",
        ),
    ],
    policy: Annotated[
        str | None,
        typer.Option("--policy", "-p", help="auto | manual | suppress"),
    ] = None,
    files: Annotated[
        list[str] | None,
        typer.Option("--file", "-f", help="Candidate source file as NAME=URL (repeatable)."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the blocks as JSON instead of a table."),
    ] = False,
) -> None:
    """Materialize a saved generation output and show the resulting blocks."""
    resolved = _parse_policy(policy)
    candidates = [_parse_file_option(v) for v in files or []]

    try:
        output = parse_generation(proposals.read_text(encoding="utf-8"))
    except GenerationError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        raise typer.Exit(code=1) from e

    lookup = GoogleImageSearch() if resolved is ResolutionPolicy.AUTO else None
    result = Materializer(resolved, candidates, lookup).materialize(output.items)

    if as_json:
        payload = [b.model_dump(mode="json", by_alias=True) for b in result.blocks]
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    _render_blocks(f"{output.title} ({resolved.value})", result.blocks)
    _render_rejected(result.rejected)


@app.command()  # type: ignore[misc]
def generate(
    inputs: Annotated[
        list[Path],
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            help="Lecture files (PDF, DOCX, TXT, MD).",
        ),
    ],
    policy: Annotated[
        str | None,
        typer.Option("--policy", "-p", help="auto | manual | suppress"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model alias or id (default: STUDYBLOCKS_MODEL)."),
    ] = None,
    doc_id: Annotated[
        str,
        typer.Option("--doc-id", help="Document id the blocks are stored under."),
    ] = "summary",
    trace_dir: Annotated[
        Path | None,
        typer.Option("--trace-dir", help="Write blackboard trace snapshots here."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show full error tracebacks."),
    ] = False,
) -> None:
    """Generate a summary document from lecture files."""
    resolved = _parse_policy(policy)
    console.print(
        Panel.fit(
            f"[bold cyan]studyblocks[/bold cyan]\n"
            f"Inputs: {', '.join(p.name for p in inputs)}\nPolicy: {resolved.value}",
            border_style="cyan",
        )
    )

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("[cyan]Generating summary...", total=None)
            run = asyncio.run(
                run_generation(
                    inputs,
                    doc_id=doc_id,
                    repository=InMemoryBlockRepository(),
                    policy=resolved,
                    generator=_get_generator(model),
                )
            )
    except (GenerationError, ValueError, FileNotFoundError) as e:
        console.print(f"\n[bold red]❌ Generation failed:[/bold red] {e}")
        if verbose:
            traceback.print_exc()
        raise typer.Exit(code=1) from e

    _render_blocks(run.title, run.blocks)
    _render_rejected(run.rejected)
    if run.failures:
        console.print(f"[bold red]{len(run.failures)} block(s) failed to persist[/bold red]")

    if trace_dir is not None:
        paths = TraceWriter(trace_dir).write_all(run.blackboard.traces())
        console.print(f"[dim]Wrote {len(paths)} trace snapshot(s) to {trace_dir}[/dim]")

    if not run.ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
