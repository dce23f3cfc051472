"""
Command line interface for codesherpa.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .chunking import ChunkingThresholds, TreeSitterChunker
from .logger import (
    configure_logging,
    get_logger,
    level_for_verbosity,
    redirect_logging_to_file,
)
from .services import (
    DEFAULT_IGNORE_FILES,
    DEFAULT_IGNORE_PATTERNS,
    CodebaseScanner,
    ScanCallbacks,
)
from .settings import settings
from .version import get_version

app = typer.Typer(name="codesherpa", help="Semantic code chunking and search CLI.")
configure_logging(enable_console=False)
log = get_logger(__name__)
console = Console()


def _split_csv(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _setup_logging(log_file: Optional[Path], verbose: int) -> None:
    level = level_for_verbosity(verbose)
    if log_file:
        redirect_logging_to_file(log_file.resolve(), level=level)
        typer.echo(f"Logging detailed output to {log_file.resolve()}")
    elif verbose:
        configure_logging(level=level, enable_console=True)


def _build_scanner(
    path: Path,
    collection: Optional[str],
    provider: Optional[str],
    model: Optional[str],
    chunker: Optional[TreeSitterChunker] = None,
) -> CodebaseScanner:
    return CodebaseScanner.for_path(
        path,
        collection=collection,
        chunker=chunker,
        provider=provider,
        model=model,
    )


@app.command()
def scan(
    path: Path = typer.Argument(..., help="Directory (or single file) to scan."),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Embedding provider: ollama, openai or huggingface."
    ),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Embedding model name."),
    extensions: Optional[str] = typer.Option(
        None,
        "--extensions",
        "-e",
        help="Comma-separated file extensions to scan (default: all supported).",
    ),
    chunk_size_limit: Optional[int] = typer.Option(
        None, "--chunk-size-limit", min=1, help="Maximum chunk size in characters."
    ),
    overlap_percentage: Optional[int] = typer.Option(
        None,
        "--overlap-percentage",
        min=0,
        max=100,
        help="Overlap between split fragments, as a percentage of the chunk size.",
    ),
    collection: Optional[str] = typer.Option(
        None, "--collection", "-c", help="Milvus collection (default: derived from PATH)."
    ),
    ignore: Optional[str] = typer.Option(
        None,
        "--ignore",
        "-i",
        help="Comma-separated names to exclude (appended to defaults).",
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log", help="Write detailed logs to this file."
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase log verbosity."
    ),
) -> None:
    """Chunk, embed and store every supported file under PATH."""
    if not path.exists():
        typer.echo(f"[ERROR] Path not found: {path}")
        raise typer.Exit(code=2)

    _setup_logging(log_file, verbose)
    extra_ignores = tuple(_split_csv(ignore))
    ignore_patterns = list(dict.fromkeys(tuple(DEFAULT_IGNORE_PATTERNS) + extra_ignores))
    file_patterns = list(dict.fromkeys(tuple(DEFAULT_IGNORE_FILES) + extra_ignores))
    chunker = TreeSitterChunker(
        max_chunk_size=chunk_size_limit or settings.max_chunk_size,
        overlap_percentage=(
            overlap_percentage if overlap_percentage is not None else settings.overlap_percentage
        ),
        thresholds=ChunkingThresholds.from_settings(settings),
    )

    try:
        scanner = _build_scanner(path, collection, provider, model, chunker=chunker)
    except (ValueError, NotImplementedError) as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=2)

    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        chunk_task = progress.add_task("Chunking files", total=None)
        embed_task = progress.add_task("Embedding chunks", total=1)
        upsert_task = progress.add_task("Upserting embeddings", total=1)

        def on_chunk(file_path: Path) -> None:
            progress.update(chunk_task, advance=1, description=f"Chunking {file_path.name}")

        def on_embed_progress(completed: int, total: int) -> None:
            total = max(total, 1)
            progress.update(
                embed_task,
                total=total,
                completed=min(completed, total),
                description=f"Embedding chunks ({completed}/{total})",
            )
            progress.refresh()

        def on_upsert_progress(completed: int, total: int) -> None:
            total = max(total, 1)
            progress.update(
                upsert_task,
                total=total,
                completed=min(completed, total),
                description=f"Upserting embeddings ({completed}/{total})",
            )
            progress.refresh()

        def on_stage(stage: str) -> None:
            if stage == "chunk_completed":
                task = progress.tasks[chunk_task]
                progress.update(
                    chunk_task, total=task.completed or 1, description="Chunking complete"
                )
            elif stage == "embedding_completed":
                progress.update(embed_task, description="Embedding complete")
            elif stage == "upsert_completed":
                task = progress.tasks[upsert_task]
                progress.update(
                    upsert_task,
                    completed=task.total if task.total is not None else task.completed,
                    description="Upsert complete",
                )
            elif stage == "upsert_failed":
                progress.update(upsert_task, description="Upsert failed")

        callbacks = ScanCallbacks(
            chunk=on_chunk,
            stage=on_stage,
            embed_progress=on_embed_progress,
            upsert_progress=on_upsert_progress,
        )
        try:
            result = scanner.scan(
                path,
                extensions=_split_csv(extensions) or None,
                ignore_patterns=ignore_patterns,
                callbacks=callbacks,
                file_patterns=file_patterns,
            )
        except ValueError as exc:
            typer.echo(f"[ERROR] {exc}")
            raise typer.Exit(code=2)

    typer.echo(
        f"Scanned {path} -> {result.collection} files={result.files_scanned} "
        f"chunks={result.chunks_processed} embeddings={result.embeddings_generated} "
        f"stale_removed={result.stale_removed}"
    )


@app.command()
def query(
    text: str = typer.Argument(..., help="Natural language or code to search for."),
    path: Path = typer.Option(
        Path("."), "--path", help="Scanned directory the collection is named after."
    ),
    collection: Optional[str] = typer.Option(
        None, "--collection", "-c", help="Milvus collection (default: derived from --path)."
    ),
    limit: int = typer.Option(5, "--limit", "-l", min=1, help="Number of results."),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Embedding provider."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Embedding model name."),
) -> None:
    """Search previously scanned chunks."""
    try:
        scanner = _build_scanner(path, collection, provider, model)
        hits = scanner.search(text, limit=limit)
    except (ValueError, NotImplementedError, RuntimeError) as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=2)

    if not hits:
        typer.echo("No matching chunks.")
        return
    for rank, hit in enumerate(hits, start=1):
        typer.echo(
            f"{rank}. {hit.path}:{hit.start_line + 1}-{hit.end_line + 1} "
            f"[{hit.tag}] score={hit.score:.3f}"
        )


@app.command()
def version() -> None:
    """Print the codesherpa version."""
    typer.echo(get_version())


if __name__ == "__main__":  # pragma: no cover
    app()
