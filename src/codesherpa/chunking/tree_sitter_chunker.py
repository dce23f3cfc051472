"""
Tree-sitter assisted chunking.

``extract_chunks`` turns one parsed file into embedding-sized chunks by
running the extraction tiers in order and splitting whatever comes out too
large. ``TreeSitterChunker`` wraps it with parser management and file IO.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from tree_sitter import Parser  # type: ignore[import]

from ..logger import get_logger
from .languages import (
    QueryCatalog,
    SupportedLanguage,
    default_catalog,
    language_for_path,
    load_language,
    resolve_language,
)
from .preprocess import as_bytes
from .splitter import split_chunks
from .strategies import (
    DEFAULT_STRATEGIES,
    ExtractionContext,
    ExtractionStrategy,
    Outcome,
)
from .types import ChunkingThresholds, CodeChunk

log = get_logger(__name__)

DEFAULT_MAX_CHUNK_SIZE = 4096
DEFAULT_OVERLAP_PERCENTAGE = 10


def _language_tag(language: Union[str, SupportedLanguage]) -> str:
    if isinstance(language, SupportedLanguage):
        return language.value
    return str(language)


def run_strategies(
    ctx: ExtractionContext,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
) -> List[CodeChunk]:
    """Run the tiers in order; the first one producing chunks wins."""
    previous: Optional[Outcome] = None
    for strategy in strategies:
        if not strategy.should_run(previous):
            continue
        result = strategy.extract(ctx)
        log.debug(
            "chunk_tier_completed",
            file=str(ctx.path),
            tier=strategy.name,
            outcome=result.outcome.value,
            chunks=len(result.chunks),
        )
        if result.outcome is Outcome.PRODUCED:
            return list(result.chunks)
        previous = result.outcome
    return []


def extract_chunks(
    tree: Any,
    source: str,
    path: Path,
    language: Union[str, SupportedLanguage],
    max_chunk_size: Optional[int] = None,
    overlap_percentage: Optional[int] = None,
    *,
    catalog: Optional[QueryCatalog] = None,
    thresholds: Optional[ChunkingThresholds] = None,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
) -> List[CodeChunk]:
    """
    Extract chunks from a parsed file.

    ``tree`` may be None when no parser was available; the query tiers then
    report failure and the line-based tiers take over. Chunks come back in
    document order, with split fragments in position order.
    """
    ctx = ExtractionContext(
        root=tree.root_node if tree is not None else None,
        source=source,
        source_bytes=as_bytes(source),
        path=path,
        language=_language_tag(language),
        catalog=catalog or default_catalog,
        thresholds=thresholds or ChunkingThresholds(),
    )
    chunks = run_strategies(ctx, strategies)
    return split_chunks(
        chunks,
        max_chunk_size if max_chunk_size is not None else DEFAULT_MAX_CHUNK_SIZE,
        overlap_percentage if overlap_percentage is not None else DEFAULT_OVERLAP_PERCENTAGE,
    )


class TreeSitterChunker:
    """Tree-sitter powered chunker for supported languages."""

    def __init__(
        self,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        overlap_percentage: int = DEFAULT_OVERLAP_PERCENTAGE,
        thresholds: Optional[ChunkingThresholds] = None,
        catalog: Optional[QueryCatalog] = None,
    ) -> None:
        self.max_chunk_size = max_chunk_size
        self.overlap_percentage = overlap_percentage
        self.thresholds = thresholds or ChunkingThresholds()
        self.catalog = catalog or default_catalog
        self.parsers: dict[SupportedLanguage, Parser] = {}

    def _get_parser(self, language: SupportedLanguage) -> Parser:
        if language not in self.parsers:
            parser = Parser()
            parser.set_language(load_language(language.value))
            self.parsers[language] = parser
        return self.parsers[language]

    def _parse(self, source: str, path: Path, language: Optional[SupportedLanguage]) -> Any:
        if language is None:
            return None
        try:
            return self._get_parser(language).parse(as_bytes(source))
        except Exception as exc:  # pragma: no cover - exercised when grammars missing
            log.warning(
                "tree_sitter_parse_fallback",
                file=str(path),
                language=language.value,
                error=str(exc),
            )
            return None

    def chunk_source(
        self, source: str, path: Path, language: Union[str, SupportedLanguage]
    ) -> List[CodeChunk]:
        """Parse ``source`` and extract its chunks."""
        member = resolve_language(language)
        tree = self._parse(source, path, member)
        chunks = extract_chunks(
            tree,
            source,
            path,
            language,
            self.max_chunk_size,
            self.overlap_percentage,
            catalog=self.catalog,
            thresholds=self.thresholds,
        )
        log.debug("file_chunked", file=str(path), chunks=len(chunks))
        return chunks

    def chunk_file(
        self, path: Path, language: Union[str, SupportedLanguage, None] = None
    ) -> List[CodeChunk]:
        """
        Read and chunk one file.

        The language defaults to the one registered for the file extension.
        Raises ValueError when neither gives a supported language.
        """
        member = resolve_language(language) if language is not None else language_for_path(path)
        if member is None:
            raise ValueError(f"Unsupported language for chunking: {language or path.suffix}")
        source = path.read_text(encoding="utf-8", errors="replace")
        return self.chunk_source(source, path, member)

    def chunk_repository(
        self,
        files: Iterable[Path],
        progress_callback: Optional[Callable[[Path], None]] = None,
    ) -> Dict[Path, List[CodeChunk]]:
        """
        Chunk all provided files, keyed by path.

        Unsupported or unreadable files are logged and left out, so the keys
        are exactly the files that were read.
        """
        results: Dict[Path, List[CodeChunk]] = {}
        for path in files:
            try:
                results[path] = self.chunk_file(path)
            except ValueError:
                log.warning("file_skipped", file=str(path), reason="unsupported_language")
            except OSError as exc:
                log.warning("file_skipped", file=str(path), reason="unreadable", error=str(exc))
            finally:
                if progress_callback:
                    progress_callback(path)
        return results
